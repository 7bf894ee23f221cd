"""
Vault Lock — advisory inter-process lock around open-mutate-persist.

The lock is taken on a sidecar ``<vault>.lock`` file rather than on the
vault itself, because every persist replaces the vault file (and its
inode) by rename. Lock files are left in place after release.

Only cooperating processes are excluded: the lock is advisory.
"""
import os
import time
import errno
import logging
from pathlib import Path
from typing import Optional

# Platform-specific imports
try:
    import fcntl
except ImportError:
    fcntl = None

try:
    import msvcrt
except ImportError:
    msvcrt = None

from ..exceptions import IoFailure, LockTimeout

logger = logging.getLogger("passvault.vault")

_POLL_INTERVAL = 0.05
_CONTENDED = {errno.EAGAIN, errno.EACCES, getattr(errno, "EDEADLK", errno.EAGAIN)}


def _try_lock(fd: int) -> None:
    """Take the lock without blocking; raises OSError when it is held."""
    if fcntl is not None:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    elif msvcrt is not None:
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
    else:
        raise OSError(errno.ENOSYS, "No file locking available on this platform")


def _unlock(fd: int) -> None:
    if fcntl is not None:
        fcntl.flock(fd, fcntl.LOCK_UN)
    elif msvcrt is not None:
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)


class FileLock:
    """Exclusive, re-entrant advisory lock on a file path.

    Re-entrancy is per instance: nested ``with`` blocks on the same
    FileLock only count depth. Two FileLock instances on the same path
    exclude each other, even inside one process.
    """

    def __init__(self, path: Path, timeout: float = 10.0):
        self._path = Path(path)
        self._timeout = timeout
        self._fd: Optional[int] = None
        self._depth = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def locked(self) -> bool:
        return self._depth > 0

    def acquire(self) -> None:
        """Acquire the lock, polling until ``timeout`` expires.

        Raises:
            LockTimeout: If another holder keeps the lock past the timeout.
            IoFailure: If the lock file cannot be opened or locked.
        """
        if self._depth:
            self._depth += 1
            return
        try:
            fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as err:
            raise IoFailure(f"Could not open lock file {self._path}") from err
        deadline = time.monotonic() + self._timeout
        while True:
            try:
                _try_lock(fd)
                break
            except OSError as err:
                if err.errno not in _CONTENDED:
                    os.close(fd)
                    raise IoFailure(f"Could not lock {self._path}") from err
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise LockTimeout(
                        f"Timed out after {self._timeout}s waiting for {self._path}"
                    ) from err
                time.sleep(_POLL_INTERVAL)
        self._fd = fd
        self._depth = 1
        logger.debug("Acquired vault lock %s", self._path)

    def release(self) -> None:
        if not self._depth:
            raise RuntimeError(f"Lock {self._path} is not held")
        self._depth -= 1
        if self._depth:
            return
        fd, self._fd = self._fd, None
        try:
            _unlock(fd)
        finally:
            os.close(fd)
        logger.debug("Released vault lock %s", self._path)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
