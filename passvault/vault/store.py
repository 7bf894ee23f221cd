"""
VaultStore — Sealed credential vault kept in a single file.

Provides the public API for the vault:
- ``init(secret)`` — create an empty vault (Absent → Sealed)
- ``open(secret)`` — authenticate and decode the vault into a ``VaultHandle``
- ``VaultHandle.add/list/find/replace`` — in-memory access, never persisted implicitly
- ``persist(handle, secret)`` — re-seal under a fresh nonce and atomically replace the file
- ``locked()`` / ``transaction(secret)`` — advisory lock around open-mutate-persist

The cipher key is always derived from the master secret and the salt
stored in the vault header; the raw secret is never used as key material,
and handles never hold a key.

Security Note:
    Never log plaintext, secrets or keys. Only log paths, record names,
    counts and format versions.
"""
import os
import logging
import tempfile
from contextlib import contextmanager, suppress
from collections.abc import Iterator
from pathlib import Path
from typing import Optional, Union

from ..data import CredentialRecord, VaultContents
from ..exceptions import (
    AlreadyExists,
    AuthenticationFailed,
    IoFailure,
    StaleHandle,
    VaultNotFound,
)
from .config import VaultConfig
from .crypto import (
    SealedBlob,
    decode_records,
    derive_key,
    encode_records,
    generate_salt,
    seal,
    unseal,
    wipe,
)
from .lock import FileLock

logger = logging.getLogger("passvault.vault")


class VaultHandle:
    """Decrypted contents of one vault, bound to the sealed file they came from.

    The handle remembers the salt and nonce of the generation it was
    opened from, so ``persist`` can refuse to overwrite a newer file.
    It does not hold the key.
    """

    def __init__(
        self,
        path: Path,
        version: int,
        salt: bytes,
        nonce: bytes,
        contents: VaultContents,
    ):
        self._path = path
        self._version = version
        self._salt = salt
        self._nonce = nonce
        self._contents = contents

    def __repr__(self) -> str:
        return (
            f"<VaultHandle path={str(self._path)!r} records={len(self._contents)} "
            f"changed={self._contents.is_changed}>"
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def version(self) -> int:
        return self._version

    @property
    def salt(self) -> bytes:
        return self._salt

    @property
    def nonce(self) -> bytes:
        return self._nonce

    @property
    def contents(self) -> VaultContents:
        return self._contents

    @property
    def is_changed(self) -> bool:
        return self._contents.is_changed

    def add(self, record: CredentialRecord) -> "VaultHandle":
        """Append a record in memory. Call ``VaultStore.persist`` to save it.

        Raises:
            DuplicateRecord: If a record with the same name exists.
        """
        self._contents.add(record)
        logger.debug("Vault add: path=%s name=%s", self._path, record.name)
        return self

    def replace(self, record: CredentialRecord) -> CredentialRecord:
        """Replace the record with the same name in memory.

        Raises:
            RecordNotFound: If no record has that name.
        """
        old = self._contents.replace(record)
        logger.debug("Vault replace: path=%s name=%s", self._path, record.name)
        return old

    def list(self) -> tuple[CredentialRecord, ...]:
        """All records, in insertion order."""
        return self._contents.records()

    def find(self, name: str) -> CredentialRecord:
        """Return the record called ``name``.

        Raises:
            RecordNotFound: If no record has that name.
        """
        return self._contents.find(name)

    def _rebase(self, nonce: bytes) -> None:
        """Point the handle at the generation it just wrote."""
        self._nonce = nonce
        self._contents.is_changed = False


class VaultStore:
    """Open, create and rewrite a vault file.

    Every file operation runs under the store's advisory lock. The lock is
    re-entrant, so callers can hold ``locked()`` across a whole
    open-mutate-persist cycle to keep other processes from interleaving
    (``transaction()`` does exactly that).
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        config: Optional[VaultConfig] = None,
    ):
        if config is None:
            config = VaultConfig() if path is None else VaultConfig(path=Path(path))
        elif path is not None:
            config = config.model_copy(update={"path": Path(path)})
        self._config = config
        self._lock = FileLock(config.lock_path, timeout=config.lock_timeout)

    def __repr__(self) -> str:
        return f"<VaultStore path={str(self.path)!r}>"

    @property
    def path(self) -> Path:
        return self._config.path

    @property
    def config(self) -> VaultConfig:
        return self._config

    def exists(self) -> bool:
        return self.path.exists()

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator["VaultStore"]:
        """Hold the advisory vault lock for the duration of the block.

        Raises:
            LockTimeout: If another process holds the lock too long.
        """
        with self._lock:
            yield self

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            raise VaultNotFound(f"No vault at {self.path}") from None
        except OSError as err:
            raise IoFailure(f"Could not read vault {self.path}") from err

    def _write_atomic(self, data: bytes, create: bool = False) -> None:
        """Write ``data`` to a temp file beside the vault and rename it over.

        The vault is either the old file or the new one, never a mix;
        on any failure before the rename the temp file is removed.
        With ``create`` the temp file is hard-linked into place instead,
        which fails rather than replace a file that appeared meanwhile.
        """
        directory = self.path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory,
            )
        except OSError as err:
            raise IoFailure(f"Could not create temp file in {directory}") from err
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                if self._config.fsync:
                    os.fsync(fh.fileno())
            os.chmod(tmp_name, self._config.file_mode)
            if create:
                os.link(tmp_name, self.path)
                os.unlink(tmp_name)
            else:
                os.replace(tmp_name, self.path)
        except BaseException as err:
            with suppress(FileNotFoundError):
                os.unlink(tmp_name)
            if isinstance(err, FileExistsError):
                raise AlreadyExists(f"Vault path is occupied: {self.path}") from None
            if isinstance(err, OSError):
                raise IoFailure(f"Could not write vault {self.path}") from err
            raise
        if self._config.fsync:
            self._fsync_directory(directory)

    @staticmethod
    def _fsync_directory(directory: Path) -> None:
        """Make the rename durable. Directories cannot be opened on Windows."""
        if os.name != "posix":
            return
        try:
            dir_fd = os.open(directory, os.O_RDONLY)
        except OSError as err:
            raise IoFailure(f"Could not sync directory {directory}") from err
        try:
            os.fsync(dir_fd)
        except OSError as err:
            raise IoFailure(f"Could not sync directory {directory}") from err
        finally:
            os.close(dir_fd)

    def _load_blob(self) -> SealedBlob:
        data = self._read()
        try:
            return SealedBlob.from_bytes(data)
        except AuthenticationFailed:
            logger.warning("Vault unreadable: path=%s", self.path)
            raise

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def init(self, master_secret: str) -> None:
        """Create an empty vault sealed with ``master_secret``.

        Raises:
            AlreadyExists: If the path is occupied.
            KeyDerivationFailed: If the key cannot be derived.
            IoFailure: If the file cannot be written.
        """
        with self.locked():
            if self.path.exists():
                raise AlreadyExists(f"Vault path is occupied: {self.path}")
            salt = generate_salt()
            key = derive_key(master_secret, salt)
            try:
                blob = seal(encode_records(VaultContents()), key, salt)
            finally:
                wipe(key)
            self._write_atomic(blob.to_bytes(), create=True)
        logger.info("Vault initialized: path=%s format=v%d", self.path, blob.version)

    def open(self, master_secret: str) -> VaultHandle:
        """Authenticate the vault and decode its records.

        Returns:
            VaultHandle over the decrypted contents.

        Raises:
            VaultNotFound: If there is no vault file.
            AuthenticationFailed: Wrong secret, or the file was altered.
            MalformedRecords: If the authenticated payload does not parse.
        """
        with self.locked():
            blob = self._load_blob()
        key = derive_key(master_secret, blob.salt, blob.version)
        try:
            plaintext = unseal(blob, key)
        except AuthenticationFailed:
            logger.warning("Vault authentication failed: path=%s", self.path)
            raise
        finally:
            wipe(key)
        contents = decode_records(plaintext)
        del plaintext
        logger.debug(
            "Vault opened: path=%s format=v%d records=%d",
            self.path, blob.version, len(contents),
        )
        return VaultHandle(self.path, blob.version, blob.salt, blob.nonce, contents)

    def persist(self, handle: VaultHandle, master_secret: str) -> None:
        """Re-seal the handle's contents and atomically replace the vault.

        The current file must still be the generation the handle was
        opened from, and must authenticate under ``master_secret``;
        otherwise nothing is written.

        Raises:
            VaultNotFound: If the vault file was removed.
            StaleHandle: If the vault was rewritten since the handle was opened.
            AuthenticationFailed: If ``master_secret`` does not open the vault.
            IoFailure: If the new file cannot be written.
        """
        if Path(handle.path) != self.path:
            raise ValueError(
                f"Handle belongs to {handle.path}, not to {self.path}"
            )
        with self.locked():
            current = self._load_blob()
            if current.salt != handle.salt or current.nonce != handle.nonce:
                raise StaleHandle(
                    f"Vault {self.path} changed since it was opened; open it again"
                )
            key = derive_key(master_secret, current.salt, current.version)
            try:
                try:
                    unseal(current, key)
                except AuthenticationFailed:
                    logger.warning(
                        "Vault authentication failed on persist: path=%s", self.path,
                    )
                    raise
                blob = seal(
                    encode_records(handle.contents), key, current.salt, current.version,
                )
            finally:
                wipe(key)
            self._write_atomic(blob.to_bytes())
            handle._rebase(blob.nonce)
        logger.info(
            "Vault persisted: path=%s records=%d", self.path, len(handle.contents),
        )

    @contextmanager
    def transaction(self, master_secret: str) -> Iterator[VaultHandle]:
        """Open the vault under the lock and persist it when the block ends.

        Nothing is written if the block raises or leaves the contents
        unchanged. The lock is held from open to persist, so concurrent
        cooperating processes cannot lose each other's updates.
        """
        with self.locked():
            handle = self.open(master_secret)
            yield handle
            if handle.is_changed:
                self.persist(handle, master_secret)
