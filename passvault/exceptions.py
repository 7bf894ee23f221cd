"""
Vault Errors — distinct, inspectable outcomes of every vault operation.

Security Note:
    Messages carry paths and record names only. Never put secrets, keys
    or plaintext into an exception message.
"""


class VaultError(Exception):
    """Base class for all vault errors."""


class NotFound(VaultError):
    """A vault file or a record does not exist."""


class VaultNotFound(NotFound):
    """No vault file at the given path."""


class RecordNotFound(NotFound):
    """No record with the given name."""


class AlreadyExists(VaultError):
    """A vault cannot be initialized over an occupied path."""


class AuthenticationFailed(VaultError):
    """Wrong master secret, or a tampered, truncated or unreadable vault.

    These cases are merged on purpose: callers cannot tell a wrong
    secret from a corrupted file.
    """


class MalformedRecords(VaultError):
    """Authenticated plaintext did not decode into records."""


class KeyDerivationFailed(VaultError):
    """The key derivation function rejected its parameters or input."""


class IoFailure(VaultError):
    """Reading, writing, renaming or locking the vault file failed.

    The underlying ``OSError`` is available as ``__cause__``.
    """


class LockTimeout(IoFailure):
    """The advisory vault lock could not be acquired in time."""


class DuplicateRecord(VaultError, ValueError):
    """A record with the same name is already in the vault."""


class StaleHandle(VaultError):
    """The vault file was rewritten after this handle was opened."""
