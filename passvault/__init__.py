"""PassVault.

Encrypted single-user credential vault. See ``passvault.vault`` for the
sealed store and ``passvault.__main__`` for the command line.
"""
from .version import __version__
from .data import CredentialRecord, VaultContents
from .exceptions import (
    VaultError,
    NotFound,
    VaultNotFound,
    RecordNotFound,
    AlreadyExists,
    AuthenticationFailed,
    MalformedRecords,
    KeyDerivationFailed,
    IoFailure,
    LockTimeout,
    DuplicateRecord,
    StaleHandle,
)
from .vault import VaultStore, VaultHandle, VaultConfig

__all__ = [
    "__version__",
    "CredentialRecord",
    "VaultContents",
    "VaultStore",
    "VaultHandle",
    "VaultConfig",
    "VaultError",
    "NotFound",
    "VaultNotFound",
    "RecordNotFound",
    "AlreadyExists",
    "AuthenticationFailed",
    "MalformedRecords",
    "KeyDerivationFailed",
    "IoFailure",
    "LockTimeout",
    "DuplicateRecord",
    "StaleHandle",
]
