"""Vault — Single-file credential storage sealed with a master secret.

Security Note (Threat Model):
    Records are protected at rest only. While a vault is open, the
    decrypted records live in process memory; an attacker able to run
    code on the host at that time can read them. Derived keys are wiped
    on release, but Python gives no guarantee that every copy of a
    secret or of the plaintext is cleared.
"""

from .store import VaultStore, VaultHandle
from .config import VaultConfig
from .crypto import (
    FORMAT_VERSION,
    SealedBlob,
    derive_key,
    generate_salt,
    seal,
    unseal,
    encode_records,
    decode_records,
)
from .lock import FileLock

__all__ = [
    "VaultStore",
    "VaultHandle",
    "VaultConfig",
    "FORMAT_VERSION",
    "SealedBlob",
    "derive_key",
    "generate_salt",
    "seal",
    "unseal",
    "encode_records",
    "decode_records",
    "FileLock",
]
