"""
Vault Crypto Core — Key derivation, sealing/unsealing, and record serialization.

Implements the envelope of a vault file:
- Key layer: Argon2id(master_secret, salt) → 32-byte key
- Sealed layer: AES-GCM(key, nonce, records, aad=[version|salt]) → [version 1B][salt 16B][nonce 12B][payload + tag]

Argon2id parameters, salt length and record encoding are fixed per format
version, so any implementation reading format v1 derives the same key.

Security Note:
    Never log plaintext, keys or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import logging
from collections.abc import Iterable
from typing import NamedTuple, Union

import orjson
from pydantic import ValidationError
from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id

from ..data import CredentialRecord, VaultContents
from ..exceptions import (
    AuthenticationFailed,
    DuplicateRecord,
    KeyDerivationFailed,
    MalformedRecords,
)

logger = logging.getLogger("passvault.vault")

FORMAT_VERSION = 1
VERSION_SIZE = 1
SALT_SIZE = 16
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16    # GCM tag
KEY_LENGTH = 32  # AES-256
HEADER_SIZE = VERSION_SIZE + SALT_SIZE + NONCE_SIZE

RECORDS_VERSION = 1
_PAYLOAD_KEYS = frozenset(("version", "records"))

# Same message for every failure to open a container, so a wrong secret
# reads exactly like a damaged file.
_AUTH_FAILED = "Vault could not be opened: wrong master secret or damaged file"

Key = Union[bytes, bytearray]


class KdfParameters(NamedTuple):
    """Argon2id cost parameters of one format version."""
    memory_cost: int  # KiB
    iterations: int
    lanes: int


# RFC 9106 second recommended option (64 MiB, t=3, p=4).
KDF_PARAMETERS: dict[int, KdfParameters] = {
    1: KdfParameters(memory_cost=64 * 1024, iterations=3, lanes=4),
}


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def generate_salt() -> bytes:
    """Generate a fresh random salt. Only called when a vault is created."""
    return os.urandom(SALT_SIZE)


def derive_key(secret: str, salt: bytes, version: int = FORMAT_VERSION) -> bytearray:
    """Derive the 32-byte vault key from the master secret using Argon2id.

    Args:
        secret: Master secret as entered by the user.
        salt: Salt stored in the vault header (at least 16 bytes).
        version: Format version selecting the Argon2id parameters.

    Returns:
        32-byte key in a mutable buffer; release it with ``wipe()``.

    Raises:
        KeyDerivationFailed: If the version is unknown, the salt is too
            short, or the Argon2id backend rejects its input.
    """
    if not isinstance(secret, str):
        raise TypeError(f"Master secret must be str, got {type(secret).__name__}")
    params = KDF_PARAMETERS.get(version)
    if params is None:
        raise KeyDerivationFailed(
            f"No key derivation parameters for format version {version}"
        )
    if len(salt) < SALT_SIZE:
        raise KeyDerivationFailed(
            f"Salt too short: {len(salt)} bytes (minimum {SALT_SIZE})"
        )
    try:
        material = secret.encode("utf-8")
    except UnicodeEncodeError:
        # the error text would quote part of the secret
        raise KeyDerivationFailed("Master secret is not valid UTF-8") from None
    try:
        kdf = Argon2id(
            salt=bytes(salt),
            length=KEY_LENGTH,
            iterations=params.iterations,
            lanes=params.lanes,
            memory_cost=params.memory_cost,
        )
        key = bytearray(kdf.derive(material))
    except (ValueError, UnsupportedAlgorithm, MemoryError) as err:
        raise KeyDerivationFailed(
            f"Argon2id key derivation failed for format version {version}"
        ) from err
    logger.debug("Derived vault key (format v%d)", version)
    return key


def wipe(buffer: Key) -> None:
    """Overwrite a key buffer with zeros.

    Best effort: only mutable ``bytearray`` buffers can be cleared, and
    copies made by the runtime or the crypto backend are out of reach.
    """
    if isinstance(buffer, bytearray):
        buffer[:] = bytes(len(buffer))


# ---------------------------------------------------------------------------
# Sealed container
# ---------------------------------------------------------------------------

class SealedBlob(NamedTuple):
    """The parts of an encrypted vault file."""
    version: int
    salt: bytes
    nonce: bytes
    ciphertext: bytes  # payload + GCM tag

    @property
    def header(self) -> bytes:
        """``version || salt``, authenticated as associated data."""
        return bytes([self.version]) + self.salt

    def to_bytes(self) -> bytes:
        """Serialize to the on-disk layout."""
        return self.header + self.nonce + self.ciphertext

    @classmethod
    def from_bytes(cls, data: bytes) -> "SealedBlob":
        """Split a vault file into its parts.

        Raises:
            AuthenticationFailed: If the data is truncated or carries an
                unknown format version.
        """
        _min = HEADER_SIZE + TAG_SIZE
        if len(data) < _min:
            logger.debug(
                "Sealed blob too short: %d bytes (minimum %d)", len(data), _min,
            )
            raise AuthenticationFailed(_AUTH_FAILED)
        version = data[0]
        if version not in KDF_PARAMETERS:
            logger.debug("Sealed blob has unknown format version %d", version)
            raise AuthenticationFailed(_AUTH_FAILED)
        salt = data[VERSION_SIZE:VERSION_SIZE + SALT_SIZE]
        nonce = data[VERSION_SIZE + SALT_SIZE:HEADER_SIZE]
        return cls(version, bytes(salt), bytes(nonce), bytes(data[HEADER_SIZE:]))


def _cipher(key: Key) -> AESGCM:
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Vault key must be {KEY_LENGTH} bytes, got {len(key)}")
    return AESGCM(key)


def seal(
    plaintext: bytes, key: Key, salt: bytes, version: int = FORMAT_VERSION
) -> SealedBlob:
    """Encrypt plaintext under a fresh random nonce.

    Args:
        plaintext: Encoded records.
        key: 32-byte key from ``derive_key(secret, salt)``.
        salt: The vault's salt, stored in the header.
        version: Format version written to the header.

    Returns:
        SealedBlob ready for ``to_bytes()``.
    """
    if len(salt) != SALT_SIZE:
        raise ValueError(f"Salt must be {SALT_SIZE} bytes, got {len(salt)}")
    if version not in KDF_PARAMETERS:
        raise ValueError(f"Unknown format version {version}")
    nonce = os.urandom(NONCE_SIZE)
    header = bytes([version]) + bytes(salt)
    ct = _cipher(key).encrypt(nonce, plaintext, header)
    return SealedBlob(version, bytes(salt), nonce, ct)


def unseal(blob: SealedBlob, key: Key) -> bytes:
    """Authenticate and decrypt a sealed blob.

    Fails closed: nothing is returned unless the tag verifies.

    Raises:
        AuthenticationFailed: Wrong key, or the blob was altered.
    """
    try:
        return _cipher(key).decrypt(blob.nonce, blob.ciphertext, blob.header)
    except InvalidTag:
        raise AuthenticationFailed(_AUTH_FAILED) from None


# ---------------------------------------------------------------------------
# Record serialization
# ---------------------------------------------------------------------------

def encode_records(records: Iterable[CredentialRecord]) -> bytes:
    """Serialize records to canonical orjson bytes.

    Format: {"version": 1, "records": [{"name", "username", "secret"}, ...]}
    Keys are written in a fixed order, so equal contents encode to equal bytes.
    """
    payload = {
        "version": RECORDS_VERSION,
        "records": [
            {
                "name": record.name,
                "username": record.username,
                "secret": record.secret,
            }
            for record in records
        ],
    }
    try:
        return orjson.dumps(payload)
    except orjson.JSONEncodeError:
        raise MalformedRecords("Records could not be encoded as UTF-8 JSON") from None


def decode_records(data: bytes) -> VaultContents:
    """Deserialize bytes from ``encode_records`` back into VaultContents.

    Decode errors are raised ``from None``: both orjson and pydantic
    errors embed the offending input, which here is decrypted plaintext.

    Raises:
        MalformedRecords: If the payload does not describe a valid
            record collection.
    """
    try:
        payload = orjson.loads(data)
    except orjson.JSONDecodeError:
        raise MalformedRecords("Vault payload is not valid JSON") from None
    if not isinstance(payload, dict):
        raise MalformedRecords("Vault payload must be a JSON object")
    if payload.keys() != _PAYLOAD_KEYS:
        raise MalformedRecords("Vault payload has missing or unknown keys")
    version = payload["version"]
    # bool is an int subclass and 1.0 == 1, so compare the type too
    if type(version) is not int or version != RECORDS_VERSION:
        raise MalformedRecords(f"Unsupported record format version: {version!r}")
    items = payload.get("records")
    if not isinstance(items, list):
        raise MalformedRecords("Vault payload has no record list")
    records = []
    for idx, item in enumerate(items):
        try:
            records.append(CredentialRecord.model_validate(item))
        except ValidationError:
            raise MalformedRecords(f"Record #{idx} is invalid") from None
    try:
        return VaultContents(records)
    except DuplicateRecord as err:
        raise MalformedRecords(str(err)) from None
