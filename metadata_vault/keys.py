"""
Key handling — private scalar loading and public key coordinates.

Private keys are accepted as hex strings, raw 32-byte buffers or ints and
normalized to 32 big-endian bytes. Public keys travel as a pair of
lowercase, zero-padded 64-character hex coordinates (``pub_key_X``,
``pub_key_Y``), which is the form the metadata store expects.

Security Note:
    Never log private key material. ``KeyPair.__repr__`` only shows the
    public X coordinate.
"""
import re
import secrets
from typing import Union

from eth_keys import keys
from pydantic import BaseModel, field_validator

from .exceptions import InvalidPrivateKey

# secp256k1 group order
SECP256K1_N = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)
KEY_SIZE = 32

_HEX_64 = re.compile(r"^[0-9a-f]{1,64}$")

PrivateKeyLike = Union[str, bytes, bytearray, int, "KeyPair"]


def load_private_key(value: PrivateKeyLike) -> bytes:
    """Normalize a private key to 32 big-endian bytes.

    Hex strings may carry a ``0x`` prefix and are left-padded to 64
    characters before decoding.

    Raises:
        InvalidPrivateKey: If the value is malformed or not in ``[1, n-1]``.
    """
    if isinstance(value, KeyPair):
        return value.private_key
    if isinstance(value, bool):
        raise InvalidPrivateKey("Private key cannot be a boolean")
    if isinstance(value, int):
        if value < 0 or value.bit_length() > KEY_SIZE * 8:
            raise InvalidPrivateKey("Private key integer out of range")
        raw = value.to_bytes(KEY_SIZE, "big")
    elif isinstance(value, (bytes, bytearray)):
        if len(value) != KEY_SIZE:
            raise InvalidPrivateKey(
                f"Private key must be {KEY_SIZE} bytes, got {len(value)}"
            )
        raw = bytes(value)
    elif isinstance(value, str):
        hex_value = value.strip().lower()
        if hex_value.startswith("0x"):
            hex_value = hex_value[2:]
        if not _HEX_64.match(hex_value):
            raise InvalidPrivateKey("Private key is not a hex string of at most 64 chars")
        raw = bytes.fromhex(hex_value.rjust(KEY_SIZE * 2, "0"))
    else:
        raise InvalidPrivateKey(
            f"Unsupported private key type: {type(value).__name__}"
        )
    scalar = int.from_bytes(raw, "big")
    if not 0 < scalar < SECP256K1_N:
        raise InvalidPrivateKey("Private key is not a valid secp256k1 scalar")
    return raw


class PubKeyParams(BaseModel):
    """Public key coordinates as sent to the metadata store."""

    pub_key_X: str
    pub_key_Y: str

    @field_validator("pub_key_X", "pub_key_Y")
    @classmethod
    def normalize_coordinate(cls, v: str) -> str:
        """Lowercase, strip ``0x`` and zero-pad to 64 hex chars."""
        v = v.strip().lower()
        if v.startswith("0x"):
            v = v[2:]
        if not _HEX_64.match(v):
            raise ValueError("Coordinate must be at most 64 hex characters")
        return v.rjust(KEY_SIZE * 2, "0")

    def to_bytes(self) -> bytes:
        """Return the 65-byte uncompressed SEC1 point (``04 || X || Y``)."""
        return b"\x04" + bytes.fromhex(self.pub_key_X) + bytes.fromhex(self.pub_key_Y)

    @classmethod
    def from_bytes(cls, data: bytes) -> "PubKeyParams":
        """Build coordinates from a 64-byte ``X || Y`` or 65-byte SEC1 point."""
        if len(data) == 65 and data[0] == 0x04:
            data = data[1:]
        if len(data) != 2 * KEY_SIZE:
            raise ValueError(
                f"Public key must be 64 or 65 bytes, got {len(data)}"
            )
        return cls(pub_key_X=data[:KEY_SIZE].hex(), pub_key_Y=data[KEY_SIZE:].hex())


def public_key_params(private_key: PrivateKeyLike) -> PubKeyParams:
    """Derive the public key coordinates for a private key."""
    if isinstance(private_key, KeyPair):
        return private_key.public_key
    raw = load_private_key(private_key)
    return PubKeyParams.from_bytes(keys.PrivateKey(raw).public_key.to_bytes())


class KeyPair:
    """A secp256k1 private scalar and its public point.

    The caller owns the private scalar; nothing in this package
    persists it.
    """

    __slots__ = ("_private_key", "_public_key")

    def __init__(self, private_key: PrivateKeyLike):
        self._private_key = load_private_key(private_key)
        self._public_key = PubKeyParams.from_bytes(
            keys.PrivateKey(self._private_key).public_key.to_bytes()
        )

    @classmethod
    def generate(cls) -> "KeyPair":
        """Generate a random key pair."""
        while True:
            candidate = secrets.token_bytes(KEY_SIZE)
            if 0 < int.from_bytes(candidate, "big") < SECP256K1_N:
                return cls(candidate)

    @property
    def private_key(self) -> bytes:
        return self._private_key

    @property
    def private_key_hex(self) -> str:
        return self._private_key.hex()

    @property
    def public_key(self) -> PubKeyParams:
        return self._public_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return secrets.compare_digest(self._private_key, other._private_key)

    def __hash__(self) -> int:
        return hash((self._public_key.pub_key_X, self._public_key.pub_key_Y))

    def __repr__(self) -> str:
        return f"<KeyPair pub_key_X={self._public_key.pub_key_X[:16]}...>"
