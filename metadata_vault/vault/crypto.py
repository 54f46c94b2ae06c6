"""
Vault Crypto Core — ECIES envelopes, data encryption and serialization.

Implements the public-key envelope used by every layer of the vault:
- Ephemeral ECDH on secp256k1 → SHA-512(shared_x) → [aes_key 32B][mac_key 32B]
- AES-256-CBC with PKCS#7 padding and a random 16-byte IV
- HMAC-SHA256 over [iv][ephemeral public key 65B][ciphertext]

An Envelope is readable only by the holder of the recipient private key;
any bit flip in the IV, ephemeral key, ciphertext or MAC fails the MAC check
before a single byte is decrypted.

Security Note:
    Never log plaintext or ciphertext values.
    A fresh ephemeral key is generated on every call, so encrypting the
    same plaintext twice never yields the same envelope.
"""
import os
import base64
import logging
from typing import Any

import orjson
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..exceptions import DecryptionFailure, SerializationError
from ..keys import PrivateKeyLike, PubKeyParams, load_private_key, public_key_params

logger = logging.getLogger("metadata.vault")

IV_SIZE = 16
KEY_LENGTH = 32  # AES-256 and HMAC key halves of SHA-512
MAC_SIZE = 32

CURVE = ec.SECP256K1()

_BYTES_WRAPPER_KEY = "__vault_bytes_b64__"
_ESCAPE_WRAPPER_KEY = "__vault_escaped__"
_RESERVED_KEYS = frozenset((_BYTES_WRAPPER_KEY, _ESCAPE_WRAPPER_KEY))


class Envelope(BaseModel):
    """One value encrypted to exactly one recipient public key.

    Fields are raw bytes in memory and lowercase hex on the wire. The
    ephemeral key is serialized as ``ephemPublicKey``, the name existing
    stored data uses; ``ephemeralPublicKey`` is accepted when parsing.
    """

    model_config = ConfigDict(frozen=True)

    iv: bytes
    ephemeral_public_key: bytes = Field(
        serialization_alias="ephemPublicKey",
        validation_alias=AliasChoices(
            "ephemPublicKey", "ephemeralPublicKey", "ephemeral_public_key",
        ),
    )
    ciphertext: bytes
    mac: bytes

    @field_validator("iv", "ephemeral_public_key", "ciphertext", "mac", mode="before")
    @classmethod
    def decode_hex(cls, v: Any) -> bytes:
        """Accept raw bytes or a hex string."""
        if isinstance(v, (bytes, bytearray)):
            return bytes(v)
        if isinstance(v, str):
            return bytes.fromhex(v)
        raise ValueError(f"Expected bytes or hex string, got {type(v).__name__}")

    @field_serializer("iv", "ephemeral_public_key", "ciphertext", "mac")
    def encode_hex(self, v: bytes) -> str:
        return v.hex()

    def to_hex(self) -> dict[str, str]:
        """Wire form: ``{iv, ephemPublicKey, ciphertext, mac}`` as hex strings."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_hex(cls, data: Any) -> "Envelope":
        """Parse the wire form.

        Raises:
            SerializationError: If fields are missing or not valid hex.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as err:
            raise SerializationError(f"Malformed envelope: {err}") from err


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------

def _load_public_key(public_key: PubKeyParams | bytes) -> ec.EllipticCurvePublicKey:
    if isinstance(public_key, PubKeyParams):
        public_key = public_key.to_bytes()
    return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, public_key)


def _load_ec_private_key(private_key: PrivateKeyLike) -> ec.EllipticCurvePrivateKey:
    raw = load_private_key(private_key)
    return ec.derive_private_key(int.from_bytes(raw, "big"), CURVE)


def _kdf(shared_secret: bytes) -> tuple[bytes, bytes]:
    """Split SHA-512(shared_secret) into (encryption_key, mac_key)."""
    digest = hashes.Hash(hashes.SHA512())
    digest.update(shared_secret)
    derived = digest.finalize()
    return derived[:KEY_LENGTH], derived[KEY_LENGTH:]


def _mac(mac_key: bytes, data: bytes) -> hmac.HMAC:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(data)
    return h


# ---------------------------------------------------------------------------
# Envelope encryption
# ---------------------------------------------------------------------------

def encrypt(public_key: PubKeyParams | bytes, plaintext: bytes) -> Envelope:
    """Encrypt ``plaintext`` to ``public_key`` under a fresh ephemeral key.

    Args:
        public_key: Recipient coordinates or a 65-byte SEC1 point.
        plaintext: Raw bytes; callers JSON-encode beforehand.

    Returns:
        A new Envelope.

    Raises:
        ValueError: If ``public_key`` is not a point on secp256k1.
    """
    recipient = _load_public_key(public_key)
    ephemeral = ec.generate_private_key(CURVE)
    ephemeral_public = ephemeral.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    shared = ephemeral.exchange(ec.ECDH(), recipient)
    enc_key, mac_key = _kdf(shared)

    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    mac = _mac(mac_key, iv + ephemeral_public + ciphertext).finalize()
    return Envelope(
        iv=iv,
        ephemeral_public_key=ephemeral_public,
        ciphertext=ciphertext,
        mac=mac,
    )


def _verify_mac(shared: bytes, envelope: Envelope) -> bytes | None:
    """Return the encryption key if the MAC checks out under ``shared``."""
    enc_key, mac_key = _kdf(shared)
    data = envelope.iv + envelope.ephemeral_public_key + envelope.ciphertext
    try:
        _mac(mac_key, data).verify(envelope.mac)
    except InvalidSignature:
        return None
    return enc_key


def decrypt(private_key: PrivateKeyLike, envelope: Envelope) -> bytes:
    """Decrypt an envelope addressed to ``private_key``.

    The MAC is checked before decrypting. Envelopes written by older
    clients derived the keys from the shared secret with leading zero
    bytes stripped; that form is tried when the padded one does not match.

    Raises:
        DecryptionFailure: On a wrong key, a bad MAC or malformed fields.
    """
    receiver = _load_ec_private_key(private_key)
    if len(envelope.iv) != IV_SIZE or len(envelope.mac) != MAC_SIZE:
        raise DecryptionFailure("Envelope has an invalid IV or MAC length")
    try:
        ephemeral = _load_public_key(envelope.ephemeral_public_key)
    except ValueError as err:
        raise DecryptionFailure("Envelope ephemeral key is not a valid point") from err

    shared = receiver.exchange(ec.ECDH(), ephemeral)
    enc_key = _verify_mac(shared, envelope)
    if enc_key is None and shared[0] == 0:
        enc_key = _verify_mac(shared.lstrip(b"\x00"), envelope)
    if enc_key is None:
        raise DecryptionFailure("Bad MAC: wrong key or tampered envelope")

    try:
        decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(envelope.iv)).decryptor()
        padded = decryptor.update(envelope.ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as err:
        raise DecryptionFailure("Envelope ciphertext is malformed") from err


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def wrap_value(value: Any) -> Any:
    """Tag bytes as {"__vault_bytes_b64__": "<base64>"}.

    A dict that itself uses one of the reserved tag keys is nested under
    ``"__vault_escaped__"`` so it cannot be mistaken for a tag when read
    back. Anything else passes through.
    """
    if isinstance(value, (bytes, bytearray)):
        return {_BYTES_WRAPPER_KEY: base64.b64encode(value).decode("ascii")}
    if isinstance(value, dict) and _RESERVED_KEYS.intersection(value):
        return {_ESCAPE_WRAPPER_KEY: value}
    return value


def unwrap_value(value: Any) -> Any:
    """Reverse of ``wrap_value``."""
    if not isinstance(value, dict) or len(value) != 1:
        return value
    if _BYTES_WRAPPER_KEY in value:
        return base64.b64decode(value[_BYTES_WRAPPER_KEY])
    if _ESCAPE_WRAPPER_KEY in value:
        return value[_ESCAPE_WRAPPER_KEY]
    return value


def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    Supports: str, int, float, dict, list, bytes, bool, None.
    Top-level bytes values are wrapped for safe JSON round-trip.

    Raises:
        SerializationError: If the value is not JSON-serializable.
    """
    try:
        return orjson.dumps(wrap_value(value))
    except TypeError as err:
        raise SerializationError(f"Value is not serializable: {err}") from err


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes back to a Python value.

    Raises:
        SerializationError: If ``data`` is not valid JSON.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise SerializationError(f"Payload is not valid JSON: {err}") from err
    return unwrap_value(parsed)


# ---------------------------------------------------------------------------
# Self-addressed data
# ---------------------------------------------------------------------------

def encrypt_data(private_key: PrivateKeyLike, value: Any) -> str:
    """Encrypt ``value`` to the key's own public key.

    Returns:
        The envelope as a JSON string, ready for ``build_signed_record``.
    """
    envelope = encrypt(public_key_params(private_key), serialize_value(value))
    return orjson.dumps(envelope.to_hex()).decode("utf-8")


def decrypt_data(private_key: PrivateKeyLike, blob: str) -> Any:
    """Reverse of ``encrypt_data``.

    Raises:
        SerializationError: If ``blob`` or the decrypted payload is not JSON.
        DecryptionFailure: If the envelope cannot be opened with the key.
    """
    try:
        envelope_hex = orjson.loads(blob)
    except orjson.JSONDecodeError as err:
        raise SerializationError(f"Stored envelope is not valid JSON: {err}") from err
    envelope = Envelope.from_hex(envelope_hex)
    return deserialize_value(decrypt(private_key, envelope))
