"""
Signing Codec — Canonical serialization and write authentication.

Every write to the metadata store carries a signature over
``keccak256(canonical({data, timestamp}))`` made with the owner's
secp256k1 key. The canonical form is key-sorted, whitespace-free JSON so
any client reproduces the same bytes for the same record.

Wire signature format (65 bytes, base64 on the wire)::

    [r 32B][s 32B][recovery id 1B]

eth-keys hands signatures back as ``(v, r, s)``; ``to_wire_signature`` and
``from_wire_signature`` are the only places that reorder them.

Security Note:
    No freshness check is made here. A stale timestamp is signed as given;
    rejecting replays is the store's job.
"""
import time
import base64
import logging
from typing import Any, Optional

import orjson
from Crypto.Hash import keccak
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from pydantic import BaseModel

from .keys import KEY_SIZE, PrivateKeyLike, PubKeyParams, load_private_key

logger = logging.getLogger("metadata.storage")

SIGNATURE_SIZE = 2 * KEY_SIZE + 1


class SetData(BaseModel):
    """The signed portion of a metadata record."""

    data: str
    timestamp: str


class MetadataParams(PubKeyParams):
    """A signed record, ready to be posted to ``/set``."""

    set_data: SetData
    signature: str

    def to_payload(self, namespace: Optional[str] = None) -> dict[str, Any]:
        """Render the ``/set`` request body; ``namespace`` is omitted when None."""
        payload = self.model_dump()
        if namespace is not None:
            payload["namespace"] = namespace
        return payload


# ---------------------------------------------------------------------------
# Canonicalization and hashing
# ---------------------------------------------------------------------------

def canonicalize(obj: Any) -> bytes:
    """Key-sorted, whitespace-free UTF-8 JSON."""
    return orjson.dumps(obj, option=orjson.OPT_SORT_KEYS)


def keccak256(data: bytes) -> bytes:
    """Keccak-256 (the pre-NIST padding variant, not SHA3-256)."""
    return keccak.new(data=data, digest_bits=256).digest()


def make_timestamp(server_time_offset: int = 0, now: Optional[float] = None) -> str:
    """Current server time in whole seconds, as lowercase hex.

    Args:
        server_time_offset: Clock skew against the store, in milliseconds.
        now: Unix time in seconds; defaults to ``time.time()``.
    """
    if now is None:
        now = time.time()
    millis = int(now * 1000) + int(server_time_offset)
    return format(millis // 1000, "x")


# ---------------------------------------------------------------------------
# Signature transcoding
# ---------------------------------------------------------------------------

def to_wire_signature(v: int, r: int, s: int) -> bytes:
    """Pack a ``(v, r, s)`` recoverable signature as ``r || s || v``."""
    if v not in (0, 1):
        raise ValueError(f"Recovery id must be 0 or 1, got {v}")
    return r.to_bytes(KEY_SIZE, "big") + s.to_bytes(KEY_SIZE, "big") + bytes([v])


def from_wire_signature(signature: bytes) -> tuple[int, int, int]:
    """Unpack an ``r || s || v`` signature into ``(v, r, s)``.

    Ethereum-style recovery ids (27/28) are folded back to 0/1.
    """
    if len(signature) != SIGNATURE_SIZE:
        raise ValueError(
            f"Signature must be {SIGNATURE_SIZE} bytes, got {len(signature)}"
        )
    r = int.from_bytes(signature[:KEY_SIZE], "big")
    s = int.from_bytes(signature[KEY_SIZE:2 * KEY_SIZE], "big")
    v = signature[-1]
    if v >= 27:
        v -= 27
    return v, r, s


# ---------------------------------------------------------------------------
# Record construction and verification
# ---------------------------------------------------------------------------

def sign_hash(msg_hash: bytes, private_key: PrivateKeyLike) -> bytes:
    """Deterministic (RFC 6979) recoverable signature in wire layout."""
    raw = load_private_key(private_key)
    signature = keys.PrivateKey(raw).sign_msg_hash(msg_hash)
    return to_wire_signature(*signature.vrs)


def build_signed_record(
    message: str,
    private_key: PrivateKeyLike,
    server_time_offset: int = 0,
    now: Optional[float] = None,
) -> MetadataParams:
    """Sign ``message`` for the store under ``private_key``.

    Args:
        message: Opaque string to store (usually an encrypted envelope).
        private_key: Owner key; its public point addresses the slot.
        server_time_offset: Clock skew against the store, in milliseconds.
        now: Unix time override, for tests.

    Returns:
        A fresh MetadataParams; never reuse one across writes.

    Raises:
        InvalidPrivateKey: If ``private_key`` is not a valid scalar.
    """
    raw = load_private_key(private_key)
    pub_key = keys.PrivateKey(raw).public_key.to_bytes()
    set_data = SetData(
        data=message,
        timestamp=make_timestamp(server_time_offset, now),
    )
    msg_hash = keccak256(canonicalize(set_data.model_dump()))
    signature = sign_hash(msg_hash, raw)
    return MetadataParams(
        pub_key_X=pub_key[:KEY_SIZE].hex(),
        pub_key_Y=pub_key[KEY_SIZE:].hex(),
        set_data=set_data,
        signature=base64.b64encode(signature).decode("ascii"),
    )


def verify_signed_record(record: MetadataParams) -> bool:
    """Check that ``record.signature`` was made by ``(pub_key_X, pub_key_Y)``.

    This is the check a conforming store performs before accepting a write.
    """
    try:
        v, r, s = from_wire_signature(base64.b64decode(record.signature, validate=True))
        signature = keys.Signature(vrs=(v, r, s))
        msg_hash = keccak256(canonicalize(record.set_data.model_dump()))
        recovered = signature.recover_public_key_from_msg_hash(msg_hash)
    except (ValueError, BadSignature, ValidationError) as err:
        logger.debug("Signature rejected for pub_key_X=%s: %s", record.pub_key_X, err)
        return False
    expected = bytes.fromhex(record.pub_key_X) + bytes.fromhex(record.pub_key_Y)
    return recovered.to_bytes() == expected
