"""
Metadata Vault — Signed-envelope share storage on a key-addressed metadata store.

Metadata Vault provides two layers:
1. Storage — signed writes and reads against ``(public key, namespace)`` slots
2. Vault — encrypted subspace maps with per-recipient envelopes

Usage:
    from metadata_vault import MetadataStorageLayer, set_device_share
    async with MetadataStorageLayer() as storage:
        await set_device_share(storage, private_key_hex, "google", share)
"""

from .config import StorageConfig
from .exceptions import (
    MetadataError,
    InvalidPrivateKey,
    StoreError,
    StoreReadError,
    StoreWriteError,
    DecryptionFailure,
    VaultCorrupted,
    SerializationError,
)
from .keys import KeyPair, PubKeyParams, load_private_key, public_key_params
from .signing import MetadataParams, SetData, build_signed_record, verify_signed_record
from .storage import MetadataStorageLayer
from .vault import Envelope, DeviceShareVault, TorusShareVault, VaultNamespace
from .shares import (
    get_and_decrypt_data,
    encrypt_and_set_data,
    set_torus_share,
    get_torus_share,
    set_device_share,
    get_device_share,
)
from .version import __version__

__all__ = [
    "StorageConfig",
    "MetadataError",
    "InvalidPrivateKey",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "DecryptionFailure",
    "VaultCorrupted",
    "SerializationError",
    "KeyPair",
    "PubKeyParams",
    "load_private_key",
    "public_key_params",
    "MetadataParams",
    "SetData",
    "build_signed_record",
    "verify_signed_record",
    "MetadataStorageLayer",
    "Envelope",
    "DeviceShareVault",
    "TorusShareVault",
    "VaultNamespace",
    "get_and_decrypt_data",
    "encrypt_and_set_data",
    "set_torus_share",
    "get_torus_share",
    "set_device_share",
    "get_device_share",
    "__version__",
]
