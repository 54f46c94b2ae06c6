"""
ShareVault — Subspace maps stored as signed, encrypted store slots.

Each ``(owner public key, namespace)`` slot on the metadata store holds one
encrypted JSON object mapping subspace labels to entries:

- ``DeviceShareVault`` — entries are the values themselves; the map is
  encrypted to the owner and only the owner can read or write it.
- ``TorusShareVault`` — entries are Envelopes encrypted to a recipient key;
  the map is encrypted to the submitter. Reading needs both private keys.

Every write is a read-modify-write of the whole map:
``get → decrypt → map[label] = entry → encrypt → sign → set``.
There is no per-label patch at the store. Writes through one
``MetadataStorageLayer`` are serialized per slot, but two writers in
different processes can still lose each other's update (last write wins
for the whole map).

Security Note:
    Never log plaintext or ciphertext values. Only log public key X
    coordinates, namespaces and subspace labels.
"""
import logging
from enum import Enum
from typing import Any, Optional

from ..exceptions import DecryptionFailure, SerializationError, VaultCorrupted
from ..keys import PrivateKeyLike, PubKeyParams, public_key_params
from ..storage import MetadataStorageLayer
from .crypto import (
    Envelope,
    decrypt,
    decrypt_data,
    encrypt,
    encrypt_data,
    deserialize_value,
    serialize_value,
    unwrap_value,
    wrap_value,
)

logger = logging.getLogger("metadata.vault")


class VaultNamespace(str, Enum):
    """Store namespaces partitioning each owner key's slots."""

    SharedShare = "webauthn_torus_share"
    DeviceShare = "webauthn_device_share"


class ShareVault:
    """Read-modify-write access to one namespace of subspace maps.

    Subclasses decide what an entry is; this class owns loading, storing
    and the per-slot write cycle.
    """

    namespace: VaultNamespace

    def __init__(self, storage: MetadataStorageLayer):
        self._storage = storage

    def __repr__(self) -> str:
        return f"<{type(self).__name__} namespace={self.namespace.value}>"

    # ------------------------------------------------------------------
    # Label validation
    # ------------------------------------------------------------------

    def _validate_subspace(self, subspace: str) -> None:
        """Validate a subspace label.

        Raises:
            ValueError: If the label is not a non-empty string.
        """
        if not isinstance(subspace, str) or not subspace:
            raise ValueError("Subspace label must be a non-empty string")

    # ------------------------------------------------------------------
    # Slot I/O
    # ------------------------------------------------------------------

    async def load(self, owner_key: PrivateKeyLike) -> Optional[dict[str, Any]]:
        """Fetch and decrypt the owner's subspace map.

        Returns:
            The map, or None if the slot has never been written.

        Raises:
            VaultCorrupted: If the stored envelope does not open with the key.
            SerializationError: If the stored data is not a JSON object.
            StoreReadError: On transport failure.
        """
        pub_key = public_key_params(owner_key)
        blob = await self._storage.get_metadata(pub_key, self.namespace.value)
        if not blob:
            return None
        try:
            data = decrypt_data(owner_key, blob)
        except DecryptionFailure as err:
            raise VaultCorrupted(
                f"Cannot decrypt {self.namespace.value} slot for "
                f"pub_key_X={pub_key.pub_key_X}: {err}"
            ) from err
        if not isinstance(data, dict):
            raise SerializationError(
                f"{self.namespace.value} slot does not hold a subspace map"
            )
        return data

    async def store(self, owner_key: PrivateKeyLike, subspaces: dict[str, Any]) -> None:
        """Encrypt the whole map to the owner, sign it and write the slot.

        Raises:
            StoreWriteError: On transport failure; the slot is unchanged or
                in an unknown state, so re-read before retrying.
        """
        blob = encrypt_data(owner_key, subspaces)
        params = self._storage.generate_metadata_params(blob, owner_key)
        await self._storage.set_metadata(params, self.namespace.value)

    async def _update(self, owner_key: PrivateKeyLike, subspace: str, entry: Any) -> None:
        pub_key = public_key_params(owner_key)
        async with self._storage.slot_lock(pub_key, self.namespace.value):
            data = await self.load(owner_key) or {}
            data[subspace] = entry
            await self.store(owner_key, data)
        logger.debug(
            "Vault set: pub_key_X=%s namespace=%s subspace=%s",
            pub_key.pub_key_X, self.namespace.value, subspace,
        )

    # ------------------------------------------------------------------
    # Map-level helpers
    # ------------------------------------------------------------------

    async def subspaces(self, owner_key: PrivateKeyLike) -> list[str]:
        """List the labels currently stored in the owner's slot."""
        data = await self.load(owner_key)
        return list(data) if data else []

    async def exists(self, owner_key: PrivateKeyLike, subspace: str) -> bool:
        """Check whether a label is present in the owner's slot."""
        self._validate_subspace(subspace)
        data = await self.load(owner_key)
        return bool(data) and subspace in data

    async def delete(self, owner_key: PrivateKeyLike, subspace: str) -> bool:
        """Remove one label from the owner's slot.

        Returns:
            True if the label existed and the slot was rewritten.
        """
        self._validate_subspace(subspace)
        pub_key = public_key_params(owner_key)
        async with self._storage.slot_lock(pub_key, self.namespace.value):
            data = await self.load(owner_key)
            if not data or subspace not in data:
                return False
            del data[subspace]
            await self.store(owner_key, data)
        logger.debug(
            "Vault delete: pub_key_X=%s namespace=%s subspace=%s",
            pub_key.pub_key_X, self.namespace.value, subspace,
        )
        return True


class DeviceShareVault(ShareVault):
    """Single-layer vault: values live in a map only the owner can open."""

    namespace = VaultNamespace.DeviceShare

    async def set(self, owner_key: PrivateKeyLike, subspace: str, value: Any) -> None:
        """Store ``value`` under ``subspace`` in the owner's device slot.

        Supported types: str, int, float, dict, list, bytes, bool, None.
        """
        self._validate_subspace(subspace)
        await self._update(owner_key, subspace, wrap_value(value))

    async def get(self, owner_key: PrivateKeyLike, subspace: str, default: Any = None) -> Any:
        """Return the value under ``subspace``, or ``default`` if absent.

        A stored empty string is returned as ``""``, not as absent.
        """
        self._validate_subspace(subspace)
        data = await self.load(owner_key)
        if not data or subspace not in data:
            return default
        return unwrap_value(data[subspace])


class TorusShareVault(ShareVault):
    """Two-layer vault: per-recipient envelopes inside a submitter-owned map."""

    namespace = VaultNamespace.SharedShare

    async def set(
        self,
        recipient_pub_key: PubKeyParams,
        submitter_key: PrivateKeyLike,
        subspace: str,
        value: Any,
    ) -> None:
        """Deposit ``value`` for ``recipient_pub_key`` in the submitter's slot.

        The value is encrypted to the recipient first; the resulting envelope
        becomes the map entry, and the map is encrypted to the submitter.
        """
        self._validate_subspace(subspace)
        envelope = encrypt(recipient_pub_key, serialize_value(value))
        await self._update(submitter_key, subspace, envelope.to_hex())

    async def get(
        self,
        recipient_key: PrivateKeyLike,
        submitter_key: PrivateKeyLike,
        subspace: str,
        default: Any = None,
    ) -> Any:
        """Open the submitter's map, then the recipient's envelope in it.

        Returns:
            The deposited value, or ``default`` if the slot or label is absent.

        Raises:
            VaultCorrupted: If ``submitter_key`` cannot open the map.
            DecryptionFailure: If ``recipient_key`` cannot open the envelope.
        """
        self._validate_subspace(subspace)
        data = await self.load(submitter_key)
        if not data:
            return default
        entry = data.get(subspace)
        if not entry:
            return default
        envelope = Envelope.from_hex(entry)
        return deserialize_value(decrypt(recipient_key, envelope))
