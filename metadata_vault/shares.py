"""
WebAuthn share resolution — the public get/set share operations.

A *device share* is written and read by the WebAuthn reference key alone.
A *torus share* is deposited by the reference key for a WebAuthn public key
and can only be read back with both private keys.

Example:
    async with MetadataStorageLayer() as storage:
        await set_device_share(storage, ref_key, "google", share)
        share = await get_device_share(storage, ref_key, "google")
"""
from typing import Any, Optional

from .keys import PrivateKeyLike, PubKeyParams
from .storage import MetadataStorageLayer
from .vault import DeviceShareVault, TorusShareVault, VaultNamespace
from .vault.share_vault import ShareVault


def _vault_for(storage: MetadataStorageLayer, namespace: str) -> ShareVault:
    try:
        namespace = VaultNamespace(namespace)
    except ValueError:
        raise ValueError(
            f"Unsupported vault namespace {namespace!r}; expected one of "
            f"{[ns.value for ns in VaultNamespace]}"
        ) from None
    if namespace is VaultNamespace.SharedShare:
        return TorusShareVault(storage)
    return DeviceShareVault(storage)


async def get_and_decrypt_data(
    storage: MetadataStorageLayer,
    private_key: PrivateKeyLike,
    namespace: str,
) -> Optional[dict[str, Any]]:
    """Return the decrypted subspace map in ``namespace``, or None if absent.

    Only the two share namespaces (``VaultNamespace``) are accepted; use
    ``MetadataStorageLayer.get_metadata`` with ``decrypt_data`` for others.

    Raises:
        ValueError: If ``namespace`` is not a ``VaultNamespace`` value.
    """
    return await _vault_for(storage, namespace).load(private_key)


async def encrypt_and_set_data(
    storage: MetadataStorageLayer,
    private_key: PrivateKeyLike,
    data: dict[str, Any],
    namespace: str,
) -> None:
    """Replace the whole subspace map in ``namespace``.

    Raises:
        ValueError: If ``namespace`` is not a ``VaultNamespace`` value.
    """
    await _vault_for(storage, namespace).store(private_key, data)


async def set_torus_share(
    storage: MetadataStorageLayer,
    webauthn_pub_key: PubKeyParams,
    webauthn_ref_key: PrivateKeyLike,
    subspace: str,
    subspace_data: Any,
) -> None:
    """Deposit ``subspace_data`` for the WebAuthn public key."""
    await TorusShareVault(storage).set(
        webauthn_pub_key, webauthn_ref_key, subspace, subspace_data,
    )


async def get_torus_share(
    storage: MetadataStorageLayer,
    webauthn_key: PrivateKeyLike,
    webauthn_ref_key: PrivateKeyLike,
    subspace: str,
) -> Any:
    """Read a torus share; None if it was never deposited."""
    return await TorusShareVault(storage).get(webauthn_key, webauthn_ref_key, subspace)


async def set_device_share(
    storage: MetadataStorageLayer,
    webauthn_ref_key: PrivateKeyLike,
    subspace: str,
    subspace_data: Any,
) -> None:
    await DeviceShareVault(storage).set(webauthn_ref_key, subspace, subspace_data)


async def get_device_share(
    storage: MetadataStorageLayer,
    webauthn_ref_key: PrivateKeyLike,
    subspace: str,
) -> Any:
    return await DeviceShareVault(storage).get(webauthn_ref_key, subspace)
