"""Share Vault — Signed, encrypted subspace maps on the metadata store.

Security Note (Threat Model):
    Decrypted subspace maps exist in process memory for the duration of one
    read-modify-write call and are never cached. Writers to the same
    ``(owner key, namespace)`` slot from different processes are not
    coordinated; the last full-map write wins.
"""

from .crypto import Envelope, encrypt, decrypt, encrypt_data, decrypt_data
from .share_vault import ShareVault, DeviceShareVault, TorusShareVault, VaultNamespace

__all__ = [
    "Envelope",
    "encrypt",
    "decrypt",
    "encrypt_data",
    "decrypt_data",
    "ShareVault",
    "DeviceShareVault",
    "TorusShareVault",
    "VaultNamespace",
]
