"""
Metadata Vault exceptions.

Absence of data is never an exception: reads return ``None`` (or the
empty-string sentinel at the store level). Everything below means
something went wrong and is surfaced to the caller as-is.
"""
from typing import Optional


class MetadataError(Exception):
    """Base class for all metadata vault errors."""


class InvalidPrivateKey(MetadataError, ValueError):
    """The private key is malformed or not a valid secp256k1 scalar."""


class StoreError(MetadataError):
    """Transport or authorization failure talking to the metadata store."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class StoreReadError(StoreError):
    """A ``get`` against the store failed. Safe to retry."""


class StoreWriteError(StoreError):
    """A ``set`` against the store failed.

    The write may or may not have been applied; re-read the slot
    before retrying.
    """


class DecryptionFailure(MetadataError):
    """MAC mismatch, wrong private key, or a tampered envelope."""


class VaultCorrupted(DecryptionFailure):
    """A stored subspace map could not be decrypted with the owner key."""


class SerializationError(MetadataError, ValueError):
    """A decrypted payload (or a stored blob) is not valid JSON."""
