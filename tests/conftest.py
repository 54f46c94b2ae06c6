"""
Shared fixtures for the metadata vault tests.

``InMemoryStorageLayer`` replaces the HTTP transport with a dict but keeps
everything else real: records are built and signed by the client, and
every write is rejected unless its signature recovers to the claimed key,
as the real store does.
"""
from typing import Any, Optional

import pytest

from metadata_vault.exceptions import StoreError
from metadata_vault.keys import KeyPair
from metadata_vault.signing import MetadataParams, verify_signed_record
from metadata_vault.storage import MetadataStorageLayer


class InMemoryStorageLayer(MetadataStorageLayer):
    """MetadataStorageLayer backed by a dict keyed by ``(X, Y, namespace)``."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.records: dict[tuple[str, str, Optional[str]], str] = {}
        self.requests: list[tuple[str, dict[str, Any]]] = []
        self.fail_status: Optional[int] = None

    async def _post(self, path, payload, error_cls):
        self.requests.append((path, payload))
        if self.fail_status is not None:
            raise error_cls(f"{path} failed with HTTP {self.fail_status}", status=self.fail_status)
        slot = (payload["pub_key_X"], payload["pub_key_Y"], payload.get("namespace"))
        if path == "/get":
            return self.records.get(slot, "")
        record = MetadataParams.model_validate(
            {k: v for k, v in payload.items() if k != "namespace"}
        )
        if not verify_signed_record(record):
            raise error_cls("invalid signature", status=403)
        self.records[slot] = record.set_data.data
        return "success"

    def writes(self) -> int:
        return sum(1 for path, _ in self.requests if path == "/set")


@pytest.fixture
def storage():
    """In-memory store client."""
    return InMemoryStorageLayer()


@pytest.fixture
def ref_key():
    """Reference (submitter / device owner) key."""
    return KeyPair.generate()


@pytest.fixture
def webauthn_key():
    """Recipient key for torus shares."""
    return KeyPair.generate()
