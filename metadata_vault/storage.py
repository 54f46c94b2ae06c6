"""
MetadataStorageLayer — Client for the key-addressed metadata store.

Provides the request/response mapping to the store's JSON API:
- ``set_metadata(params, namespace)`` — ``POST /set`` with a signed record
- ``get_metadata(pub_key, namespace)`` — ``POST /get``; ``""`` means absent
- ``generate_metadata_params()`` — sign a message with the configured clock offset

The client holds its host, clock offset and credentials explicitly; pass one
instance to every vault operation instead of relying on process-wide state.
There is no caching: every call is a round trip to the store.

Security Note:
    Never log the signed data or the API key. Only log public key
    coordinates, namespaces and response sizes.
"""
import asyncio
import logging
import weakref
from typing import Any, Optional

import aiohttp
import orjson

from .config import StorageConfig
from .exceptions import StoreError, StoreReadError, StoreWriteError
from .keys import PrivateKeyLike, PubKeyParams, public_key_params
from .signing import MetadataParams, build_signed_record

logger = logging.getLogger("metadata.storage")


class MetadataStorageLayer:
    """Async client for the metadata store ``/set`` and ``/get`` endpoints.

    Args:
        config: Host, time offset, credentials and timeout. Defaults to
            ``StorageConfig()``.
        session: Optional shared ``aiohttp.ClientSession``. When omitted the
            client opens its own on first use and closes it in ``close()``.
    """

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config or StorageConfig()
        self._session = session
        self._owns_session = session is None
        self._slot_locks: weakref.WeakValueDictionary[
            tuple[str, str, Optional[str]], asyncio.Lock
        ] = weakref.WeakValueDictionary()

    def __repr__(self) -> str:
        return f"<MetadataStorageLayer host={self.config.metadata_host}>"

    @property
    def metadata_host(self) -> str:
        return self.config.metadata_host

    @property
    def server_time_offset(self) -> int:
        return self.config.server_time_offset

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "MetadataStorageLayer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Slot serialization
    # ------------------------------------------------------------------

    def slot_lock(self, pub_key: PubKeyParams, namespace: Optional[str]) -> asyncio.Lock:
        """Lock serializing read-modify-write cycles on one store slot.

        Only writers going through this client instance are coordinated;
        other processes writing the same slot can still overwrite each other.
        Locks are held weakly and vanish once no writer references them.
        """
        slot = (pub_key.pub_key_X, pub_key.pub_key_Y, namespace)
        lock = self._slot_locks.get(slot)
        if lock is None:
            lock = self._slot_locks[slot] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Record construction
    # ------------------------------------------------------------------

    def generate_metadata_params(self, message: str, private_key: PrivateKeyLike) -> MetadataParams:
        """Sign ``message`` with the configured server time offset."""
        return build_signed_record(
            message, private_key, server_time_offset=self.config.server_time_offset,
        )

    def generate_pub_key_params(self, private_key: PrivateKeyLike) -> PubKeyParams:
        return public_key_params(private_key)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        error_cls: type[StoreError],
    ) -> str:
        """POST ``payload`` as JSON and return the response ``message``.

        Raises:
            error_cls: On transport failure, timeout, non-2xx status or a
                response without a string ``message``.
        """
        url = f"{self.config.metadata_host}{path}"
        headers = {"Content-Type": "application/json", **self.config.headers()}
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        session = self._get_session()
        try:
            async with session.post(
                url, data=orjson.dumps(payload), headers=headers, timeout=timeout,
            ) as resp:
                if resp.status >= 400:
                    reason = await resp.text()
                    raise error_cls(
                        f"{path} failed with HTTP {resp.status}: {reason[:200]}",
                        status=resp.status,
                    )
                body = await resp.json(loads=orjson.loads, content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise error_cls(f"{path} request to {url} failed: {err!r}") from err
        except ValueError as err:
            raise error_cls(f"{path} returned a non-JSON body: {err}") from err

        if not isinstance(body, dict) or not isinstance(body.get("message"), str):
            raise error_cls(f"{path} response has no string 'message' field")
        return body["message"]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def set_metadata(
        self,
        params: MetadataParams,
        namespace: Optional[str] = None,
    ) -> str:
        """Write a signed record, replacing whatever the slot held.

        Resending the same record is safe; it overwrites with identical data.

        Args:
            params: Output of ``generate_metadata_params``.
            namespace: Store namespace, omitted from the request when None.

        Returns:
            The store's acknowledgement message.

        Raises:
            StoreWriteError: On transport or authorization failure.
        """
        message = await self._post("/set", params.to_payload(namespace), StoreWriteError)
        logger.debug(
            "Metadata set: pub_key_X=%s namespace=%s bytes=%d",
            params.pub_key_X, namespace, len(params.set_data.data),
        )
        return message

    async def get_metadata(
        self,
        pub_key: PubKeyParams,
        namespace: Optional[str] = None,
    ) -> str:
        """Read the raw stored string for a slot.

        Returns:
            The stored string, or ``""`` if the slot has never been written.

        Raises:
            StoreReadError: On transport or authorization failure.
        """
        payload = pub_key.model_dump(include={"pub_key_X", "pub_key_Y"})
        if namespace is not None:
            payload["namespace"] = namespace
        message = await self._post("/get", payload, StoreReadError)
        logger.debug(
            "Metadata get: pub_key_X=%s namespace=%s bytes=%d",
            pub_key.pub_key_X, namespace, len(message),
        )
        return message
