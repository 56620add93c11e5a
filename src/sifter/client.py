"""Service-level client: index lifecycle, health, version and global stats."""

from __future__ import annotations

from typing import List, Optional

import httpx
import structlog

from sifter.config import Settings
from sifter.exceptions import IndexAlreadyExistsError
from sifter.index import Index, index_path
from sifter.models import IndexConfig, IndexInfo, Stats, Version
from sifter.transport import InternalRequest, Transport, decode, decode_list
from sifter.updates import DEFAULT_POLL_INTERVAL

log = structlog.get_logger(__name__)


class Client:
    """Entry point for talking to the search service.

    Holds a `Transport` (configuration only) and hands out `Index` handles.
    Safe to share between tasks; no state is mutated after construction.
    """

    def __init__(
        self,
        host: str = "http://127.0.0.1:7700",
        api_key: Optional[str] = None,
        *,
        timeout: float = 10.0,
        verify_ssl: bool = True,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        transport: Optional[Transport] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        wait_timeout: Optional[float] = None,
    ) -> None:
        self.transport = transport or Transport(
            host=host,
            api_key=api_key,
            timeout=timeout,
            verify_ssl=verify_ssl,
            http_transport=http_transport,
        )
        # Defaults for Index.wait_for_pending_update
        self.poll_interval = poll_interval
        self.wait_timeout = wait_timeout

    @classmethod
    def from_settings(
        cls, settings: Settings, *, http_transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "Client":
        cfg = settings.server
        return cls(
            cfg.host,
            cfg.api_key,
            timeout=cfg.timeout,
            verify_ssl=cfg.verify_ssl,
            http_transport=http_transport,
            poll_interval=settings.updates.poll_interval,
            wait_timeout=settings.updates.timeout,
        )

    def index(self, uid: str) -> Index:
        """Return a handle on `uid` without contacting the service."""
        return Index(self, uid)

    async def create_index(self, uid: str, primary_key: Optional[str] = None) -> Index:
        """Create an index. Raises `IndexAlreadyExistsError` if `uid` is taken."""
        config = IndexConfig(uid=uid, primary_key=primary_key)
        request = InternalRequest(
            endpoint="/indexes",
            method="POST",
            body=config.to_wire(),
            accepted_status_codes=(201,),
            function_name="CreateIndex",
            api_name="Index",
        )
        info = decode(IndexInfo, await self.transport.execute(request), request)
        log.info("Index created", index_uid=uid, primary_key=primary_key)
        return Index(self, uid, info=info)

    async def get_index(self, uid: str) -> Index:
        """Fetch an index. Raises `NotFoundError` if it does not exist."""
        return await self.index(uid).fetch_info()

    async def get_or_create_index(self, uid: str, primary_key: Optional[str] = None) -> Index:
        """Create `uid`, or return the existing index when it is already there.

        The re-fetch after a conflict is best effort: if the service has not
        yet made the existing index visible, the resulting `NotFoundError`
        propagates.
        """
        try:
            return await self.create_index(uid, primary_key)
        except IndexAlreadyExistsError:
            log.debug("Index already exists, fetching it", index_uid=uid)
        return await self.get_index(uid)

    async def get_all_indexes(self) -> List[Index]:
        request = InternalRequest(
            endpoint="/indexes",
            method="GET",
            accepted_status_codes=(200,),
            function_name="GetAllIndexes",
            api_name="Index",
        )
        infos = decode_list(IndexInfo, await self.transport.execute(request), request)
        return [Index(self, info.uid, info=info) for info in infos]

    async def delete_index(self, uid: str) -> bool:
        """Delete an index. Returns True; raises `NotFoundError` for an unknown uid."""
        await self.transport.execute(
            InternalRequest(
                endpoint=index_path(uid),
                method="DELETE",
                accepted_status_codes=(200, 204),
                function_name="DeleteIndex",
                api_name="Index",
            )
        )
        log.info("Index deleted", index_uid=uid)
        return True

    async def health(self) -> bool:
        """Return True when the service answers its health check."""
        await self.transport.execute(
            InternalRequest(
                endpoint="/health",
                method="GET",
                accepted_status_codes=(200, 204),
                function_name="Get",
                api_name="Health",
            )
        )
        return True

    async def version(self) -> Version:
        request = InternalRequest(
            endpoint="/version",
            method="GET",
            accepted_status_codes=(200,),
            function_name="Get",
            api_name="Version",
        )
        return decode(Version, await self.transport.execute(request), request)

    async def get_all_stats(self) -> Stats:
        request = InternalRequest(
            endpoint="/stats",
            method="GET",
            accepted_status_codes=(200,),
            function_name="GetAll",
            api_name="Stats",
        )
        return decode(Stats, await self.transport.execute(request), request)
