"""Per-index resource: documents, statistics, updates and search."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Type, Union
from urllib.parse import quote

import structlog

from sifter.models import AsyncUpdateID, IndexInfo, SearchResponse, StatsIndex, Update
from sifter.search import SearchRequest, build_search_params
from sifter.transport import InternalRequest, ModelT, decode, decode_list
from sifter.updates import (
    Deadline,
    default_wait_for_pending_update,
    wait_for_pending_update,
)

if TYPE_CHECKING:
    from sifter.client import Client

log = structlog.get_logger(__name__)

DocumentID = Union[str, int]


def index_path(uid: str, *parts: Union[str, int]) -> str:
    """Endpoint path under `/indexes`, each segment percent-encoded."""
    return "/".join(["/indexes", *(quote(str(p), safe="") for p in (uid, *parts))])


class Index:
    """Handle on one index of the service.

    Creating the handle performs no network call. Attributes other than
    `uid` reflect the last response this handle decoded and are refreshed
    by `fetch_info()` and `update()`.
    """

    def __init__(self, client: "Client", uid: str, *, info: Optional[IndexInfo] = None) -> None:
        self.client = client
        self.uid = uid
        self.primary_key: Optional[str] = None
        self.name: Optional[str] = None
        self.created_at: Optional[str] = None
        self.updated_at: Optional[str] = None
        if info is not None:
            self._apply(info)

    def __repr__(self) -> str:
        return f"Index(uid={self.uid!r}, primary_key={self.primary_key!r})"

    def _apply(self, info: IndexInfo) -> "Index":
        self.uid = info.uid
        self.primary_key = info.primary_key
        self.name = info.name
        self.created_at = info.created_at
        self.updated_at = info.updated_at
        return self

    async def _execute(self, request: InternalRequest) -> Any:
        return await self.client.transport.execute(request)

    async def _decode(self, model: Type[ModelT], request: InternalRequest) -> ModelT:
        return decode(model, await self._execute(request), request)

    def _path(self, *parts: Union[str, int]) -> str:
        return index_path(self.uid, *parts)

    # ----- Index information -----

    async def fetch_info(self) -> "Index":
        """Reload uid, primary key and timestamps from the service."""
        info = await self._decode(
            IndexInfo,
            InternalRequest(
                endpoint=self._path(),
                method="GET",
                accepted_status_codes=(200,),
                function_name="FetchInfo",
                api_name="Index",
            ),
        )
        return self._apply(info)

    async def fetch_primary_key(self) -> Optional[str]:
        await self.fetch_info()
        return self.primary_key

    async def update(self, primary_key: str) -> "Index":
        """Set the index primary key."""
        info = await self._decode(
            IndexInfo,
            InternalRequest(
                endpoint=self._path(),
                method="PUT",
                body={"primaryKey": primary_key},
                accepted_status_codes=(200,),
                function_name="UpdateIndex",
                api_name="Index",
            ),
        )
        return self._apply(info)

    async def delete(self) -> bool:
        """Delete this index. Raises `NotFoundError` if it does not exist."""
        return await self.client.delete_index(self.uid)

    async def get_stats(self) -> StatsIndex:
        return await self._decode(
            StatsIndex,
            InternalRequest(
                endpoint=self._path("stats"),
                method="GET",
                accepted_status_codes=(200,),
                function_name="GetStats",
                api_name="Index",
            ),
        )

    # ----- Documents -----

    async def _documents_update(
        self, method: str, documents: Sequence[Dict[str, Any]], primary_key: Optional[str], function_name: str
    ) -> AsyncUpdateID:
        query = {"primaryKey": primary_key} if primary_key else None
        update = await self._decode(
            AsyncUpdateID,
            InternalRequest(
                endpoint=self._path("documents"),
                method=method,
                query=query,
                body=list(documents),
                accepted_status_codes=(202,),
                function_name=function_name,
                api_name="Documents",
            ),
        )
        log.debug("Documents update enqueued", index_uid=self.uid, update_id=update.update_id, count=len(documents))
        return update

    async def add_documents(
        self, documents: Sequence[Dict[str, Any]], *, primary_key: Optional[str] = None
    ) -> AsyncUpdateID:
        """Add or replace documents; creates the index if it does not exist."""
        return await self._documents_update("POST", documents, primary_key, "AddDocuments")

    async def update_documents(
        self, documents: Sequence[Dict[str, Any]], *, primary_key: Optional[str] = None
    ) -> AsyncUpdateID:
        """Add or partially update documents."""
        return await self._documents_update("PUT", documents, primary_key, "UpdateDocuments")

    async def get_document(self, document_id: DocumentID) -> Dict[str, Any]:
        return await self._execute(
            InternalRequest(
                endpoint=self._path("documents", document_id),
                method="GET",
                accepted_status_codes=(200,),
                function_name="GetDocument",
                api_name="Documents",
            )
        )

    async def get_documents(
        self,
        *,
        limit: int = 20,
        offset: int = 0,
        attributes_to_retrieve: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"limit": int(limit), "offset": int(offset)}
        if attributes_to_retrieve:
            query["attributesToRetrieve"] = ",".join(attributes_to_retrieve)
        data = await self._execute(
            InternalRequest(
                endpoint=self._path("documents"),
                method="GET",
                query=query,
                accepted_status_codes=(200,),
                function_name="GetDocuments",
                api_name="Documents",
            )
        )
        return list(data or [])

    async def delete_document(self, document_id: DocumentID) -> AsyncUpdateID:
        return await self._decode(
            AsyncUpdateID,
            InternalRequest(
                endpoint=self._path("documents", document_id),
                method="DELETE",
                accepted_status_codes=(202,),
                function_name="DeleteDocument",
                api_name="Documents",
            ),
        )

    async def delete_documents(self, document_ids: Sequence[DocumentID]) -> AsyncUpdateID:
        return await self._decode(
            AsyncUpdateID,
            InternalRequest(
                endpoint=self._path("documents", "delete-batch"),
                method="POST",
                body=list(document_ids),
                accepted_status_codes=(202,),
                function_name="DeleteDocuments",
                api_name="Documents",
            ),
        )

    async def delete_all_documents(self) -> AsyncUpdateID:
        return await self._decode(
            AsyncUpdateID,
            InternalRequest(
                endpoint=self._path("documents"),
                method="DELETE",
                accepted_status_codes=(202,),
                function_name="DeleteAllDocuments",
                api_name="Documents",
            ),
        )

    # ----- Updates -----

    async def get_update_status(self, update_id: int) -> Update:
        """Fetch the status of one update. Unknown ids raise `NotFoundError`."""
        return await self._decode(
            Update,
            InternalRequest(
                endpoint=self._path("updates", int(update_id)),
                method="GET",
                accepted_status_codes=(200,),
                function_name="GetUpdateStatus",
                api_name="Updates",
            ),
        )

    async def get_all_update_status(self) -> List[Update]:
        """Every update of this index, by ascending update id."""
        request = InternalRequest(
            endpoint=self._path("updates"),
            method="GET",
            accepted_status_codes=(200,),
            function_name="GetAllUpdateStatus",
            api_name="Updates",
        )
        updates = decode_list(Update, await self._execute(request), request)
        return sorted(updates, key=lambda u: u.update_id)

    async def wait_for_pending_update(
        self,
        update: AsyncUpdateID,
        *,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Update:
        """Poll until `update` is processed or failed.

        `interval` and `timeout` default to the client's `poll_interval` and
        `wait_timeout`. `timeout` is a relative shortcut for
        ``deadline=Deadline.after(timeout)``; when both are given the earlier
        one wins. See `sifter.updates.wait_for_pending_update` for the full
        contract.
        """
        if interval is None:
            interval = self.client.poll_interval
        if timeout is None:
            timeout = self.client.wait_timeout
        if timeout is not None:
            relative = Deadline.after(timeout)
            if deadline is None or relative.at < deadline.at:
                deadline = relative
        return await wait_for_pending_update(
            self.get_update_status,
            update,
            interval=interval,
            deadline=deadline,
            cancel=cancel,
            index_uid=self.uid,
        )

    async def default_wait_for_pending_update(self, update: AsyncUpdateID) -> Update:
        return await default_wait_for_pending_update(self.get_update_status, update, index_uid=self.uid)

    # ----- Search -----

    async def search(self, request: Union[SearchRequest, str]) -> SearchResponse:
        """Run a search. A bare string is shorthand for ``SearchRequest(query=..., limit=20)``."""
        if isinstance(request, str):
            request = SearchRequest(query=request, limit=20)
        return await self._decode(
            SearchResponse,
            InternalRequest(
                endpoint=self._path("search"),
                method="GET",
                query=build_search_params(request),
                accepted_status_codes=(200,),
                function_name="Search",
                api_name="Search",
            ),
        )
