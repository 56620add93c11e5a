import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import pytest

from sifter.client import Client

HOST = "http://search.test"

# ---------- In-memory fake of the search service ----------


@dataclass
class FakeUpdate:
    update_id: int
    type_name: str
    number: int
    # Statuses reported by successive status fetches; the last one sticks.
    script: List[str] = field(default_factory=lambda: ["enqueued", "processing", "processed"])
    error: Optional[str] = None
    polls: int = 0

    def current(self) -> str:
        return self.script[min(self.polls, len(self.script)) - 1] if self.polls else self.script[0]

    def to_wire(self) -> Dict[str, Any]:
        status = self.current()
        out: Dict[str, Any] = {
            "status": status,
            "updateId": self.update_id,
            "type": {"name": self.type_name, "number": self.number},
            "duration": 0.01,
            "enqueuedAt": "2021-02-01T10:00:00.000000Z",
        }
        if status in ("processed", "failed"):
            out["processedAt"] = "2021-02-01T10:00:00.500000Z"
        if status == "failed":
            out["error"] = self.error
            out["errorCode"] = "missing_primary_key"
        return out


def _error(status: int, message: str, code: str) -> httpx.Response:
    return httpx.Response(
        status,
        json={
            "message": message,
            "errorCode": code,
            "errorType": "invalid_request_error",
            "errorLink": f"https://docs.example.com/errors#{code}",
        },
    )


def _infer_primary_key(docs: List[Dict[str, Any]]) -> Optional[str]:
    # The service picks the first attribute of the first document whose name ends in "id".
    for key in (docs[0] if docs else {}):
        if key.lower().endswith("id"):
            return key
    return None


class FakeSearchService:
    """Serves the endpoints the client uses, backed by dicts.

    Each status fetch of an update advances it one step along its script.
    """

    def __init__(self) -> None:
        self.indexes: Dict[str, Dict[str, Any]] = {}
        self.documents: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.updates: Dict[str, List[FakeUpdate]] = {}
        self.requests: List[httpx.Request] = []
        self.next_script: Optional[List[str]] = None
        self.next_error: Optional[str] = None
        self.latency: float = 0.0

    # ----- helpers used by tests -----

    def status_fetches(self, uid: str) -> List[httpx.Request]:
        pattern = re.compile(rf"^/indexes/{re.escape(uid)}/updates/\d+$")
        return [r for r in self.requests if r.method == "GET" and pattern.match(r.url.path)]

    def make_index(self, uid: str, primary_key: Optional[str] = None) -> Dict[str, Any]:
        info = {
            "uid": uid,
            "name": uid,
            "primaryKey": primary_key,
            "createdAt": "2021-02-01T10:00:00.000000Z",
            "updatedAt": "2021-02-01T10:00:00.000000Z",
        }
        self.indexes[uid] = info
        self.documents.setdefault(uid, {})
        self.updates.setdefault(uid, [])
        return info

    def enqueue(self, uid: str, type_name: str, number: int) -> FakeUpdate:
        history = self.updates.setdefault(uid, [])
        upd = FakeUpdate(update_id=len(history), type_name=type_name, number=number)
        if self.next_script is not None:
            upd.script = list(self.next_script)
            self.next_script = None
        if self.next_error is not None:
            upd.error = self.next_error
            self.next_error = None
        history.append(upd)
        return upd

    # ----- request handling -----

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.latency:
            await asyncio.sleep(self.latency)
        return self.handle(request)

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        parts = [p for p in path.split("/") if p]

        if path == "/health" and method == "GET":
            return httpx.Response(204)
        if path == "/version" and method == "GET":
            return httpx.Response(
                200,
                json={"commitSha": "abc123", "buildDate": "2021-01-01T00:00:00Z", "pkgVersion": "0.19.0"},
            )
        if path == "/stats" and method == "GET":
            return httpx.Response(
                200,
                json={
                    "databaseSize": 4096,
                    "lastUpdate": "2021-02-01T10:00:00.500000Z",
                    "indexes": {uid: self._stats(uid) for uid in self.indexes},
                },
            )
        if parts[:1] != ["indexes"]:
            return _error(404, "Resource not found", "not_found")

        if len(parts) == 1:
            if method == "GET":
                return httpx.Response(200, json=list(self.indexes.values()))
            if method == "POST":
                body = json.loads(request.content or b"{}")
                uid = body.get("uid")
                if uid in self.indexes:
                    return _error(400, f"Index {uid} already exists", "index_already_exists")
                return httpx.Response(201, json=self.make_index(uid, body.get("primaryKey")))
            return httpx.Response(405)

        uid = parts[1]
        rest = parts[2:]

        if method == "POST" and rest == ["documents"] and uid not in self.indexes:
            self.make_index(uid, request.url.params.get("primaryKey"))
        if uid not in self.indexes:
            return _error(404, f"Index {uid} not found", "index_not_found")

        if not rest:
            if method == "GET":
                return httpx.Response(200, json=self.indexes[uid])
            if method == "PUT":
                body = json.loads(request.content or b"{}")
                self.indexes[uid]["primaryKey"] = body.get("primaryKey")
                return httpx.Response(200, json=self.indexes[uid])
            if method == "DELETE":
                del self.indexes[uid]
                self.documents.pop(uid, None)
                self.updates.pop(uid, None)
                return httpx.Response(204)
        if rest == ["stats"] and method == "GET":
            return httpx.Response(200, json=self._stats(uid))
        if rest == ["updates"] and method == "GET":
            return httpx.Response(200, json=[u.to_wire() for u in reversed(self.updates[uid])])
        if len(rest) == 2 and rest[0] == "updates" and method == "GET":
            history = self.updates[uid]
            update_id = int(rest[1])
            if update_id >= len(history):
                return _error(404, f"Update {update_id} not found", "not_found")
            upd = history[update_id]
            upd.polls += 1
            return httpx.Response(200, json=upd.to_wire())
        if rest == ["search"] and method == "GET":
            return self._search(uid, request)
        if rest and rest[0] == "documents":
            return self._documents(uid, request, rest[1:])
        return _error(404, "Resource not found", "not_found")

    def _stats(self, uid: str) -> Dict[str, Any]:
        docs = self.documents.get(uid, {})
        fields: Dict[str, int] = {}
        for doc in docs.values():
            for key in doc:
                fields[key] = fields.get(key, 0) + 1
        return {"numberOfDocuments": len(docs), "isIndexing": False, "fieldsDistribution": fields}

    def _documents(self, uid: str, request: httpx.Request, rest: List[str]) -> httpx.Response:
        method = request.method
        store = self.documents[uid]
        if not rest:
            if method in ("POST", "PUT"):
                docs = json.loads(request.content or b"[]")
                pk = (
                    self.indexes[uid].get("primaryKey")
                    or request.url.params.get("primaryKey")
                    or _infer_primary_key(docs)
                )
                if pk is None:
                    return _error(400, "Could not infer a primary key", "missing_primary_key")
                self.indexes[uid]["primaryKey"] = pk
                for doc in docs:
                    key = str(doc[pk])
                    if method == "PUT" and key in store:
                        store[key].update(doc)
                    else:
                        store[key] = dict(doc)
                name = "DocumentsAddition" if method == "POST" else "DocumentsPartial"
                upd = self.enqueue(uid, name, len(docs))
                return httpx.Response(202, json={"updateId": upd.update_id})
            if method == "GET":
                offset = int(request.url.params.get("offset", 0))
                limit = int(request.url.params.get("limit", 20))
                return httpx.Response(200, json=list(store.values())[offset : offset + limit])
            if method == "DELETE":
                count = len(store)
                store.clear()
                upd = self.enqueue(uid, "ClearAll", count)
                return httpx.Response(202, json={"updateId": upd.update_id})
        if rest == ["delete-batch"] and method == "POST":
            ids = json.loads(request.content or b"[]")
            for doc_id in ids:
                store.pop(str(doc_id), None)
            upd = self.enqueue(uid, "DocumentsDeletion", len(ids))
            return httpx.Response(202, json={"updateId": upd.update_id})
        if len(rest) == 1:
            doc_id = rest[0]
            if method == "GET":
                if doc_id not in store:
                    return _error(404, f"Document {doc_id} not found", "document_not_found")
                return httpx.Response(200, json=store[doc_id])
            if method == "DELETE":
                store.pop(doc_id, None)
                upd = self.enqueue(uid, "DocumentsDeletion", 1)
                return httpx.Response(202, json={"updateId": upd.update_id})
        return _error(404, "Resource not found", "not_found")

    def _search(self, uid: str, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        q = params.get("q", "").lower()
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 20))
        hits = [
            doc
            for doc in self.documents[uid].values()
            if not q or any(q in str(v).lower() for v in doc.values())
        ]
        return httpx.Response(
            200,
            json={
                "hits": hits[offset : offset + limit],
                "offset": offset,
                "limit": limit,
                "nbHits": len(hits),
                "exhaustiveNbHits": False,
                "processingTimeMs": 1,
                "query": params.get("q", ""),
            },
        )


# ---------- Fixtures ----------


@pytest.fixture
def service() -> FakeSearchService:
    return FakeSearchService()


@pytest.fixture
def client(service: FakeSearchService) -> Client:
    return Client(HOST, "masterKey", http_transport=httpx.MockTransport(service))


BOOKS = [
    {"book_id": 123, "title": "Pride and Prejudice"},
    {"book_id": 456, "title": "Le Petit Prince"},
    {"book_id": 1, "title": "Alice In Wonderland"},
    {"book_id": 1344, "title": "The Hobbit"},
    {"book_id": 4, "title": "Harry Potter and the Half-Blood Prince"},
    {"book_id": 42, "title": "The Hitchhiker's Guide to the Galaxy"},
]


@pytest.fixture
def books() -> List[Dict[str, Any]]:
    return [dict(b) for b in BOOKS]
