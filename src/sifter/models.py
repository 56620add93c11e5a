"""Pydantic models for the entities exchanged with the search service.

Field names are snake_case in Python and camelCase on the wire; every model
accepts either form on input and `to_wire()` emits the camelCase form.
Timestamps are kept as the opaque strings the server sends.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sifter.exceptions import UpdateFailedError


class WireModel(BaseModel):
    """Base for models decoded from service responses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class IndexConfig(WireModel):
    """Body of an index creation request."""

    uid: str
    primary_key: Optional[str] = None


class IndexInfo(WireModel):
    """Index description as returned by ``GET /indexes/{uid}``."""

    uid: str
    name: Optional[str] = None
    primary_key: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AsyncUpdateID(WireModel):
    """Handle returned by every mutation the service applies asynchronously.

    Only a correlation token for later status polls; it owns nothing.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    update_id: int


class UpdateStatus(str, Enum):
    ENQUEUED = "enqueued"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UpdateStatus.PROCESSED, UpdateStatus.FAILED)


class UpdateType(WireModel):
    """Summary of the payload that produced an update (e.g. ``DocumentsAddition``, 3)."""

    name: Optional[str] = None
    number: Optional[int] = None


class Update(WireModel):
    """Status record of one asynchronous update."""

    update_id: int
    status: UpdateStatus
    type: Optional[UpdateType] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_type: Optional[str] = None
    error_link: Optional[str] = None
    duration: Optional[float] = None
    enqueued_at: Optional[str] = None
    processed_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_failed(self) -> bool:
        return self.status is UpdateStatus.FAILED

    def raise_for_failure(self) -> "Update":
        """Raise `UpdateFailedError` if the update failed, else return self."""
        if self.is_failed:
            raise UpdateFailedError(self.update_id, self.error, error_code=self.error_code)
        return self


class StatsIndex(WireModel):
    number_of_documents: int = 0
    is_indexing: bool = False
    fields_distribution: Dict[str, int] = Field(default_factory=dict)


class Stats(WireModel):
    """Service-wide statistics from ``GET /stats``."""

    database_size: int = 0
    last_update: Optional[str] = None
    indexes: Dict[str, StatsIndex] = Field(default_factory=dict)


class SearchResponse(WireModel):
    hits: List[Dict[str, Any]] = Field(default_factory=list)
    offset: int = 0
    limit: int = 0
    nb_hits: int = 0
    exhaustive_nb_hits: bool = False
    processing_time_ms: int = 0
    query: str = ""


class Version(WireModel):
    commit_sha: Optional[str] = None
    build_date: Optional[str] = None
    pkg_version: Optional[str] = None
