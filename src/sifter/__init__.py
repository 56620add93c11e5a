"""Async client for a Meilisearch-compatible document search service."""

from .client import Client
from .config import Settings, load_settings
from .exceptions import (
    ApiError,
    CommunicationError,
    ConfigError,
    DeadlineExceededError,
    IndexAlreadyExistsError,
    MalformedResponseError,
    NotFoundError,
    SifterError,
    UpdateCancelledError,
    UpdateFailedError,
    UpdateWaitError,
)
from .index import Index
from .logging_config import setup_logging, setup_logging_from_settings
from .models import AsyncUpdateID, SearchResponse, Stats, StatsIndex, Update, UpdateStatus
from .search import SearchRequest
from .updates import Deadline

__all__ = [
    "Client",
    "Index",
    "Settings",
    "load_settings",
    "setup_logging",
    "setup_logging_from_settings",
    "SearchRequest",
    "Deadline",
    "AsyncUpdateID",
    "Update",
    "UpdateStatus",
    "Stats",
    "StatsIndex",
    "SearchResponse",
    "SifterError",
    "ConfigError",
    "CommunicationError",
    "MalformedResponseError",
    "ApiError",
    "NotFoundError",
    "IndexAlreadyExistsError",
    "UpdateFailedError",
    "UpdateWaitError",
    "DeadlineExceededError",
    "UpdateCancelledError",
]
