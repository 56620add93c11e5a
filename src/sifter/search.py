"""Translate a structured search request into the service's query parameters.

Every parameter is emitted, including empty strings and zero values, because
the service distinguishes a missing key from an empty one. No ranking or
filtering happens locally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

import httpx


@dataclass(slots=True)
class SearchRequest:
    """Structured search query.

    Attributes
    ----------
    query: str
        Free-text query (``q``).
    filters: str
        Filter expression evaluated server side.
    offset, limit: int
        Pagination window.
    crop_length: int
        Length of cropped attribute values, in characters.
    attributes_to_retrieve, attributes_to_crop, attributes_to_highlight: list[str]
        Attribute selections, sent comma-joined.
    matches: bool
        Ask the service for match positions.
    """

    query: str = ""
    filters: str = ""
    offset: int = 0
    limit: int = 0
    crop_length: int = 0
    attributes_to_retrieve: List[str] = field(default_factory=list)
    attributes_to_crop: List[str] = field(default_factory=list)
    attributes_to_highlight: List[str] = field(default_factory=list)
    matches: bool = False


def build_search_params(request: SearchRequest) -> List[Tuple[str, str]]:
    """Return the ordered ``(key, value)`` pairs for a search request."""
    return [
        ("q", request.query),
        ("filters", request.filters),
        ("offset", str(int(request.offset))),
        ("limit", str(int(request.limit))),
        ("cropLength", str(int(request.crop_length))),
        ("attributesToRetrieve", ",".join(request.attributes_to_retrieve)),
        ("attributesToCrop", ",".join(request.attributes_to_crop)),
        ("attributesToHighlight", ",".join(request.attributes_to_highlight)),
        ("matches", "true" if request.matches else "false"),
    ]


def encode_search_query(request: SearchRequest) -> str:
    """URL-encode the parameters, e.g. ``q=&filters=&offset=0&...``."""
    return str(httpx.QueryParams(build_search_params(request)))
