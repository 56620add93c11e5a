"""HTTP transport shared by every Sifter resource.

A single primitive, `Transport.execute`, issues one request described by an
`InternalRequest` and returns the decoded JSON body. Any status outside the
request's accepted set is turned into a typed `ApiError`; network failures
become `CommunicationError`. Nothing is retried here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar, Union

import httpx
import pydantic
import structlog

from sifter.exceptions import (
    ApiError,
    CommunicationError,
    IndexAlreadyExistsError,
    MalformedResponseError,
    NotFoundError,
)

log = structlog.get_logger(__name__)

QueryParams = Union[Dict[str, Any], List[Tuple[str, Any]], None]

API_KEY_HEADER = "X-Meili-API-Key"

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


@dataclass(frozen=True)
class InternalRequest:
    """Description of one call to the service."""

    endpoint: str
    method: str
    accepted_status_codes: Sequence[int]
    function_name: str
    api_name: str
    query: QueryParams = None
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


class Transport:
    """Connection configuration for the search service.

    The instance holds configuration only and may be shared freely between
    tasks. Each request opens a short-lived ``httpx.AsyncClient``.

    Parameters
    ----------
    host:
        Base URL of the service, e.g. ``http://127.0.0.1:7700``.
    api_key:
        Optional key sent in the ``X-Meili-API-Key`` header.
    timeout:
        Per-request timeout in seconds.
    verify_ssl:
        Whether to verify TLS certificates.
    http_transport:
        Optional ``httpx`` transport (e.g. ``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        *,
        host: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        verify_ssl: bool = True,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.http_transport = http_transport

    def _headers(self) -> Dict[str, str]:
        h = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.api_key:
            h[API_KEY_HEADER] = self.api_key
        return h

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.host,
            timeout=self.timeout,
            verify=self.verify_ssl,
            headers=self._headers(),
            transport=self.http_transport,
        )

    async def execute(self, request: InternalRequest) -> Any:
        """Send `request` and return the decoded JSON body (None when empty)."""
        req_log = log.bind(
            api_name=request.api_name,
            function_name=request.function_name,
            method=request.method,
            endpoint=request.endpoint,
        )
        req_log.debug("Sending request")
        try:
            async with self._client() as client:
                resp = await client.request(
                    request.method,
                    request.endpoint,
                    params=request.query,
                    json=request.body,
                    headers=request.headers or None,
                )
        except httpx.TimeoutException as e:
            req_log.error("Request timed out", error=str(e))
            raise CommunicationError(f"{request.api_name}.{request.function_name}: timed out: {e}") from e
        except httpx.RequestError as e:
            req_log.error("Request failed", error=str(e))
            raise CommunicationError(
                f"{request.api_name}.{request.function_name}: {type(e).__name__}: {e}"
            ) from e

        if resp.status_code not in request.accepted_status_codes:
            error = _api_error(request, resp)
            req_log.warning(
                "Unexpected status code",
                status_code=resp.status_code,
                accepted=list(request.accepted_status_codes),
                error_code=error.error_code,
            )
            raise error

        req_log.debug("Received response", status_code=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{request.api_name}.{request.function_name}: response is not valid JSON"
            ) from e


def _api_error(request: InternalRequest, resp: httpx.Response) -> ApiError:
    body: Any
    try:
        body = resp.json() if resp.content else None
    except ValueError:
        body = resp.text
    data = body if isinstance(body, dict) else {}
    message = data.get("message") or (body if isinstance(body, str) and body else resp.reason_phrase)
    error_code = data.get("errorCode")

    cls = ApiError
    if resp.status_code == 404:
        cls = NotFoundError
    elif resp.status_code == 409 or error_code == "index_already_exists":
        cls = IndexAlreadyExistsError

    return cls(
        str(message),
        status_code=resp.status_code,
        accepted_status_codes=request.accepted_status_codes,
        error_code=error_code,
        error_type=data.get("errorType"),
        error_link=data.get("errorLink"),
        body=body,
        function_name=request.function_name,
        api_name=request.api_name,
    )


def decode(model: Type[ModelT], data: Any, request: InternalRequest) -> ModelT:
    """Validate a decoded body against `model`, raising `MalformedResponseError`."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        log.warning(
            "Response does not match model",
            api_name=request.api_name,
            function_name=request.function_name,
            model=model.__name__,
            errors=e.error_count(),
        )
        raise MalformedResponseError(
            f"{request.api_name}.{request.function_name}: response does not match {model.__name__}: {e}"
        ) from e


def decode_list(model: Type[ModelT], data: Any, request: InternalRequest) -> List[ModelT]:
    """Like `decode` for a JSON array body; ``null`` decodes to an empty list."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedResponseError(
            f"{request.api_name}.{request.function_name}: expected a JSON array, got {type(data).__name__}"
        )
    return [decode(model, item, request) for item in data]
