"""Custom exception hierarchy for Sifter.

These exceptions allow callers to discriminate error categories
and handle them appropriately while preserving the original context.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class SifterError(Exception):
    """Base class for all Sifter exceptions."""


class ConfigError(SifterError):
    """Raised when configuration loading or validation fails."""


class CommunicationError(SifterError):
    """Raised when the service cannot be reached (connection failure, timeout)."""


class MalformedResponseError(SifterError):
    """Raised when a response body cannot be decoded into the expected shape."""


class ApiError(SifterError):
    """Raised when the service answers with a status outside the accepted set.

    Attributes mirror the error body returned by the service
    (``message``, ``errorCode``, ``errorType``, ``errorLink``) plus the
    request context that produced it.
    """

    code = "unexpected_status_code"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        accepted_status_codes: Sequence[int] = (),
        error_code: Optional[str] = None,
        error_type: Optional[str] = None,
        error_link: Optional[str] = None,
        body: Any = None,
        function_name: Optional[str] = None,
        api_name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.accepted_status_codes = tuple(accepted_status_codes)
        self.error_code = error_code
        self.error_type = error_type
        self.error_link = error_link
        self.body = body
        self.function_name = function_name
        self.api_name = api_name

    def __str__(self) -> str:
        expected = ", ".join(str(c) for c in self.accepted_status_codes)
        where = f"{self.api_name}.{self.function_name}" if self.function_name else "request"
        return (
            f"{where}: unexpected status {self.status_code} (expected {expected or '-'}): "
            f"{self.message}"
        )


class NotFoundError(ApiError):
    """Raised when the targeted index, document or update does not exist."""


class IndexAlreadyExistsError(ApiError):
    """Raised when creating an index whose uid is already taken."""


class UpdateFailedError(SifterError):
    """Raised by ``Update.raise_for_failure()`` for an update that ended in ``failed``."""

    def __init__(self, update_id: int, message: Optional[str], *, error_code: Optional[str] = None) -> None:
        super().__init__(message or f"update {update_id} failed")
        self.update_id = update_id
        self.message = message
        self.error_code = error_code


class UpdateWaitError(SifterError):
    """Raised when waiting for an update stops before a terminal status was seen.

    The real outcome of the update is unknown to the client at that point.
    """

    def __init__(self, message: str, *, index_uid: str, update_id: int, last_status: Optional[str] = None) -> None:
        super().__init__(message)
        self.index_uid = index_uid
        self.update_id = update_id
        self.last_status = last_status


class DeadlineExceededError(UpdateWaitError):
    """The polling deadline passed before the update reached a terminal status."""


class UpdateCancelledError(UpdateWaitError):
    """The cancellation event fired before the update reached a terminal status."""
