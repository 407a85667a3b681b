"""Domain error taxonomy shared by the store, cache, matcher, and providers."""

from __future__ import annotations

from fastapi import status


class ReliefHubError(Exception):
    """Base error carrying a human-readable message and optional failure detail."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    retryable: bool = False

    def __init__(
        self,
        message: str = "An error occurred",
        *,
        detail: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        self.message = message
        self.detail = detail
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)

    def to_payload(self) -> dict[str, object]:
        """Render the error as a structured response body fragment."""
        payload: dict[str, object] = {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        if self.detail:
            payload["details"] = self.detail
        return payload


class ValidationError(ReliefHubError):
    """Raised when input is malformed or missing required fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NotFoundError(ReliefHubError):
    """Raised when a referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(ReliefHubError):
    """Raised when an operation would break a relationship between entities."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class StoreError(ReliefHubError):
    """Raised when the durable store rejects or fails an operation.

    `retryable` is set per call: failed reads may be retried, failed writes may not.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "store_error"


class StoreTimeoutError(StoreError):
    """Raised when a durable store call exceeds its time bound.

    Reads may be retried; a timed-out write may have been applied remotely.
    """

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    code = "store_timeout"
    retryable = True


class ProviderError(ReliefHubError):
    """Raised when an enrichment provider call fails."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "provider_error"


class ProviderTimeoutError(ProviderError):
    """Raised when an enrichment provider call exceeds its time bound."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    code = "provider_timeout"
    retryable = True
