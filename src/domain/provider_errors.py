from __future__ import annotations

from typing import Any, Protocol


_TRANSIENT_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


class ProviderErrorLike(Protocol):
    @property
    def category(self) -> str: ...

    @property
    def retryable(self) -> bool: ...


class ProviderError(Exception):
    """Base for provider client failures; carries the HTTP status when there was one."""

    def __init__(self, message: str, *, status_code: int | None = None, connectivity: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.connectivity = connectivity

    @property
    def category(self) -> str:
        if self.connectivity or self.status_code in _TRANSIENT_STATUS_CODES:
            return "transient"
        if self.status_code is not None:
            return "terminal"
        return "unknown"

    @property
    def retryable(self) -> bool:
        return self.category == "transient"


def provider_error_detail(*, provider: str, operation: str, exc: ProviderErrorLike) -> dict[str, Any]:
    return {
        "type": "provider_error",
        "provider": provider,
        "operation": operation,
        "category": exc.category,
        "retryable": exc.retryable,
        "message": str(exc),
    }
