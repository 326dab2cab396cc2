"""Error hierarchy and code mapping for the DeGiro proxy."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    INVALID_ARGS = "INVALID_ARGS"
    AUTH_REJECTED = "AUTH_REJECTED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    UPSTREAM_UNREACHABLE = "UPSTREAM_UNREACHABLE"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    SUPPLEMENTARY_UNAVAILABLE = "SUPPLEMENTARY_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS_BY_ERROR: dict[ErrorCode, int] = {
    ErrorCode.INVALID_ARGS: 400,
    ErrorCode.AUTH_REJECTED: 401,
    ErrorCode.SESSION_EXPIRED: 401,
    ErrorCode.INTERNAL_ERROR: 500,
}

EXIT_CODE_BY_ERROR: dict[ErrorCode, int] = {
    ErrorCode.INVALID_ARGS: 2,
    ErrorCode.AUTH_REJECTED: 3,
    ErrorCode.SESSION_EXPIRED: 4,
    ErrorCode.UPSTREAM_UNREACHABLE: 5,
    ErrorCode.TIMEOUT: 10,
}

TRANSPORT_ERRORS = frozenset({ErrorCode.UPSTREAM_UNREACHABLE, ErrorCode.TIMEOUT})


class DegiroError(Exception):
    """Typed exception raised by the client and converted at the HTTP/CLI edges."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_ERROR.get(self.code, 502)

    @property
    def exit_code(self) -> int:
        return EXIT_CODE_BY_ERROR.get(self.code, 1)

    @property
    def upstream_status(self) -> int | None:
        value = self.details.get("status_code")
        return value if isinstance(value, int) else None

    @property
    def is_transport_error(self) -> bool:
        return self.code in TRANSPORT_ERRORS

    def to_error_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload
