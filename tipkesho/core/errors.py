"""
Error taxonomy for the tip settlement workflow.

Services raise these; the API layer renders them through a single exception
handler registered in ``tipkesho.main``.
"""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TipKeshoError(Exception):
    """Base class for errors surfaced to API callers.

    Attributes:
        message: Human-readable description safe to show the caller.
        code: Stable machine-readable error code.
        http_status: HTTP status used when rendering the error.
    """

    code: str = "internal"
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class Unauthenticated(TipKeshoError):
    code = "unauthenticated"
    http_status = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(TipKeshoError):
    code = "permission_denied"
    http_status = status.HTTP_403_FORBIDDEN


class InvalidArgument(TipKeshoError):
    code = "invalid_argument"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFound(TipKeshoError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class FailedPrecondition(TipKeshoError):
    """Service misconfiguration. Callers only ever see the generic message."""

    code = "failed_precondition"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class Aborted(TipKeshoError):
    """The payment provider explicitly declined the charge."""

    code = "aborted"
    http_status = status.HTTP_409_CONFLICT


class Internal(TipKeshoError):
    code = "internal"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_tipkesho_error(request: Request, exc: TipKeshoError) -> JSONResponse:
    """Render a ``TipKeshoError`` as a JSON error envelope."""
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        "%s %s -> %d %s: %s",
        request.method,
        request.url.path,
        exc.http_status,
        exc.code,
        exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.http_status,
        content={
            "success": False,
            "error": {"code": exc.code, "message": exc.message},
        },
        headers=headers,
    )
