"""
CarePublish API Response Utilities
Standardized error format and exception handling
"""
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import traceback

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .logging_config import api_logger
from .services.approval_errors import ApprovalError, Toast


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def toast_to_dict(toast: Optional[Toast]) -> Optional[Dict[str, Any]]:
    if toast is None:
        return None
    data = asdict(toast)
    data["severity"] = toast.severity.value if toast.severity else None
    return data


# ============================================================
# ERROR RESPONSES
# ============================================================

class ApiException(HTTPException):
    """Custom API exception with error codes"""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str = None,
        details: Dict = None,
    ):
        self.error_code = error_code or f"ERR_{status_code}"
        self.details = details
        super().__init__(status_code=status_code, detail=message)


def forbidden(message: str = "Access denied"):
    raise ApiException(403, message, "FORBIDDEN")

def not_found(resource: str = "Resource", id: str = None):
    message = f"{resource} not found" if not id else f"{resource} '{id}' not found"
    raise ApiException(404, message, "NOT_FOUND")

def validation_error(message: str, details: Dict = None):
    raise ApiException(422, message, "VALIDATION_ERROR", details)

def approval_failure(error: ApprovalError, toast: Optional[Toast] = None):
    """Raise a classified approval error as an HTTP error."""
    raise ApiException(
        error.http_status,
        error.user_message,
        error.code.value,
        {
            "message": error.message,
            "severity": error.severity.value,
            "retryable": error.retryable,
            "toast": toast_to_dict(toast),
        },
    )


# ============================================================
# EXCEPTION HANDLER
# ============================================================

async def api_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for API errors"""

    if isinstance(exc, ApiException):
        api_logger.warning(
            f"API Error: {exc.detail}",
            status_code=exc.status_code,
            error_code=exc.error_code,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "ok": False,
                "error": exc.detail,
                "error_code": exc.error_code,
                "details": exc.details,
                "timestamp": _timestamp(),
            }
        )

    api_logger.error(
        f"Unexpected error: {exc}",
        error=exc,
        path=request.url.path,
        traceback=traceback.format_exc(),
    )
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": "An unexpected error occurred",
            "error_code": "INTERNAL_ERROR",
            "timestamp": _timestamp(),
        }
    )
