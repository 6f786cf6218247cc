"""
Approval Error Classifier

Maps failures raised while loading, approving or rejecting content onto a
small taxonomy with user-facing messages and retry/severity hints:
- Typed gateway failures keep the code they were raised with
- Anything else is matched by database code, then by message text
- First matching rule wins
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, NoResultFound, ProgrammingError, SQLAlchemyError

from ..logging_config import approval_logger


class ApprovalErrorCode(str, Enum):
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    NOT_FOUND = "NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Sentinel code the hosted query layer returns for ".single()" with no row
ROW_NOT_FOUND_CODE = "PGRST116"

# code -> (severity, retryable, user message)
TAXONOMY: Dict[ApprovalErrorCode, tuple] = {
    ApprovalErrorCode.CONSTRAINT_VIOLATION: (
        ErrorSeverity.MEDIUM, True,
        "This change conflicts with existing data. Please refresh and try again.",
    ),
    ApprovalErrorCode.NOT_FOUND: (
        ErrorSeverity.MEDIUM, False,
        "The requested record could not be found.",
    ),
    ApprovalErrorCode.DATABASE_ERROR: (
        ErrorSeverity.HIGH, True,
        "A database error occurred. Please try again.",
    ),
    ApprovalErrorCode.NETWORK_ERROR: (
        ErrorSeverity.MEDIUM, True,
        "Network error. Please check your connection and try again.",
    ),
    ApprovalErrorCode.PERMISSION_DENIED: (
        ErrorSeverity.HIGH, False,
        "You do not have permission to perform this action.",
    ),
    ApprovalErrorCode.CONCURRENT_MODIFICATION: (
        ErrorSeverity.MEDIUM, True,
        "This content was already processed by someone else. Refresh to see the latest status.",
    ),
    ApprovalErrorCode.CONTENT_NOT_FOUND: (
        ErrorSeverity.MEDIUM, False,
        "This content no longer exists.",
    ),
    ApprovalErrorCode.VALIDATION_ERROR: (
        ErrorSeverity.LOW, True,
        "Please check your input and try again.",
    ),
    ApprovalErrorCode.UNKNOWN_ERROR: (
        ErrorSeverity.HIGH, True,
        "An unexpected error occurred. Please try again.",
    ),
}

ACTION_MESSAGES = {
    ("approve", ApprovalErrorCode.CONCURRENT_MODIFICATION):
        "This content was already approved or rejected by another reviewer.",
    ("reject", ApprovalErrorCode.CONCURRENT_MODIFICATION):
        "This content was already processed by another reviewer and can no longer be rejected.",
    ("approve", ApprovalErrorCode.CONTENT_NOT_FOUND):
        "The content you are trying to approve no longer exists.",
    ("reject", ApprovalErrorCode.CONTENT_NOT_FOUND):
        "The content you are trying to reject no longer exists.",
}

HTTP_STATUS_BY_CODE = {
    ApprovalErrorCode.CONSTRAINT_VIOLATION: 409,
    ApprovalErrorCode.NOT_FOUND: 404,
    ApprovalErrorCode.DATABASE_ERROR: 500,
    ApprovalErrorCode.NETWORK_ERROR: 502,
    ApprovalErrorCode.PERMISSION_DENIED: 403,
    ApprovalErrorCode.CONCURRENT_MODIFICATION: 409,
    ApprovalErrorCode.CONTENT_NOT_FOUND: 404,
    ApprovalErrorCode.VALIDATION_ERROR: 422,
    ApprovalErrorCode.UNKNOWN_ERROR: 500,
}

TOAST_DURATION_MS = {
    ErrorSeverity.LOW: 3000,
    ErrorSeverity.MEDIUM: 5000,
    ErrorSeverity.HIGH: 7000,
    ErrorSeverity.CRITICAL: 10000,
}


@dataclass
class ApprovalError:
    """Classified failure ready to show to a reviewer"""
    code: ApprovalErrorCode
    message: str
    user_message: str
    severity: ErrorSeverity
    retryable: bool
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE[self.code]


@dataclass
class Toast:
    """Transient feedback message"""
    kind: str  # 'success', 'error'
    message: str
    severity: Optional[ErrorSeverity] = None
    duration_ms: int = 4000


class ContentApprovalFailure(Exception):
    """Base for failures raised by the content approval gateway."""
    code = ApprovalErrorCode.UNKNOWN_ERROR


class ContentNotFound(ContentApprovalFailure):
    code = ApprovalErrorCode.CONTENT_NOT_FOUND

    def __init__(self, content_id: str, content_type: str):
        self.content_id = content_id
        self.content_type = content_type
        super().__init__(f"{content_type} {content_id} does not exist")


class ContentNoLongerPending(ContentApprovalFailure):
    code = ApprovalErrorCode.CONCURRENT_MODIFICATION

    def __init__(self, content_id: str, current_status: Optional[str]):
        self.content_id = content_id
        self.current_status = current_status
        super().__init__(
            f"Content {content_id} is no longer pending approval "
            f"(already {current_status or 'processed'})"
        )


class ContentNotSubmittable(ContentApprovalFailure):
    code = ApprovalErrorCode.VALIDATION_ERROR

    def __init__(self, content_id: str, current_status: str):
        self.content_id = content_id
        self.current_status = current_status
        super().__init__(f"Content {content_id} cannot be submitted for approval from status {current_status}")


class InvalidContentType(ContentApprovalFailure):
    code = ApprovalErrorCode.VALIDATION_ERROR

    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(f"Invalid content type: {content_type}")


def _error_code(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("code") or "")

    if isinstance(raw, SQLAlchemyError):
        # SQLAlchemy's own ``code`` is a docs link id, the SQLSTATE lives on the DBAPI error
        candidates, attrs = (getattr(raw, "orig", None),), ("pgcode", "sqlstate")
    else:
        candidates, attrs = (raw,), ("pgcode", "sqlstate", "code")

    for candidate in candidates:
        if candidate is None:
            continue
        for attr in attrs:
            value = getattr(candidate, attr, None)
            if isinstance(value, str) and value:
                return value

    if isinstance(raw, IntegrityError):
        return "23000"
    if isinstance(raw, ProgrammingError):
        return "42000"
    if isinstance(raw, NoResultFound):
        return ROW_NOT_FOUND_CODE
    return ""


def _error_message(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("message") or "")
    if isinstance(raw, BaseException):
        return str(raw)
    return str(raw or "")


def _classify(code: str, message: str) -> ApprovalErrorCode:
    text = message.lower()

    if code.startswith("23"):
        return ApprovalErrorCode.CONSTRAINT_VIOLATION
    if code == ROW_NOT_FOUND_CODE:
        return ApprovalErrorCode.NOT_FOUND
    if code.startswith("42"):
        return ApprovalErrorCode.DATABASE_ERROR
    if "fetch" in text:
        return ApprovalErrorCode.NETWORK_ERROR
    if "permission" in text or "unauthorized" in text:
        return ApprovalErrorCode.PERMISSION_DENIED
    if "already" in text or "concurrent" in text:
        return ApprovalErrorCode.CONCURRENT_MODIFICATION
    if "not found" in text or "does not exist" in text:
        return ApprovalErrorCode.CONTENT_NOT_FOUND
    if "validation" in text or "invalid" in text:
        return ApprovalErrorCode.VALIDATION_ERROR
    return ApprovalErrorCode.UNKNOWN_ERROR


def build_error(code: ApprovalErrorCode, message: str, context: Optional[Dict[str, Any]] = None) -> ApprovalError:
    severity, retryable, user_message = TAXONOMY[code]
    return ApprovalError(
        code=code,
        message=message,
        user_message=user_message,
        severity=severity,
        retryable=retryable,
        context=dict(context or {}),
    )


def handle_approval_error(raw: Any, context: Optional[Dict[str, Any]] = None) -> ApprovalError:
    """Classify any failure shape into an ApprovalError."""
    message = _error_message(raw)

    if isinstance(raw, ContentApprovalFailure):
        code = raw.code
    else:
        code = _classify(_error_code(raw), message)

    error = build_error(code, message or code.value, context)
    approval_logger.error(
        f"Approval error: {error.code.value}",
        error=raw if isinstance(raw, Exception) else None,
        code=error.code.value,
        severity=error.severity.value,
        **error.context,
    )
    return error


def handle_approval_action_error(raw: Any, action: str, context: Optional[Dict[str, Any]] = None) -> ApprovalError:
    """Classify a failure from an approve/reject action with action-specific wording."""
    error = handle_approval_error(raw, {**(context or {}), "action": action})
    override = ACTION_MESSAGES.get((action, error.code))
    if override:
        error.user_message = override
    return error


def show_error_toast(error: ApprovalError) -> Toast:
    """Report an error to the reviewer. Never raises."""
    duration = TOAST_DURATION_MS.get(error.severity, 5000)
    if error.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
        approval_logger.error(error.user_message, code=error.code.value)
    else:
        approval_logger.warning(error.user_message, code=error.code.value)
    return Toast(kind="error", message=error.user_message, severity=error.severity, duration_ms=duration)


def success_toast(message: str) -> Toast:
    return Toast(kind="success", message=message, duration_ms=4000)
