"""
Approval engine error types.

Every failure the engine surfaces carries a stable code so that callers
(HTTP layer, bulk partitions, UI) can branch on it without parsing messages.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for client handling."""
    NOT_FOUND = "NotFound"
    ALREADY_PROCESSED = "AlreadyProcessed"
    VALIDATION_ERROR = "ValidationError"
    STORE_UNAVAILABLE = "StoreUnavailable"


class ApprovalError(Exception):
    """Base exception with structured error info."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        detail: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.detail = detail
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response format."""
        result = {
            "error": self.code.value,
            "message": self.message
        }
        if self.detail:
            result["detail"] = self.detail
        if self.context:
            result["context"] = self.context
        return result


class NotFound(ApprovalError):
    """Referenced approval request does not exist."""

    def __init__(self, approval_id: str):
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"Approval request {approval_id} not found",
            context={"approval_id": approval_id}
        )


class AlreadyProcessed(ApprovalError):
    """Transition attempted on a request that is no longer pending."""

    def __init__(self, approval_id: str, status: Optional[str] = None):
        detail = f"Current status is '{status}'" if status else None
        super().__init__(
            code=ErrorCode.ALREADY_PROCESSED,
            message=f"Approval request {approval_id} was already processed",
            detail=detail,
            context={"approval_id": approval_id, "status": status} if status else {"approval_id": approval_id}
        )


class ValidationError(ApprovalError):
    """Input rejected by engine rules (rejection comment, amount/currency pairing)."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            context={"field": field} if field else None
        )


class StoreUnavailable(ApprovalError):
    """The persistence collaborator failed. Not retried here."""

    def __init__(self, operation: str, detail: Optional[str] = None):
        super().__init__(
            code=ErrorCode.STORE_UNAVAILABLE,
            message=f"Approval store unavailable during {operation}",
            detail=detail,
            context={"operation": operation}
        )
