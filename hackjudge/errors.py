"""
hackjudge/errors.py
Centralized error taxonomy for the judging core.

CORE PRINCIPLES:
- Every error names the entity and the constraint that failed
- Errors are machine-readable (stable codes) and user-safe
- Nothing is swallowed except documented best-effort reads

ERROR STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}
"""
from typing import Any, Dict, Optional


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_FIELD = "MISSING_FIELD"
    SCORE_OUT_OF_RANGE = "SCORE_OUT_OF_RANGE"
    DUPLICATE_CODE = "DUPLICATE_CODE"
    UNKNOWN_DOMAIN = "UNKNOWN_DOMAIN"
    UNKNOWN_JUDGE = "UNKNOWN_JUDGE"
    JUDGE_NOT_ELIGIBLE = "JUDGE_NOT_ELIGIBLE"

    NO_ALLOCATION = "NO_ALLOCATION"

    PREREQUISITE_NOT_MET = "PREREQUISITE_NOT_MET"
    ROUND_ONE_NOT_CALCULATED = "ROUND_ONE_NOT_CALCULATED"
    ROUND_TWO_NOT_ALLOCATED = "ROUND_TWO_NOT_ALLOCATED"

    NOT_FOUND = "NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    JUDGE_NOT_FOUND = "JUDGE_NOT_FOUND"
    DOMAIN_NOT_FOUND = "DOMAIN_NOT_FOUND"
    ALLOCATION_NOT_FOUND = "ALLOCATION_NOT_FOUND"

    CALCULATION_ABORTED = "CALCULATION_ABORTED"
    TOTAL_MISMATCH = "TOTAL_MISMATCH"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class JudgingError(Exception):
    """Base judging exception with consistent structure"""

    error = "Judging Error"

    def __init__(
        self,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(JudgingError):
    """Malformed or out-of-range input. The caller must correct and resubmit."""

    error = "Validation Error"

    def __init__(self, message: str, code: str = ErrorCode.VALIDATION_ERROR, details: Optional[Dict] = None):
        super().__init__(message=message, code=code, details=details)


class AuthorizationError(JudgingError):
    """Operation attempted without a qualifying allocation."""

    error = "Not Authorized"

    def __init__(self, message: str, code: str = ErrorCode.NO_ALLOCATION, details: Optional[Dict] = None):
        super().__init__(message=message, code=code, details=details)


class PreconditionError(JudgingError):
    """Operation attempted before a required prior state."""

    error = "Precondition Failed"

    def __init__(self, message: str, code: str = ErrorCode.PREREQUISITE_NOT_MET, details: Optional[Dict] = None):
        super().__init__(message=message, code=code, details=details)


class NotFoundError(JudgingError):
    """Reference to an unknown team, judge, domain or allocation."""

    error = "Not Found"

    def __init__(self, resource: str, identifier: Any = None, code: str = ErrorCode.NOT_FOUND):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            message=message,
            code=code,
            details={"resource": resource, "identifier": identifier}
        )
        self.resource = resource
        self.identifier = identifier


class ConsistencyError(JudgingError):
    """Calculation aborted on an internal invariant violation. Prior snapshot retained."""

    error = "Consistency Error"

    def __init__(self, message: str, code: str = ErrorCode.CALCULATION_ABORTED, details: Optional[Dict] = None):
        super().__init__(message=message, code=code, details=details)


def from_pydantic(exc: Exception, entity: str) -> ValidationError:
    """Translate a pydantic ValidationError into the core taxonomy"""
    errors = exc.errors() if hasattr(exc, "errors") else []
    fields = []
    for err in errors:
        loc = ".".join(str(part) for part in err.get("loc", ()))
        fields.append({"field": loc, "message": err.get("msg", "")})
    code = ErrorCode.INVALID_INPUT
    if any("must be between" in f["message"] for f in fields):
        code = ErrorCode.SCORE_OUT_OF_RANGE
    return ValidationError(
        f"Invalid {entity}: " + "; ".join(f"{f['field']}: {f['message']}" for f in fields),
        code=code,
        details={"entity": entity, "errors": fields}
    )
