"""Structured error types for the FormFlow engine.

Two disjoint error classes exist:

- Validation errors are data. Each failing field produces a FieldError inside
  a ValidationResult; they are never raised.
- Collaborator failures are reported as a SubmissionError envelope on the
  SubmitResult, after the submission has returned to Idle.

Misuse of the API (unknown field names, edits while fields are locked) raises
the exceptions defined at the bottom of this module.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from formflow.types import FieldErrorCode, SubmissionState


@dataclass(frozen=True)
class FieldError:
    """Per-field validation error details.

    Attributes:
        path: Field name (e.g., "email", "confirmPassword")
        code: Specific validation error code
        message: Human-readable error description shown to the user
        expected: Optional - what was expected (length bound, other field, etc.)
        received: Optional - what was actually received

    Examples:
        >>> err = FieldError(
        ...     path="email",
        ...     code=FieldErrorCode.INVALID_FORMAT,
        ...     message="Invalid email format",
        ... )
        >>> err.path
        'email'
    """
    path: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "path": self.path,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            path=data["path"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )


@dataclass(frozen=True)
class SubmissionError:
    """Error envelope for a failed submit collaborator call.

    The reason is opaque to the engine: it is whatever the collaborator
    raised, rendered as text. The engine never retries.

    Attributes:
        form_id: ID of the form session that attempted the submission
        state: Submission state after the failure (always idle)
        reason: Human-readable failure reason from the collaborator
        exception_type: Class name of the exception the collaborator raised
    """
    form_id: str
    state: SubmissionState
    reason: str
    exception_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Always returns False - this is an error response."""
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "ok": False,
            "formId": self.form_id,
            "state": self.state.value if isinstance(self.state, SubmissionState) else self.state,
            "reason": self.reason,
        }
        if self.exception_type is not None:
            result["exceptionType"] = self.exception_type
        return result

    @classmethod
    def from_exception(
        cls, form_id: str, state: SubmissionState, exc: BaseException
    ) -> "SubmissionError":
        """Build the envelope from the exception a collaborator raised."""
        return cls(
            form_id=form_id,
            state=state,
            reason=str(exc) or type(exc).__name__,
            exception_type=type(exc).__name__,
        )


class UnknownFieldError(KeyError):
    """Raised when an operation names a field the form does not declare."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(field_name)

    def __str__(self) -> str:
        return f"Unknown field: '{self.field_name}'"


class FieldLockedError(RuntimeError):
    """Raised when a field is edited while a submission is in flight."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(
            f"Field '{field_name}' is locked while the form is submitting"
        )


__all__ = [
    "FieldError",
    "SubmissionError",
    "UnknownFieldError",
    "FieldLockedError",
]
