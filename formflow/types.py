"""Core type definitions for the FormFlow engine.

This module defines the fundamental types used throughout FormFlow:
- SubmissionState: Lifecycle states for a form submission session
- CheckKind: Tagged variants of a single field check
- FieldErrorCode: Validation error codes for individual fields
- EventType: Event types for the form event stream
- SubmitOutcome: Result categories of a submit attempt

These types form the contract between the renderer and the FormFlow runtime.
"""

from enum import Enum


class SubmissionState(str, Enum):
    """Submission lifecycle states.

    Idle -> Submitting -> Succeeded -> Idle. A failed collaborator call
    returns Submitting to Idle.
    """
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"


class CheckKind(str, Enum):
    """Kinds of checks a field rule can contain.

    Every kind is evaluated by the same dispatch function in
    formflow.validation, so each variant can be tested in isolation.
    """
    REQUIRED = "required"
    LENGTH_RANGE = "length_range"
    PATTERN = "pattern"
    EMAIL = "email"
    EQUALS_FIELD = "equals_field"
    DATE_NOT_FUTURE = "date_not_future"
    EQUALS_LITERAL = "equals_literal"
    CUSTOM = "custom"


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures."""
    REQUIRED = "required"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_FORMAT = "invalid_format"
    MISMATCH = "mismatch"
    INVALID_DATE = "invalid_date"
    INVALID_VALUE = "invalid_value"
    CUSTOM = "custom"


class EventType(str, Enum):
    """Event types for the form event stream.

    Every field edit, validation outcome and submission transition emits a
    typed event.
    """
    FIELD_CHANGED = "field.changed"
    FIELD_BLURRED = "field.blurred"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    SUBMISSION_REJECTED = "submission.rejected"
    SUBMISSION_STARTED = "submission.started"
    SUBMISSION_SUCCEEDED = "submission.succeeded"
    SUBMISSION_FAILED = "submission.failed"
    SUBMISSION_CANCELLED = "submission.cancelled"
    SUBMISSION_RESET = "submission.reset"
    FORM_RESET = "form.reset"


class SubmitOutcome(str, Enum):
    """What happened to a single submit attempt."""
    SUCCEEDED = "succeeded"
    INVALID = "invalid"
    BUSY = "busy"
    FAILED = "failed"


__all__ = [
    "SubmissionState",
    "CheckKind",
    "FieldErrorCode",
    "EventType",
    "SubmitOutcome",
]
