"""Schema engine for evaluating field rules against form values.

This module provides a SchemaEngine that runs each field's checks against a
snapshot of all current values and produces a ValidationResult mapping field
names to the first failing check's error.

Cross-field checks (EQUALS_FIELD) look the other field up in the values
mapping passed to evaluate(). Nothing is captured between evaluations, so
editing the referenced field is picked up on the next evaluation, and since a
check only reads raw values, never another field's result, evaluation order
between fields does not matter.

The only time-dependent check is DATE_NOT_FUTURE. evaluate() reads the clock
once, so a result is a pure function of (values, clock reading).
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from dateutil.parser import isoparse, isoparser

from formflow.clock import Clock
from formflow.errors import FieldError
from formflow.rules import Check, FieldRule
from formflow.types import CheckKind, FieldErrorCode

# WHATWG HTML "valid e-mail address" syntax
EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)

_date_parser = isoparser()


@dataclass(frozen=True)
class ValidationResult:
    """Result of evaluating a form schema against a set of values.

    A field with no entry in ``errors`` is valid. Results are never mutated;
    every evaluation produces a new one.

    Attributes:
        errors: Mapping of field name to the first failing check's FieldError

    Examples:
        >>> result = ValidationResult()
        >>> result.is_valid
        True
        >>> result.error_for("email") is None
        True
    """
    errors: Dict[str, FieldError] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        """True if no field has an error."""
        return not self.errors

    @property
    def messages(self) -> Dict[str, str]:
        """Mapping of field name to error message."""
        return {name: err.message for name, err in self.errors.items()}

    @property
    def invalid_fields(self) -> List[str]:
        return list(self.errors)

    def error_for(self, field_name: str) -> Optional[str]:
        """Error message for one field, or None if it is valid."""
        err = self.errors.get(field_name)
        return err.message if err is not None else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors.values()],
            "invalidFields": self.invalid_fields,
        }


def is_empty(value: Any) -> bool:
    """Emptiness as the REQUIRED check sees it. ``False`` is not empty."""
    return value is None or (isinstance(value, str) and value == "")


def _date_not_future(value: Any, now: datetime) -> bool:
    """Whether value denotes a date (or instant) not after ``now``.

    Date-only strings compare by calendar day, so today is valid. Full ISO
    timestamps compare as instants; a naive timestamp is read in now's zone.
    Anything unparseable fails.
    """
    if isinstance(value, datetime):
        text = value.isoformat()
    elif isinstance(value, date):
        return value <= now.date()
    elif isinstance(value, str):
        text = value.strip()
    else:
        return False

    try:
        return _date_parser.parse_isodate(text) <= now.date()
    except ValueError:
        pass

    try:
        instant = isoparse(text)
    except (ValueError, OverflowError):
        return False
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=now.tzinfo)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=instant.tzinfo)
    return instant <= now


def evaluate_check(
    check: Check,
    field_name: str,
    values: Mapping[str, Any],
    now: datetime,
) -> Optional[FieldError]:
    """Run one check against the current value of ``field_name``.

    Args:
        check: The check to run
        field_name: Field being validated
        values: Snapshot of all current form values
        now: Clock reading for time-dependent checks

    Returns:
        A FieldError if the check fails, otherwise None
    """
    value = values.get(field_name)
    kind = check.kind

    if kind == CheckKind.REQUIRED:
        if is_empty(value):
            return FieldError(
                path=field_name,
                code=FieldErrorCode.REQUIRED,
                message=check.message,
                expected="required field",
            )
        return None

    if kind == CheckKind.LENGTH_RANGE:
        length = len(value) if isinstance(value, str) else len(str(value))
        if check.min_length is not None and length < check.min_length:
            return FieldError(
                path=field_name,
                code=FieldErrorCode.TOO_SHORT,
                message=check.message,
                expected=f"minimum {check.min_length} characters",
                received=f"{length} characters",
            )
        if check.max_length is not None and length > check.max_length:
            return FieldError(
                path=field_name,
                code=FieldErrorCode.TOO_LONG,
                message=check.max_message or check.message,
                expected=f"maximum {check.max_length} characters",
                received=f"{length} characters",
            )
        return None

    if kind == CheckKind.PATTERN:
        if not isinstance(value, str) or check.pattern.search(value) is None:
            return FieldError(
                path=field_name,
                code=FieldErrorCode.INVALID_FORMAT,
                message=check.message,
                expected=f"pattern: {check.pattern.pattern}",
            )
        return None

    if kind == CheckKind.EMAIL:
        if not isinstance(value, str) or EMAIL_PATTERN.fullmatch(value) is None:
            return FieldError(
                path=field_name,
                code=FieldErrorCode.INVALID_FORMAT,
                message=check.message,
                expected="valid email address",
                received=value,
            )
        return None

    if kind == CheckKind.EQUALS_FIELD:
        # Read fresh from the snapshot on every evaluation
        if value != values.get(check.other_field):
            return FieldError(
                path=field_name,
                code=FieldErrorCode.MISMATCH,
                message=check.message,
                expected=f"same value as '{check.other_field}'",
            )
        return None

    if kind == CheckKind.DATE_NOT_FUTURE:
        if not _date_not_future(value, now):
            return FieldError(
                path=field_name,
                code=FieldErrorCode.INVALID_DATE,
                message=check.message,
                expected=f"date not after {now.date().isoformat()}",
                received=value,
            )
        return None

    if kind == CheckKind.EQUALS_LITERAL:
        # Exact match: True must not be satisfied by 1
        if type(value) is not type(check.literal) or value != check.literal:
            return FieldError(
                path=field_name,
                code=FieldErrorCode.INVALID_VALUE,
                message=check.message,
                expected=check.literal,
                received=value,
            )
        return None

    if kind == CheckKind.CUSTOM:
        if not check.predicate(value, values):
            return FieldError(
                path=field_name,
                code=FieldErrorCode.CUSTOM,
                message=check.message,
            )
        return None

    raise ValueError(f"Unsupported check kind: {kind!r}")


class SchemaEngine:
    """Evaluates per-field rules against a snapshot of form values.

    Attributes:
        rules: Mapping of field name to FieldRule, in declaration order

    Examples:
        >>> from formflow.rules import FieldRule, required, length_range
        >>> engine = SchemaEngine([
        ...     FieldRule.of("name", required("Name is required"),
        ...                  length_range("Too short", min_length=2)),
        ... ])
        >>> engine.evaluate({"name": ""}).error_for("name")
        'Name is required'
        >>> engine.evaluate({"name": "Al"}).is_valid
        True
    """

    def __init__(
        self,
        rules: Union[Mapping[str, FieldRule], Iterable[FieldRule]],
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            rules: FieldRules, either as a mapping keyed by field name or as an
                iterable of rules
            clock: Source of the current instant for date checks. Defaults to
                the local system time.

        Raises:
            ValueError: If an EQUALS_FIELD check references an undeclared field
                or its own field, or a field is declared twice
        """
        if isinstance(rules, Mapping):
            rule_list = list(rules.values())
        else:
            rule_list = list(rules)

        self.rules: Dict[str, FieldRule] = {}
        for rule in rule_list:
            if rule.field in self.rules:
                raise ValueError(f"Field '{rule.field}' is declared more than once")
            self.rules[rule.field] = rule
        self._clock = clock
        self._check_references()

    def _check_references(self) -> None:
        for rule in self.rules.values():
            for check in rule.checks:
                if check.kind != CheckKind.EQUALS_FIELD:
                    continue
                if check.other_field == rule.field:
                    raise ValueError(f"Field '{rule.field}' cannot reference itself")
                if check.other_field not in self.rules:
                    raise ValueError(
                        f"Field '{rule.field}' references undeclared field "
                        f"'{check.other_field}'"
                    )

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(self.rules)

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock.now()
        return datetime.now().astimezone()

    def evaluate_field(
        self,
        field_name: str,
        values: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Optional[FieldError]:
        """Run one field's checks in order and return the first failure.

        A field without a REQUIRED check is valid when empty; its other checks
        are skipped.
        """
        rule = self.rules[field_name]
        if now is None:
            now = self.now()
        if not rule.is_required and is_empty(values.get(field_name)):
            return None
        for check in rule.checks:
            error = evaluate_check(check, field_name, values, now)
            if error is not None:
                return error
        return None

    def evaluate(
        self,
        values: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """Evaluate every declared field against ``values``.

        Args:
            values: Current value of every field. Missing keys read as None.
            now: Clock reading to use. Defaults to one reading of the clock.

        Returns:
            A new ValidationResult
        """
        if now is None:
            now = self.now()
        errors: Dict[str, FieldError] = {}
        for field_name in self.rules:
            error = self.evaluate_field(field_name, values, now)
            if error is not None:
                errors[field_name] = error
        return ValidationResult(errors=errors)


__all__ = [
    "EMAIL_PATTERN",
    "SchemaEngine",
    "ValidationResult",
    "evaluate_check",
    "is_empty",
]
