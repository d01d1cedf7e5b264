"""Declarative rule definitions for form fields.

A form schema is a mapping of field name to FieldRule. Each FieldRule is an
ordered tuple of Check variants; evaluation stops at the first failing check
(see formflow.validation).

Rules can be built in Python with the constructor helpers in this module, or
loaded from a JSON-compatible definition with load_rules():

    >>> rules = load_rules({
    ...     "nickname": [
    ...         {"kind": "required", "message": "Nickname is required"},
    ...         {"kind": "length_range", "min": 2, "message": "Too short"},
    ...     ]
    ... })
    >>> [c.kind.value for c in rules["nickname"].checks]
    ['required', 'length_range']

Definitions are validated with jsonschema before any Check is built.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Pattern, Tuple

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from formflow.types import CheckKind

Predicate = Callable[[Any, Mapping[str, Any]], bool]
"""Custom check signature: (value, all_values) -> passes."""


@dataclass(frozen=True)
class Check:
    """A single validity check for one field.

    Only the attributes relevant to ``kind`` are set; the rest stay None.

    Attributes:
        kind: Which check variant this is
        message: Message reported when the check fails
        min_length: LENGTH_RANGE lower bound (inclusive)
        max_length: LENGTH_RANGE upper bound (inclusive)
        max_message: LENGTH_RANGE message when the upper bound is exceeded
        pattern: PATTERN regular expression, compiled at definition time
        other_field: EQUALS_FIELD name of the field whose value must match
        literal: EQUALS_LITERAL value the field must equal exactly
        predicate: CUSTOM callable (value, all_values) -> bool
    """
    kind: CheckKind
    message: str
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    max_message: Optional[str] = None
    pattern: Optional[Pattern[str]] = None
    other_field: Optional[str] = None
    literal: Any = None
    predicate: Optional[Predicate] = field(default=None, compare=False)

    def __post_init__(self):
        """Normalize the kind and compile patterns."""
        if isinstance(self.kind, str) and not isinstance(self.kind, CheckKind):
            object.__setattr__(self, "kind", CheckKind(self.kind))
        if isinstance(self.pattern, str):
            object.__setattr__(self, "pattern", re.compile(self.pattern))

        if self.kind == CheckKind.LENGTH_RANGE:
            if self.min_length is None and self.max_length is None:
                raise ValueError("length_range check needs min_length or max_length")
            if (
                self.min_length is not None
                and self.max_length is not None
                and self.min_length > self.max_length
            ):
                raise ValueError(
                    f"length_range min_length {self.min_length} exceeds "
                    f"max_length {self.max_length}"
                )
        elif self.kind == CheckKind.PATTERN and self.pattern is None:
            raise ValueError("pattern check needs a pattern")
        elif self.kind == CheckKind.EQUALS_FIELD and not self.other_field:
            raise ValueError("equals_field check needs other_field")
        elif self.kind == CheckKind.CUSTOM and self.predicate is None:
            raise ValueError("custom check needs a predicate")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the definition format accepted by load_rules().

        Raises:
            ValueError: For CUSTOM checks, whose predicate cannot be serialized
        """
        if self.kind == CheckKind.CUSTOM:
            raise ValueError("custom checks cannot be serialized")
        result: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.min_length is not None:
            result["min"] = self.min_length
        if self.max_length is not None:
            result["max"] = self.max_length
        if self.max_message is not None:
            result["maxMessage"] = self.max_message
        if self.pattern is not None:
            result["pattern"] = self.pattern.pattern
        if self.other_field is not None:
            result["field"] = self.other_field
        if self.kind == CheckKind.EQUALS_LITERAL:
            result["value"] = self.literal
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Check":
        """Create a Check from one entry of a rule definition."""
        return cls(
            kind=CheckKind(data["kind"]),
            message=data["message"],
            min_length=data.get("min"),
            max_length=data.get("max"),
            max_message=data.get("maxMessage"),
            pattern=data.get("pattern"),
            other_field=data.get("field"),
            literal=data.get("value"),
        )


@dataclass(frozen=True)
class FieldRule:
    """Ordered checks for one field.

    Attributes:
        field: Name of the field this rule validates
        checks: Checks in evaluation order
    """
    field: str
    checks: Tuple[Check, ...] = ()

    @classmethod
    def of(cls, field_name: str, *checks: Check) -> "FieldRule":
        """Build a rule from checks given in evaluation order."""
        return cls(field=field_name, checks=tuple(checks))

    @property
    def is_required(self) -> bool:
        return any(c.kind == CheckKind.REQUIRED for c in self.checks)

    def to_list(self) -> list:
        return [c.to_dict() for c in self.checks]


# Constructor helpers, one per check kind

def required(message: str) -> Check:
    return Check(kind=CheckKind.REQUIRED, message=message)


def length_range(
    message: str,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    max_message: Optional[str] = None,
) -> Check:
    """Length bounds check. ``message`` is used when the value is too short."""
    return Check(
        kind=CheckKind.LENGTH_RANGE,
        message=message,
        min_length=min_length,
        max_length=max_length,
        max_message=max_message,
    )


def matches(pattern: str, message: str) -> Check:
    return Check(kind=CheckKind.PATTERN, message=message, pattern=re.compile(pattern))


def email(message: str) -> Check:
    return Check(kind=CheckKind.EMAIL, message=message)


def equals_field(other_field: str, message: str) -> Check:
    return Check(kind=CheckKind.EQUALS_FIELD, message=message, other_field=other_field)


def date_not_future(message: str) -> Check:
    return Check(kind=CheckKind.DATE_NOT_FUTURE, message=message)


def equals_literal(literal: Any, message: str) -> Check:
    return Check(kind=CheckKind.EQUALS_LITERAL, message=message, literal=literal)


def custom(predicate: Predicate, message: str) -> Check:
    return Check(kind=CheckKind.CUSTOM, message=message, predicate=predicate)


def _kind_requires(kind: CheckKind, *keys: str) -> Dict[str, Any]:
    return {
        "if": {"properties": {"kind": {"const": kind.value}}},
        "then": {"required": list(keys)},
    }


# JSON Schema (Draft 7) for declarative rule definitions
RULE_DEFINITION_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "minProperties": 1,
    "additionalProperties": {
        "type": "array",
        "items": {"$ref": "#/definitions/check"},
    },
    "definitions": {
        "check": {
            "type": "object",
            "required": ["kind", "message"],
            "properties": {
                "kind": {
                    "enum": [k.value for k in CheckKind if k != CheckKind.CUSTOM],
                },
                "message": {"type": "string", "minLength": 1},
                "min": {"type": "integer", "minimum": 0},
                "max": {"type": "integer", "minimum": 0},
                "maxMessage": {"type": "string", "minLength": 1},
                "pattern": {"type": "string", "minLength": 1},
                "field": {"type": "string", "minLength": 1},
                "value": {},
            },
            "additionalProperties": False,
            "allOf": [
                _kind_requires(CheckKind.PATTERN, "pattern"),
                _kind_requires(CheckKind.EQUALS_FIELD, "field"),
                _kind_requires(CheckKind.EQUALS_LITERAL, "value"),
                {
                    "if": {"properties": {"kind": {"const": CheckKind.LENGTH_RANGE.value}}},
                    "then": {"anyOf": [{"required": ["min"]}, {"required": ["max"]}]},
                },
            ],
        },
    },
}

Draft7Validator.check_schema(RULE_DEFINITION_SCHEMA)
_definition_validator = Draft7Validator(RULE_DEFINITION_SCHEMA)


def load_rules(definition: Mapping[str, Any]) -> Dict[str, FieldRule]:
    """Build FieldRules from a JSON-compatible definition.

    Args:
        definition: Mapping of field name to a list of check definitions.
            Field order is preserved.

    Returns:
        Dict of field name to FieldRule

    Raises:
        jsonschema.ValidationError: If the definition does not match
            RULE_DEFINITION_SCHEMA (the most relevant error is raised)
        re.error: If a pattern does not compile
        ValueError: If a check is well-formed but its parameters are
            inconsistent (e.g. a length_range whose min exceeds its max)
    """
    error = best_match(_definition_validator.iter_errors(definition))
    if error is not None:
        raise error

    return {
        name: FieldRule(field=name, checks=tuple(Check.from_dict(c) for c in checks))
        for name, checks in definition.items()
    }


__all__ = [
    "Check",
    "FieldRule",
    "Predicate",
    "RULE_DEFINITION_SCHEMA",
    "load_rules",
    "required",
    "length_range",
    "matches",
    "email",
    "equals_field",
    "date_not_future",
    "equals_literal",
    "custom",
]
