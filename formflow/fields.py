"""Field controller: values, touched flags and error visibility.

The FieldController owns the current values of one form. Every edit is
applied and then the whole schema is re-evaluated before the call returns,
so the FormSnapshot read afterwards never shows a stale error.

Error visibility follows the usual form UX rule: an invalid field shows its
error once it has been touched (blurred), or once a submit has been
attempted since the last reset.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from formflow.errors import FieldLockedError, UnknownFieldError
from formflow.types import EventType
from formflow.validation import SchemaEngine, ValidationResult

EventSink = Callable[[EventType, Optional[Dict[str, Any]]], Any]


@dataclass(frozen=True)
class FieldView:
    """Render state of a single field.

    Attributes:
        name: Field name
        value: Current value
        error: Message to display, or None when nothing should be shown
        touched: Whether the field has been blurred since the last reset
        disabled: Whether input is locked (a submission is in flight)
    """
    name: str
    value: Any
    error: Optional[str]
    touched: bool
    disabled: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "error": self.error,
            "touched": self.touched,
            "disabled": self.disabled,
        }


@dataclass(frozen=True)
class FormSnapshot:
    """Consistent view of values, touched flags and validation errors.

    Snapshots are rebuilt after every event rather than patched.

    Attributes:
        values: Current value of every field
        touched: Touched flag of every field
        result: ValidationResult computed from ``values``
        submit_attempted: Whether a submit was tried since the last reset
        locked: Whether fields are locked for an in-flight submission
    """
    values: Dict[str, Any]
    touched: Dict[str, bool]
    result: ValidationResult
    submit_attempted: bool = False
    locked: bool = False

    def should_show_error(self, field_name: str) -> bool:
        if field_name not in self.values:
            raise UnknownFieldError(field_name)
        if self.result.error_for(field_name) is None:
            return False
        return self.touched[field_name] or self.submit_attempted

    def field_view(self, field_name: str) -> FieldView:
        if field_name not in self.values:
            raise UnknownFieldError(field_name)
        return FieldView(
            name=field_name,
            value=self.values[field_name],
            error=self.result.error_for(field_name) if self.should_show_error(field_name) else None,
            touched=self.touched[field_name],
            disabled=self.locked,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fields": {name: self.field_view(name).to_dict() for name in self.values},
            "submitAttempted": self.submit_attempted,
            "isValid": self.result.is_valid,
        }


class FieldController:
    """Tracks field values and touched flags for one form.

    Attributes:
        engine: SchemaEngine used to evaluate the values

    Examples:
        >>> from formflow.rules import FieldRule, required
        >>> engine = SchemaEngine([FieldRule.of("name", required("Name is required"))])
        >>> fields = FieldController(engine)
        >>> fields.should_show_error("name")
        False
        >>> _ = fields.on_blur("name")
        >>> fields.should_show_error("name")
        True
    """

    def __init__(
        self,
        engine: SchemaEngine,
        initial_values: Optional[Mapping[str, Any]] = None,
        event_sink: Optional[EventSink] = None,
    ) -> None:
        """Initialize the controller.

        Args:
            engine: Schema engine that declares the fields
            initial_values: Empty defaults per field. Fields not listed
                default to "".
            event_sink: Optional callable receiving (event_type, payload)
                for every edit, blur and reset

        Raises:
            UnknownFieldError: If initial_values names an undeclared field
        """
        self.engine = engine
        self.event_sink = event_sink

        defaults: Dict[str, Any] = {name: "" for name in engine.fields}
        for name, value in (initial_values or {}).items():
            if name not in defaults:
                raise UnknownFieldError(name)
            defaults[name] = value
        self._initial_values = defaults

        self._values: Dict[str, Any] = dict(defaults)
        self._touched: Dict[str, bool] = {name: False for name in defaults}
        self._submit_attempted = False
        self._locked = False
        self._snapshot = self._rebuild()

    def _rebuild(self) -> FormSnapshot:
        values = dict(self._values)
        self._snapshot = FormSnapshot(
            values=values,
            touched=dict(self._touched),
            result=self.engine.evaluate(values),
            submit_attempted=self._submit_attempted,
            locked=self._locked,
        )
        return self._snapshot

    def _emit(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> None:
        if self.event_sink is not None:
            self.event_sink(event_type, payload)

    def _check_editable(self, field_name: str) -> None:
        if field_name not in self._values:
            raise UnknownFieldError(field_name)
        if self._locked:
            raise FieldLockedError(field_name)

    @property
    def snapshot(self) -> FormSnapshot:
        return self._snapshot

    @property
    def values(self) -> Dict[str, Any]:
        """Copy of the current values."""
        return dict(self._values)

    @property
    def initial_values(self) -> Dict[str, Any]:
        return dict(self._initial_values)

    @property
    def submit_attempted(self) -> bool:
        return self._submit_attempted

    @property
    def locked(self) -> bool:
        return self._locked

    def on_change(self, field_name: str, value: Any) -> FormSnapshot:
        """Store a new value for ``field_name`` and re-evaluate the form.

        Raises:
            UnknownFieldError: If the field is not declared
            FieldLockedError: If a submission is in flight
        """
        self._check_editable(field_name)
        self._values[field_name] = value
        snapshot = self._rebuild()
        # Values are left out: they may be passwords
        self._emit(EventType.FIELD_CHANGED, {
            "field": field_name,
            "error": snapshot.result.error_for(field_name),
        })
        return snapshot

    def on_blur(self, field_name: str) -> FormSnapshot:
        """Mark ``field_name`` touched until the next reset."""
        self._check_editable(field_name)
        self._touched[field_name] = True
        snapshot = self._rebuild()
        self._emit(EventType.FIELD_BLURRED, {"field": field_name})
        return snapshot

    def should_show_error(self, field_name: str) -> bool:
        """True iff the field is invalid and touched, or a submit was attempted."""
        return self._snapshot.should_show_error(field_name)

    def mark_submit_attempted(self) -> FormSnapshot:
        self._submit_attempted = True
        return self._rebuild()

    def revalidate(self) -> FormSnapshot:
        """Re-evaluate the current values against a fresh clock reading."""
        return self._rebuild()

    def lock(self) -> FormSnapshot:
        self._locked = True
        return self._rebuild()

    def unlock(self) -> FormSnapshot:
        self._locked = False
        return self._rebuild()

    def reset(self) -> FormSnapshot:
        """Return to the initial state: default values, nothing touched, unlocked."""
        self._values = dict(self._initial_values)
        self._touched = {name: False for name in self._values}
        self._submit_attempted = False
        self._locked = False
        snapshot = self._rebuild()
        self._emit(EventType.FORM_RESET)
        return snapshot


__all__ = [
    "EventSink",
    "FieldController",
    "FieldView",
    "FormSnapshot",
]
