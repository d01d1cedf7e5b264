"""FormRuntime orchestrator for a FormFlow form session.

This module provides the FormRuntime class that wires the schema engine,
field controller and submission controller of one form together, and exposes
the render boundary: per-field view state, global submission state, and the
event entry points a renderer forwards user input to.

The runtime owns all of the session's state. Several runtimes can coexist
without sharing anything.

Usage:
    >>> from formflow.rules import FieldRule, required
    >>> async def submit(values):
    ...     pass
    >>> runtime = FormRuntime(
    ...     rules=[FieldRule.of("name", required("Name is required"))],
    ...     submitter=submit,
    ... )
    >>> runtime.form_state()["submissionState"]
    'idle'
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from formflow.clock import Clock, SystemClock
from formflow.config import FormSettings, get_settings
from formflow.events import EventEmitter, FormEvent
from formflow.fields import FieldController, FieldView
from formflow.rules import FieldRule
from formflow.submission import SubmissionController, Submitter, SubmitResult
from formflow.types import SubmissionState
from formflow.validation import SchemaEngine


class FormRuntime:
    """One form session: values, errors and submission lifecycle.

    Attributes:
        clock: Clock shared by date checks, event timestamps and timers
        settings: Settings in effect for this session
        engine: Schema engine evaluating the form's rules
        fields: Field controller holding values and touched flags
        submission: Submission controller driving the state machine
    """

    def __init__(
        self,
        rules: Union[Mapping[str, FieldRule], Iterable[FieldRule]],
        submitter: Submitter,
        initial_values: Optional[Mapping[str, Any]] = None,
        clock: Optional[Clock] = None,
        settings: Optional[FormSettings] = None,
        emitter: Optional[EventEmitter] = None,
        form_id: Optional[str] = None,
        summary: Optional[Callable[[Mapping[str, Any]], str]] = None,
    ):
        """Initialize the runtime.

        Args:
            rules: Field rules of the form
            submitter: Async submit collaborator
            initial_values: Empty defaults per field (missing fields default to "")
            clock: Clock collaborator. Defaults to SystemClock.
            settings: Settings. Defaults to get_settings().
            emitter: Optional emitter receiving every event of the form
            form_id: Optional session identifier
            summary: Optional formatter for the success confirmation text
        """
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.engine = SchemaEngine(rules, clock=self.clock)
        self.fields = FieldController(self.engine, initial_values)
        self.submission = SubmissionController(
            self.fields,
            submitter,
            clock=self.clock,
            form_id=form_id,
            settings=self.settings,
            emitter=emitter,
        )
        self._summary = summary

    @property
    def form_id(self) -> str:
        return self.submission.form_id

    @property
    def state(self) -> SubmissionState:
        return self.submission.state

    def on_change(self, field_name: str, value: Any) -> FieldView:
        """Forward a value edit. Returns the field's updated view."""
        return self.fields.on_change(field_name, value).field_view(field_name)

    def on_blur(self, field_name: str) -> FieldView:
        """Forward a focus loss. Returns the field's updated view."""
        return self.fields.on_blur(field_name).field_view(field_name)

    async def on_submit_click(self) -> SubmitResult:
        """Forward a submit click."""
        return await self.submission.submit()

    def should_show_error(self, field_name: str) -> bool:
        return self.fields.should_show_error(field_name)

    def field_state(self, field_name: str) -> FieldView:
        """Render state of one field: value, visible error, touched, disabled."""
        return self.fields.snapshot.field_view(field_name)

    def success_message(self) -> Optional[str]:
        """Confirmation text while a success is being shown, else None."""
        values = self.submission.last_success_values
        if values is None or self._summary is None:
            return None
        return self._summary(values)

    def form_state(self) -> Dict[str, Any]:
        """Global render state of the form."""
        return {
            "submissionState": self.state.value,
            "lastSuccessValues": self.submission.last_success_values,
            "submitAttempted": self.fields.submit_attempted,
            "successMessage": self.success_message(),
        }

    def view(self) -> Dict[str, Any]:
        """Complete render state: every field plus the global state."""
        snapshot = self.fields.snapshot
        return {
            "formId": self.form_id,
            "fields": {name: snapshot.field_view(name).to_dict() for name in snapshot.values},
            **self.form_state(),
        }

    def get_events(self) -> List[FormEvent]:
        """All events recorded for this form, in order."""
        return self.submission.machine.get_events()


__all__ = [
    "FormRuntime",
]
