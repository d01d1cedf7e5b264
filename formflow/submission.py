"""Submission controller for a FormFlow form session.

The SubmissionController sequences one submit cycle:

1. Mark the submit as attempted and re-evaluate the form. Any error rejects
   the attempt; the state does not change.
2. Cancel a pending auto-reset timer, lock the fields and move to SUBMITTING.
3. Await the submit collaborator with a copy of the values.
4. On success: keep a copy of the submitted values for display, reset the
   form, move to SUCCEEDED and schedule auto_reset() after the visibility
   window.
5. On failure: unlock the fields, move back to IDLE and report the failure
   once. The values stay as entered and nothing is retried.

Leaving the collaborator call any other way (cancellation, interpreter
shutdown) also unlocks the fields and returns to IDLE before re-raising.

Only one submission can be in flight; a submit() while SUBMITTING is
rejected as busy.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from formflow.clock import Clock, SystemClock, TimerHandle
from formflow.config import FormSettings, get_settings
from formflow.errors import SubmissionError
from formflow.events import EventEmitter
from formflow.fields import FieldController
from formflow.state_machine import SubmissionStateMachine
from formflow.types import EventType, SubmissionState, SubmitOutcome
from formflow.validation import ValidationResult

logger = logging.getLogger(__name__)

Submitter = Callable[[Dict[str, Any]], Awaitable[Any]]
"""Submit collaborator: awaited with the form values; raising means failure."""


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of one submit() call.

    Attributes:
        outcome: What happened to the attempt
        state: Submission state after the call
        values: Submitted values (SUCCEEDED only)
        validation: Validation result that rejected the attempt (INVALID only)
        error: Collaborator failure envelope (FAILED only)
    """
    outcome: SubmitOutcome
    state: SubmissionState
    values: Optional[Dict[str, Any]] = None
    validation: Optional[ValidationResult] = None
    error: Optional[SubmissionError] = None

    @property
    def ok(self) -> bool:
        return self.outcome == SubmitOutcome.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization. Submitted values are left out."""
        result: Dict[str, Any] = {
            "ok": self.ok,
            "outcome": self.outcome.value,
            "state": self.state.value,
        }
        if self.validation is not None:
            result["validation"] = self.validation.to_dict()
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


class SubmissionController:
    """Drives the submission state machine of one form.

    Attributes:
        fields: Field controller holding the form's values
        form_id: Identifier of this form session
        machine: The submission state machine
    """

    def __init__(
        self,
        fields: FieldController,
        submitter: Submitter,
        clock: Optional[Clock] = None,
        form_id: Optional[str] = None,
        settings: Optional[FormSettings] = None,
        emitter: Optional[EventEmitter] = None,
    ) -> None:
        """Initialize the controller.

        Args:
            fields: Field controller of the form
            submitter: Async collaborator invoked once per accepted submit
            clock: Clock used for the auto-reset timer. Defaults to SystemClock.
            form_id: Session identifier. Generated if omitted.
            settings: Settings providing the visibility window. Defaults to
                get_settings().
            emitter: Optional emitter receiving every event of this form
        """
        self.fields = fields
        self.form_id = form_id or f"form_{uuid.uuid4().hex[:16]}"
        self._submitter = submitter
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        self.machine = SubmissionStateMachine(
            form_id=self.form_id,
            emitter=emitter,
            clock=self._clock,
            max_events=self._settings.max_recorded_events,
        )
        if fields.event_sink is None:
            fields.event_sink = self.machine.record
        self._reset_timer: Optional[TimerHandle] = None
        self._next_timer_id = 0
        self._last_success_values: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> SubmissionState:
        return self.machine.state

    @property
    def last_success_values(self) -> Optional[Dict[str, Any]]:
        """Copy of the values of the last successful submission, while shown."""
        if self._last_success_values is None:
            return None
        return dict(self._last_success_values)

    @property
    def auto_reset_pending(self) -> bool:
        return self._reset_timer is not None

    def _cancel_auto_reset(self) -> None:
        self._next_timer_id += 1
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
            logger.debug("Cancelled pending auto-reset for form %s", self.form_id)

    async def submit(self) -> SubmitResult:
        """Attempt a guarded submission of the current values.

        Returns:
            SubmitResult describing the outcome. Validation and collaborator
            failures are reported here, not raised.

        Raises:
            asyncio.CancelledError: If the awaiting task is cancelled. The
                form is returned to IDLE with fields unlocked first. Any
                other BaseException from the collaborator (KeyboardInterrupt,
                SystemExit, GeneratorExit) is handled the same way.
        """
        if self.state == SubmissionState.SUBMITTING:
            logger.debug("Submit ignored for form %s: already submitting", self.form_id)
            self.machine.record(EventType.SUBMISSION_REJECTED, {"reason": "busy"})
            return SubmitResult(outcome=SubmitOutcome.BUSY, state=self.state)

        snapshot = self.fields.mark_submit_attempted()
        result = snapshot.result
        if not result.is_valid:
            logger.debug(
                "Submit rejected for form %s: invalid fields %s",
                self.form_id, result.invalid_fields,
            )
            self.machine.record(EventType.VALIDATION_FAILED, {
                "errors": [e.to_dict() for e in result.errors.values()],
            })
            self.machine.record(EventType.SUBMISSION_REJECTED, {
                "reason": "invalid",
                "invalidFields": result.invalid_fields,
            })
            return SubmitResult(
                outcome=SubmitOutcome.INVALID, state=self.state, validation=result
            )

        self.machine.record(EventType.VALIDATION_PASSED)
        self._cancel_auto_reset()
        self._last_success_values = None
        values = dict(snapshot.values)

        # Locked before listeners hear submission.started
        self.fields.lock()
        self.machine.transition_to(SubmissionState.SUBMITTING)
        logger.info("Submitting form %s", self.form_id)

        try:
            await self._submitter(dict(values))
        except Exception as exc:
            self.fields.unlock()
            error = SubmissionError.from_exception(self.form_id, SubmissionState.IDLE, exc)
            self.machine.transition_to(SubmissionState.IDLE, payload={
                "reason": error.reason,
                "exceptionType": error.exception_type,
            })
            logger.warning("Submission of form %s failed: %s", self.form_id, error.reason)
            return SubmitResult(outcome=SubmitOutcome.FAILED, state=self.state, error=error)
        except BaseException as exc:
            # Task cancellation, interpreter shutdown or coroutine close
            self.fields.unlock()
            reason = "cancelled" if isinstance(exc, asyncio.CancelledError) else "interrupted"
            self.machine.transition_to(
                SubmissionState.IDLE,
                payload={"reason": reason, "exceptionType": type(exc).__name__},
                event_type=EventType.SUBMISSION_CANCELLED,
            )
            logger.info("Submission of form %s was %s", self.form_id, reason)
            raise

        self._last_success_values = values
        self.fields.reset()
        self.machine.transition_to(SubmissionState.SUCCEEDED)
        timer_id = self._next_timer_id = self._next_timer_id + 1
        self._reset_timer = self._clock.call_later(
            self._settings.success_display_seconds,
            lambda: self._on_reset_timer(timer_id),
        )
        logger.info("Form %s submitted successfully", self.form_id)
        return SubmitResult(
            outcome=SubmitOutcome.SUCCEEDED, state=self.state, values=dict(values)
        )

    def _on_reset_timer(self, timer_id: int) -> None:
        if timer_id != self._next_timer_id:
            logger.debug("Stale auto-reset timer %d ignored for form %s", timer_id, self.form_id)
            return
        self.auto_reset()

    def auto_reset(self) -> bool:
        """Leave SUCCEEDED once the visibility window has elapsed.

        Returns:
            True if the state changed. Outside SUCCEEDED this does nothing.
        """
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
        if self.state != SubmissionState.SUCCEEDED:
            logger.debug(
                "Stale auto-reset ignored for form %s in state %s",
                self.form_id, self.state.value,
            )
            return False
        self._last_success_values = None
        self.machine.transition_to(SubmissionState.IDLE)
        logger.debug("Auto-reset form %s to idle", self.form_id)
        return True


__all__ = [
    "SubmissionController",
    "SubmitResult",
    "Submitter",
]
