"""Submission state machine for a FormFlow form session.

This module implements the state machine that enforces valid transitions of
a form's submission lifecycle:

    idle --submit accepted--> submitting
    submitting --collaborator succeeded--> succeeded
    submitting --collaborator failed/cancelled--> idle
    succeeded --auto-reset timer--> idle
    succeeded --submit accepted--> submitting

The state machine:
- Enforces valid transitions between states
- Records a typed event for every transition (and for any other event the
  form chooses to record) and forwards it to an optional EventEmitter
- Provides serialization/deserialization of its state

Usage:
    >>> from formflow.state_machine import SubmissionStateMachine
    >>> sm = SubmissionStateMachine(form_id="form_123")
    >>> sm.state
    <SubmissionState.IDLE: 'idle'>
    >>> _ = sm.transition_to(SubmissionState.SUBMITTING)
    >>> sm.state
    <SubmissionState.SUBMITTING: 'submitting'>
    >>> len(sm.get_events())
    1
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from formflow.clock import Clock
from formflow.events import EventEmitter, FormEvent, new_event_id
from formflow.types import EventType, SubmissionState


class InvalidStateTransitionError(Exception):
    """Raised when attempting an invalid state transition.

    Attributes:
        current_state: The current state before the attempted transition
        target_state: The target state that was attempted
    """

    def __init__(self, current_state: SubmissionState, target_state: SubmissionState, message: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(message)


# Valid state transitions: each state maps to the states it can move to
VALID_TRANSITIONS: Dict[SubmissionState, Set[SubmissionState]] = {
    SubmissionState.IDLE: {
        SubmissionState.SUBMITTING,
    },
    SubmissionState.SUBMITTING: {
        SubmissionState.SUCCEEDED,
        SubmissionState.IDLE,
    },
    SubmissionState.SUCCEEDED: {
        SubmissionState.SUBMITTING,
        SubmissionState.IDLE,
    },
}


# Event type emitted for each (from, to) transition
TRANSITION_EVENT_TYPES: Dict[Tuple[SubmissionState, SubmissionState], EventType] = {
    (SubmissionState.IDLE, SubmissionState.SUBMITTING): EventType.SUBMISSION_STARTED,
    (SubmissionState.SUCCEEDED, SubmissionState.SUBMITTING): EventType.SUBMISSION_STARTED,
    (SubmissionState.SUBMITTING, SubmissionState.SUCCEEDED): EventType.SUBMISSION_SUCCEEDED,
    (SubmissionState.SUBMITTING, SubmissionState.IDLE): EventType.SUBMISSION_FAILED,
    (SubmissionState.SUCCEEDED, SubmissionState.IDLE): EventType.SUBMISSION_RESET,
}


@dataclass
class SubmissionStateMachine:
    """State machine for one form session's submission lifecycle.

    Attributes:
        form_id: Identifier of the form session
        state: Current submission state
        emitter: Optional emitter that receives every recorded event
        clock: Optional clock used to timestamp events
        max_events: Optional cap on the recorded event log. Field edits
            record one event per change, so a long session grows the log
            without bound unless this is set; the oldest events are dropped
            first. The emitter still receives every event.

    Examples:
        >>> sm = SubmissionStateMachine(form_id="form_123")
        >>> sm.can_transition_to(SubmissionState.SUBMITTING)
        True
        >>> sm.can_transition_to(SubmissionState.SUCCEEDED)
        False
    """

    form_id: str
    state: SubmissionState = SubmissionState.IDLE
    emitter: Optional[EventEmitter] = field(default=None, repr=False, compare=False)
    clock: Optional[Clock] = field(default=None, repr=False, compare=False)
    max_events: Optional[int] = field(default=None, repr=False, compare=False)
    _events: List[FormEvent] = field(default_factory=list, init=False, repr=False)

    def can_transition_to(self, target_state: SubmissionState) -> bool:
        """Check if transition to target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self.state, set())

    def transition_to(
        self,
        target_state: SubmissionState,
        payload: Optional[Dict[str, Any]] = None,
        event_type: Optional[EventType] = None,
    ) -> FormEvent:
        """Transition to a new state and record a transition event.

        Args:
            target_state: The state to transition to
            payload: Extra event data merged with from/to states
            event_type: Overrides the default event type for this transition
                (e.g., SUBMISSION_CANCELLED instead of SUBMISSION_FAILED)

        Returns:
            The recorded event

        Raises:
            InvalidStateTransitionError: If the transition is not allowed
        """
        if not self.can_transition_to(target_state):
            valid = sorted(s.value for s in VALID_TRANSITIONS[self.state])
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=target_state,
                message=(
                    f"Invalid state transition: cannot transition from "
                    f"'{self.state.value}' to '{target_state.value}'. "
                    f"Valid transitions from '{self.state.value}' are: {', '.join(valid)}"
                ),
            )

        old_state = self.state
        self.state = target_state

        if event_type is None:
            event_type = TRANSITION_EVENT_TYPES[(old_state, target_state)]
        data: Dict[str, Any] = {"from_state": old_state.value, "to_state": target_state.value}
        if payload:
            data.update(payload)
        return self.record(event_type, data)

    def record(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> FormEvent:
        """Record an event at the current state and forward it to the emitter."""
        ts = self.clock.now() if self.clock is not None else datetime.now().astimezone()
        event = FormEvent(
            event_id=new_event_id(),
            type=event_type,
            form_id=self.form_id,
            ts=ts,
            state=self.state,
            payload=payload,
        )
        self._events.append(event)
        if self.max_events is not None and len(self._events) > self.max_events:
            del self._events[:-self.max_events]
        if self.emitter is not None:
            self.emitter.emit(event)
        return event

    def get_events(self) -> List[FormEvent]:
        """Get the recorded events (at most max_events) in chronological order."""
        return list(self._events)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the state machine to a dictionary.

        Examples:
            >>> SubmissionStateMachine(form_id="form_123").to_dict()
            {'formId': 'form_123', 'state': 'idle'}
        """
        return {
            "formId": self.form_id,
            "state": self.state.value if isinstance(self.state, SubmissionState) else self.state,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionStateMachine":
        """Deserialize a state machine from a dictionary."""
        state = data["state"]
        if isinstance(state, str):
            state = SubmissionState(state)
        return cls(form_id=data["formId"], state=state)


__all__ = [
    "SubmissionStateMachine",
    "InvalidStateTransitionError",
    "VALID_TRANSITIONS",
    "TRANSITION_EVENT_TYPES",
]
