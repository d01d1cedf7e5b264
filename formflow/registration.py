"""The user registration form.

Defines the registration form's rule catalogue as a declarative definition,
its empty initial values, a simulated submit collaborator and the text of the
success confirmation.

Usage:
    >>> form = create_registration_form()
    >>> form.fields.snapshot.result.error_for("firstName")
    'First name is required'
"""

import logging
from typing import Any, Dict, Mapping, Optional

from formflow.clock import Clock, SystemClock
from formflow.config import FormSettings, get_settings
from formflow.events import EventEmitter
from formflow.rules import FieldRule, load_rules
from formflow.runtime import FormRuntime
from formflow.submission import Submitter

logger = logging.getLogger(__name__)

PASSWORD_FIELDS = frozenset({"password", "confirmPassword"})

# Error messages shown to the user, keyed by field
MESSAGES: Dict[str, Dict[str, str]] = {
    "firstName": {
        "required": "First name is required",
        "too_short": "First name must be at least 2 characters",
        "too_long": "First name cannot exceed 50 characters",
    },
    "lastName": {
        "required": "Last name is required",
        "too_short": "Last name must be at least 2 characters",
        "too_long": "Last name cannot exceed 50 characters",
    },
    "email": {
        "required": "Email is required",
        "invalid": "Invalid email format",
    },
    "password": {
        "required": "Password is required",
        "too_short": "Password must be at least 8 characters",
        "complexity": (
            "Password must contain at least one uppercase letter, "
            "one lowercase letter and one digit"
        ),
    },
    "confirmPassword": {
        "required": "Password confirmation is required",
        "mismatch": "Passwords do not match",
    },
    "phone": {
        "required": "Phone number is required",
        "invalid": "Invalid phone number format",
    },
    "birthDate": {
        "required": "Birth date is required",
        "future": "Birth date cannot be in the future",
    },
    "terms": {
        "required": "You must accept the terms of use",
    },
}

PASSWORD_PATTERN = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9])"
PHONE_PATTERN = r"^\+?[0-9 ()-]{10,}\Z"


def _name_checks(field_name: str) -> list:
    msg = MESSAGES[field_name]
    return [
        {"kind": "required", "message": msg["required"]},
        {
            "kind": "length_range",
            "min": 2,
            "max": 50,
            "message": msg["too_short"],
            "maxMessage": msg["too_long"],
        },
    ]


REGISTRATION_DEFINITION: Dict[str, Any] = {
    "firstName": _name_checks("firstName"),
    "lastName": _name_checks("lastName"),
    "email": [
        {"kind": "required", "message": MESSAGES["email"]["required"]},
        {"kind": "email", "message": MESSAGES["email"]["invalid"]},
    ],
    "password": [
        {"kind": "required", "message": MESSAGES["password"]["required"]},
        {"kind": "length_range", "min": 8, "message": MESSAGES["password"]["too_short"]},
        {
            "kind": "pattern",
            "pattern": PASSWORD_PATTERN,
            "message": MESSAGES["password"]["complexity"],
        },
    ],
    "confirmPassword": [
        {"kind": "required", "message": MESSAGES["confirmPassword"]["required"]},
        {
            "kind": "equals_field",
            "field": "password",
            "message": MESSAGES["confirmPassword"]["mismatch"],
        },
    ],
    "phone": [
        {"kind": "required", "message": MESSAGES["phone"]["required"]},
        {"kind": "pattern", "pattern": PHONE_PATTERN, "message": MESSAGES["phone"]["invalid"]},
    ],
    "birthDate": [
        {"kind": "required", "message": MESSAGES["birthDate"]["required"]},
        {"kind": "date_not_future", "message": MESSAGES["birthDate"]["future"]},
    ],
    "terms": [
        {"kind": "required", "message": MESSAGES["terms"]["required"]},
        {"kind": "equals_literal", "value": True, "message": MESSAGES["terms"]["required"]},
    ],
}

INITIAL_VALUES: Dict[str, Any] = {
    "firstName": "",
    "lastName": "",
    "email": "",
    "password": "",
    "confirmPassword": "",
    "phone": "",
    "birthDate": "",
    "terms": False,
}


def registration_rules() -> Dict[str, FieldRule]:
    """Build the registration form's FieldRules from its definition."""
    return load_rules(REGISTRATION_DEFINITION)


def redact(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``values`` with password fields masked, for logging."""
    return {
        name: ("***" if name in PASSWORD_FIELDS and value else value)
        for name, value in values.items()
    }


def success_message(values: Mapping[str, Any]) -> str:
    """Confirmation text shown after a successful registration."""
    return f"User {values.get('firstName', '')} {values.get('lastName', '')} saved"


class SimulatedSubmitter:
    """Submit collaborator that stands in for a registration backend.

    Logs the (redacted) values, waits ``delay`` on the clock and succeeds.

    Attributes:
        clock: Clock used for the simulated network delay
        delay: Delay in clock units
        submissions: Values received, in order
    """

    def __init__(self, clock: Clock, delay: float):
        self.clock = clock
        self.delay = delay
        self.submissions: list = []

    async def __call__(self, values: Dict[str, Any]) -> None:
        logger.info("Registration data: %s", redact(values))
        await self.clock.sleep(self.delay)
        self.submissions.append(dict(values))


def create_registration_form(
    submitter: Optional[Submitter] = None,
    clock: Optional[Clock] = None,
    settings: Optional[FormSettings] = None,
    emitter: Optional[EventEmitter] = None,
    form_id: Optional[str] = None,
) -> FormRuntime:
    """Create a registration form session.

    Args:
        submitter: Submit collaborator. Defaults to a SimulatedSubmitter with
            the configured submit delay.
        clock: Clock for date checks and timers. Defaults to SystemClock.
        settings: Settings. Defaults to get_settings().
        emitter: Optional emitter receiving every event of the form
        form_id: Optional session identifier

    Returns:
        A FormRuntime in the idle state with empty values
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    if submitter is None:
        submitter = SimulatedSubmitter(clock, settings.submit_delay_seconds)
    return FormRuntime(
        rules=registration_rules(),
        submitter=submitter,
        initial_values=INITIAL_VALUES,
        clock=clock,
        settings=settings,
        emitter=emitter,
        form_id=form_id,
        summary=success_message,
    )


__all__ = [
    "INITIAL_VALUES",
    "MESSAGES",
    "REGISTRATION_DEFINITION",
    "SimulatedSubmitter",
    "create_registration_form",
    "redact",
    "registration_rules",
    "success_message",
]
