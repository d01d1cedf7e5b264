"""Integration tests for the complete registration form lifecycle.

Tests cover end-to-end scenarios combining:
- FormRuntime orchestration
- Rule evaluation and error visibility
- Submission state transitions and the auto-reset window
- Event emission and tracking
- Settings and logging configuration

These tests drive the form only through the render boundary (on_change,
on_blur, on_submit_click and the view methods), the way a UI would.
"""

import io
import logging
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from formflow import FormRuntime, create_registration_form
from formflow.clock import ManualClock
from formflow.config import FormSettings, get_settings
from formflow.events import EventEmitter
from formflow.logging_config import LOGGER_NAME, SensitiveDataFilter, setup_logging
from formflow.registration import (
    INITIAL_VALUES,
    MESSAGES,
    SimulatedSubmitter,
    redact,
    success_message,
)
from formflow.rules import FieldRule, custom, required
from formflow.types import EventType, SubmissionState, SubmitOutcome

START = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

REGISTRATION = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "password": "Abcdefg1",
    "confirmPassword": "Abcdefg1",
    "phone": "+1 (555) 123-4567",
    "birthDate": "1990-05-17",
    "terms": True,
}


def make_form(emitter=None):
    clock = ManualClock(start=START)
    settings = FormSettings(success_display_seconds=5, submit_delay_seconds=1)
    form = create_registration_form(
        clock=clock, settings=settings, emitter=emitter, form_id="form_reg"
    )
    return form, clock


def type_in(form, values):
    """Edit and leave every field, like a user tabbing through the form."""
    for name, value in values.items():
        form.on_change(name, value)
        form.on_blur(name)


class TestHappyPath:
    """Test a complete registration from empty form to auto-reset."""

    @pytest.mark.asyncio
    async def test_happy_path(self):
        """Test fill -> submit -> success shown -> auto-reset.

        1. The empty form shows no errors
        2. Every field is filled in validly
        3. The submit waits out the simulated delay and succeeds
        4. The success message names the user while shown
        5. The form returns to idle after the visibility window
        """
        form, clock = make_form()
        submitter = form.submission._submitter
        assert isinstance(submitter, SimulatedSubmitter)

        view = form.view()
        assert view["submissionState"] == "idle"
        assert all(field["error"] is None for field in view["fields"].values())

        type_in(form, REGISTRATION)
        assert form.fields.snapshot.result.is_valid

        result = await form.on_submit_click()

        assert result.outcome == SubmitOutcome.SUCCEEDED
        assert clock.elapsed == 1
        assert submitter.submissions == [REGISTRATION]
        assert form.state == SubmissionState.SUCCEEDED
        assert form.success_message() == "User Ada Lovelace saved"
        assert form.form_state()["lastSuccessValues"] == REGISTRATION

        # The form is blank again behind the confirmation
        assert form.fields.values == INITIAL_VALUES
        assert form.field_state("firstName").touched is False

        clock.advance(5)

        state = form.form_state()
        assert state["submissionState"] == "idle"
        assert state["lastSuccessValues"] is None
        assert state["successMessage"] is None

    @pytest.mark.asyncio
    async def test_event_stream(self):
        emitter = EventEmitter()
        seen = []
        emitter.on_any(lambda e: seen.append(e.type))
        form, clock = make_form(emitter)

        form.on_change("firstName", "Ada")
        form.on_blur("firstName")
        await form.on_submit_click()
        type_in(form, REGISTRATION)
        await form.on_submit_click()
        clock.advance(5)

        assert seen[:4] == [
            EventType.FIELD_CHANGED,
            EventType.FIELD_BLURRED,
            EventType.VALIDATION_FAILED,
            EventType.SUBMISSION_REJECTED,
        ]
        assert seen[-5:] == [
            EventType.VALIDATION_PASSED,
            EventType.SUBMISSION_STARTED,
            EventType.FORM_RESET,
            EventType.SUBMISSION_SUCCEEDED,
            EventType.SUBMISSION_RESET,
        ]
        assert [e.type for e in form.get_events()] == seen
        assert all(e.form_id == "form_reg" for e in form.get_events())

    @pytest.mark.asyncio
    async def test_events_never_carry_passwords(self):
        form, _ = make_form()
        type_in(form, REGISTRATION)
        await form.on_submit_click()
        dumped = "\n".join(e.to_jsonl() for e in form.get_events())
        assert "Abcdefg1" not in dumped


class TestValidationScenarios:
    """Test the registration rule catalogue through the runtime."""

    def test_first_name_too_short_after_blur(self):
        form, _ = make_form()
        view = form.on_change("firstName", "A")
        assert view.error is None
        view = form.on_blur("firstName")
        assert view.error == MESSAGES["firstName"]["too_short"]
        assert form.should_show_error("firstName") is True

    def test_password_mismatch(self):
        form, _ = make_form()
        type_in(form, {"password": "Abcdefg1", "confirmPassword": "Abcdefg2"})
        assert form.field_state("confirmPassword").error == MESSAGES["confirmPassword"]["mismatch"]

        form.on_change("password", "Abcdefg2")
        assert form.field_state("confirmPassword").error is None

    @pytest.mark.asyncio
    async def test_future_birth_date_blocks_submit(self):
        form, _ = make_form()
        type_in(form, dict(REGISTRATION, birthDate="2024-06-16"))

        result = await form.on_submit_click()

        assert result.outcome == SubmitOutcome.INVALID
        assert result.validation.invalid_fields == ["birthDate"]
        assert form.field_state("birthDate").error == MESSAGES["birthDate"]["future"]
        assert form.state == SubmissionState.IDLE

    @pytest.mark.asyncio
    async def test_unaccepted_terms(self):
        form, _ = make_form()
        type_in(form, dict(REGISTRATION, terms=False))
        result = await form.on_submit_click()
        assert result.validation.error_for("terms") == MESSAGES["terms"]["required"]

    @pytest.mark.asyncio
    async def test_empty_submit_reveals_every_error(self):
        form, _ = make_form()
        await form.on_submit_click()
        view = form.view()
        assert view["submitAttempted"] is True
        assert all(field["error"] is not None for field in view["fields"].values())


class TestFailureAndRecovery:
    """Test a failing backend followed by a successful retry by the user."""

    @pytest.mark.asyncio
    async def test_failure_keeps_input_for_retry(self):
        calls = []

        async def flaky(values):
            calls.append(values)
            if len(calls) == 1:
                raise ConnectionError("backend down")

        clock = ManualClock(start=START)
        form = create_registration_form(
            submitter=flaky, clock=clock, settings=FormSettings(success_display_seconds=5)
        )
        type_in(form, REGISTRATION)

        first = await form.on_submit_click()
        assert first.outcome == SubmitOutcome.FAILED
        assert first.error.to_dict()["reason"] == "backend down"
        assert form.state == SubmissionState.IDLE
        assert form.fields.values == REGISTRATION
        assert form.field_state("email").disabled is False

        second = await form.on_submit_click()
        assert second.outcome == SubmitOutcome.SUCCEEDED
        assert len(calls) == 2


class TestCustomForm:
    """Test a FormRuntime built from hand-written rules."""

    @pytest.mark.asyncio
    async def test_custom_rules_and_no_summary(self):
        async def submit(values):
            pass

        runtime = FormRuntime(
            rules=[
                FieldRule.of(
                    "code",
                    required("Code is required"),
                    custom(lambda value, values: value.isdigit(), "Digits only"),
                ),
            ],
            submitter=submit,
            clock=ManualClock(start=START),
            settings=FormSettings(),
        )
        runtime.on_change("code", "12a")
        assert runtime.on_blur("code").error == "Digits only"

        runtime.on_change("code", "123")
        result = await runtime.on_submit_click()

        assert result.ok
        assert runtime.success_message() is None
        assert runtime.form_state()["lastSuccessValues"] == {"code": "123"}

    def test_sessions_are_independent(self):
        first, _ = make_form()
        second, _ = make_form()
        first.on_change("firstName", "Ada")
        assert second.fields.values["firstName"] == ""


class TestSettings:
    """Test FormSettings and get_settings."""

    def test_defaults(self):
        settings = FormSettings()
        assert settings.success_display_seconds == 5.0
        assert settings.submit_delay_seconds == 1.0
        assert settings.log_level == "INFO"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FORMFLOW_SUCCESS_DISPLAY_SECONDS", "3")
        monkeypatch.setenv("FORMFLOW_LOG_LEVEL", "debug")
        settings = FormSettings()
        assert settings.success_display_seconds == 3.0
        assert settings.log_level == "DEBUG"

    def test_invalid_values_are_rejected(self):
        with pytest.raises(ValidationError):
            FormSettings(success_display_seconds=0)
        with pytest.raises(ValidationError):
            FormSettings(log_level="LOUD")
        with pytest.raises(ValidationError):
            FormSettings(max_recorded_events=0)

    def test_event_log_cap_applies_to_form(self):
        """Should keep only the newest events once the configured cap is hit."""
        form = create_registration_form(
            clock=ManualClock(start=START), settings=FormSettings(max_recorded_events=3)
        )
        type_in(form, REGISTRATION)

        events = form.get_events()
        assert len(events) == 3
        assert events[-1].type == EventType.FIELD_BLURRED
        assert events[-1].payload == {"field": "terms"}

    def test_get_settings_is_cached(self, monkeypatch):
        get_settings.cache_clear()
        monkeypatch.setenv("FORMFLOW_SUBMIT_DELAY_SECONDS", "2")
        try:
            first = get_settings()
            assert first is get_settings()
            assert first.submit_delay_seconds == 2.0
        finally:
            get_settings.cache_clear()


class TestLogging:
    """Test logging setup and password masking."""

    def test_filter_masks_password_in_dict_args(self):
        record = logging.LogRecord(
            "formflow.registration", logging.INFO, __file__, 1,
            "Registration data: %s", ({"password": "Secret123", "email": "a@b.co"},), None,
        )
        assert SensitiveDataFilter().filter(record) is True
        message = record.getMessage()
        assert "Secret123" not in message
        assert "a@b.co" in message

    def test_disabled_filter_leaves_message(self):
        record = logging.LogRecord(
            "formflow", logging.INFO, __file__, 1, "password=Secret123", (), None,
        )
        SensitiveDataFilter(enabled=False).filter(record)
        assert record.getMessage() == "password=Secret123"

    def test_setup_logging_writes_masked_output(self):
        stream = io.StringIO()
        logger = setup_logging(level="DEBUG", stream=stream)
        try:
            logging.getLogger("formflow.test").info("password: Secret123")
            output = stream.getvalue()
            assert "formflow.test - INFO - password: ***" in output
            assert "Secret123" not in output
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)

    def test_setup_logging_replaces_its_handler(self):
        setup_logging(level="INFO", stream=io.StringIO())
        logger = setup_logging(level="INFO", stream=io.StringIO())
        try:
            assert logger.name == LOGGER_NAME
            assert len([h for h in logger.handlers if getattr(h, "_formflow_handler", False)]) == 1
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)

    def test_redact_masks_password_fields(self):
        masked = redact(REGISTRATION)
        assert masked["password"] == "***"
        assert masked["confirmPassword"] == "***"
        assert masked["email"] == "ada@example.com"
        assert redact({"password": ""})["password"] == ""

    def test_success_message(self):
        assert success_message(REGISTRATION) == "User Ada Lovelace saved"
