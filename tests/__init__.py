"""Test suite for FormFlow.

This package contains tests for:
- Rule definitions and declarative loading
- Schema engine (every check kind, short-circuiting, cross-field checks)
- Field controller (touched flags, error visibility, locking, reset)
- Submission state machine and controller (success, failure, auto-reset)
- Event system (emission, serialization)
- Integration scenarios on the registration form
"""
