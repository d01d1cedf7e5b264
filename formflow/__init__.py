"""FormFlow form validation and submission lifecycle engine.

FormFlow manages the value, error and submission state of one structured
form:
- Declarative per-field rules, including cross-field and date checks
- Error visibility driven by touched flags and submit attempts
- A submission state machine (idle, submitting, succeeded) with a timed
  auto-reset of the success confirmation
- A typed event stream for every edit and transition

Basic usage:
    >>> from formflow import create_registration_form
    >>> form = create_registration_form()
    >>> form.on_change("firstName", "Ada").error is None
    True
    >>> form.state.value
    'idle'
"""

__version__ = "0.1.0"
__author__ = "FormFlow Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formflow.registration import create_registration_form
from formflow.runtime import FormRuntime

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormRuntime",
    "create_registration_form",
]
