"""
Logging configuration for FormFlow with password masking
"""
import logging
import re
import sys
from typing import Optional

from formflow.config import get_settings

LOGGER_NAME = "formflow"


class SensitiveDataFilter(logging.Filter):
    """Filter to mask password values in log messages"""

    SENSITIVE_PATTERNS = [
        (r'((?:confirm)?password["\']?\s*[:=]\s*["\']?)([^"\'\s,}&]+)', r'\1***'),
        (r'(token["\']?\s*[:=]\s*["\']?)([^"\'\s,}&]+)', r'\1***'),
    ]

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    def _mask(self, text: str) -> str:
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask sensitive data in the rendered message"""
        if not self.enabled:
            return True

        message = record.getMessage()
        masked = self._mask(message)
        if masked != message:
            # Args may be dicts of form values; freeze the masked text instead
            record.msg = masked
            record.args = ()

        return True


def setup_logging(level: Optional[str] = None, stream=None) -> logging.Logger:
    """Configure the ``formflow`` logger.

    Calling it again replaces the handler installed by the previous call
    instead of adding a second one.

    Args:
        level: Logging level name. Defaults to the configured log_level.
        stream: Output stream. Defaults to stdout.

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level or get_settings().log_level)

    for handler in list(logger.handlers):
        if getattr(handler, "_formflow_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    handler.addFilter(SensitiveDataFilter())
    handler._formflow_handler = True
    logger.addHandler(handler)
    return logger
