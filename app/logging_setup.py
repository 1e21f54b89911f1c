"""Logging configuration and credential redaction.

Provider keys and anti-forgery tokens must never reach log output. The
filter below rewrites matching substrings in both the message template and
its string arguments.
"""

import logging
import re

REDACTION_PATTERNS = [
    (re.compile(r"AIza[0-9A-Za-z_-]{20,}"), "[REDACTED_KEY]"),
    (re.compile(r'("apiKey"\s*:\s*")[^"]*(")'), r"\1[REDACTED]\2"),
    (re.compile(r'("csrfToken"\s*:\s*")[^"]*(")'), r"\1[REDACTED]\2"),
    (re.compile(r"(csrf_token=)[0-9a-fA-F]+"), r"\1[REDACTED]"),
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def redact(text: str) -> str:
    """Redact credential-shaped substrings."""
    for pattern, replacement in REDACTION_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class CredentialRedactionFilter(logging.Filter):
    """Filter that redacts credentials from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install the redaction filter on every root handler.

    Parameters
    ----------
    level : int | str, default=logging.INFO
        Root log level.

    Returns
    -------
    None
        Configures the root logger in place.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
    for handler in root.handlers:
        if not any(isinstance(f, CredentialRedactionFilter) for f in handler.filters):
            handler.addFilter(CredentialRedactionFilter())
