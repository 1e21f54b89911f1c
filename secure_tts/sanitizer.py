"""Input sanitization and credential format checks."""

from __future__ import annotations

import re
import unicodedata
from typing import Any

from secure_tts.types import CredentialCheck

MAX_TEXT_LENGTH = 5000

CREDENTIAL_PREFIX = "AIza"
CREDENTIAL_MIN_LENGTH = 35
CREDENTIAL_MAX_LENGTH = 45

_SCRIPT_BLOCK = re.compile(r"<\s*script\b[^>]*>.*?<\s*/\s*script\s*>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^<>]*>")
_DANGLING_TAG = re.compile(r"<\s*/?\s*(?:script|[A-Za-z!][^<>]*$)", re.IGNORECASE)
_SCRIPT_PROTOCOL = re.compile(r"(?:java|vb)script\s*:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(
    r"\bon[a-z]+\s*=\s*(?:\"[^\"]*\"|'[^']*')", re.IGNORECASE
)
_CONTROL = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_CREDENTIAL_CHARSET = re.compile(r"[A-Za-z0-9_-]+")


def sanitize_text(raw: Any, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Strip markup and control characters from free text.

    Parameters
    ----------
    raw : Any
        Untrusted input. Non-string values yield an empty string.
    max_length : int, default=5000
        Maximum number of characters kept.

    Returns
    -------
    str
        Cleaned text. Applying this function twice gives the same result.
    """
    if not isinstance(raw, str):
        return ""

    text = raw
    # Removing one construct can expose another, e.g. "<scr<script>ipt>".
    while True:
        cleaned = _strip_once(text)
        if cleaned == text:
            break
        text = cleaned

    text = text[:max_length].strip()
    # Truncation and trimming can expose a new leading/trailing fragment.
    while True:
        cleaned = _strip_once(text)[:max_length].strip()
        if cleaned == text:
            return text
        text = cleaned


def _strip_once(text: str) -> str:
    """Apply one pass of every removal rule.

    Parameters
    ----------
    text : str
        Input text.

    Returns
    -------
    str
        Text after a single pass.
    """
    text = _SCRIPT_BLOCK.sub("", text)
    text = _TAG.sub("", text)
    text = _DANGLING_TAG.sub("", text)
    text = _SCRIPT_PROTOCOL.sub("", text)
    text = _EVENT_HANDLER.sub("", text)
    text = _CONTROL.sub("", text)
    # Drop format characters such as bidi overrides and zero-width spaces.
    return "".join(ch for ch in text if unicodedata.category(ch) != "Cf")


def validate_credential_format(raw: Any) -> CredentialCheck:
    """Check that a value looks like a provider API key.

    Parameters
    ----------
    raw : Any
        Candidate credential.

    Returns
    -------
    CredentialCheck
        ``valid`` plus a user-facing reason when the check fails.
    """
    if not isinstance(raw, str) or not raw:
        return CredentialCheck(valid=False, error="API key is missing or not a string")
    if not raw.startswith(CREDENTIAL_PREFIX):
        return CredentialCheck(
            valid=False,
            error=f"API key must start with '{CREDENTIAL_PREFIX}'",
        )
    if not CREDENTIAL_MIN_LENGTH <= len(raw) <= CREDENTIAL_MAX_LENGTH:
        return CredentialCheck(
            valid=False,
            error=(
                f"API key length must be between {CREDENTIAL_MIN_LENGTH} "
                f"and {CREDENTIAL_MAX_LENGTH} characters"
            ),
        )
    if not _CREDENTIAL_CHARSET.fullmatch(raw):
        return CredentialCheck(
            valid=False,
            error="API key may only contain letters, digits, '_' and '-'",
        )
    return CredentialCheck(valid=True)
