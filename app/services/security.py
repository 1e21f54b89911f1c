"""Security helpers."""

import hashlib
import hmac
from secrets import token_hex


def generate_opaque_token(num_bytes: int = 32) -> str:
    """Generate a random hex token.

    Parameters
    ----------
    num_bytes : int, default=32
        Bytes of randomness.

    Returns
    -------
    str
        New opaque token.
    """
    return token_hex(num_bytes)


def generate_session_id() -> str:
    """Generate a session identifier for callers that did not send one.

    Returns
    -------
    str
        New 128-bit hex identifier.
    """
    return token_hex(16)


def lookup_hash(token: str) -> str:
    """Compute a fast, non-secret hash for table lookup.

    Parameters
    ----------
    token : str
        Raw token.

    Returns
    -------
    str
        Hex-encoded SHA-256 digest.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def actor_key(kind: str, identity: str) -> str:
    """Build a rate-limit actor key without keeping the raw identity.

    Parameters
    ----------
    kind : str
        Identity namespace such as ``ip`` or ``session``.
    identity : str
        Raw identity.

    Returns
    -------
    str
        ``kind:sha256(identity)``.
    """
    return f"{kind}:{lookup_hash(identity)}"


def constant_time_equals(left: str, right: str) -> bool:
    """Compare two strings without leaking timing.

    Parameters
    ----------
    left : str
        First value.
    right : str
        Second value.

    Returns
    -------
    bool
        Whether the values match.
    """
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
