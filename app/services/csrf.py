"""One-time anti-forgery tokens bound to a session."""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone

from app.services.security import constant_time_equals, generate_opaque_token, lookup_hash

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 60 * 60


class CSRFTokenState(str, enum.Enum):
    """Lifecycle of a token. ``CONSUMED`` and ``EXPIRED`` are terminal."""

    ISSUED = "issued"
    CONSUMED = "consumed"
    EXPIRED = "expired"


class CSRFFailure(str, enum.Enum):
    """Reason a token failed validation. Logged, never returned to callers."""

    MISSING = "missing"
    UNKNOWN_TOKEN = "unknown_token"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    SESSION_MISMATCH = "session_mismatch"


class CSRFValidationError(Exception):
    """Token validation failed.

    Parameters
    ----------
    reason : CSRFFailure
        Specific failure reason.
    """

    def __init__(self, reason: CSRFFailure) -> None:
        self.reason = reason
        super().__init__(reason.value)


@dataclass(slots=True)
class CSRFTokenRecord:
    """Server-side state of one issued token.

    Attributes
    ----------
    session_id : str
        Session the token is bound to.
    created_at : float
        Issue time in epoch seconds.
    expires_at : float
        Deadline in epoch seconds.
    used : bool
        Whether the token has been consumed.
    """

    session_id: str
    created_at: float
    expires_at: float
    used: bool = False

    def state(self, now: float) -> CSRFTokenState:
        """Return the lifecycle state at ``now``."""
        if self.used:
            return CSRFTokenState.CONSUMED
        if now > self.expires_at:
            return CSRFTokenState.EXPIRED
        return CSRFTokenState.ISSUED


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """Token handed to the caller.

    Attributes
    ----------
    token : str
        Raw token value.
    session_id : str
        Bound session.
    expires_at : datetime
        Deadline in UTC.
    """

    token: str
    session_id: str
    expires_at: datetime


class CSRFTokenStore:
    """In-process token table keyed by the SHA-256 of each token.

    Only :class:`CSRFTokenService` mutates the table; callers that need an
    isolated table (tests, per-app state) create their own instance.
    """

    def __init__(self) -> None:
        self._records: dict[str, CSRFTokenRecord] = {}
        self.lock = threading.Lock()

    def get(self, token_hash: str) -> CSRFTokenRecord | None:
        return self._records.get(token_hash)

    def put(self, token_hash: str, record: CSRFTokenRecord) -> None:
        self._records[token_hash] = record

    def delete(self, token_hash: str) -> None:
        self._records.pop(token_hash, None)

    def items(self) -> Iterator[tuple[str, CSRFTokenRecord]]:
        return iter(list(self._records.items()))

    def __len__(self) -> int:
        return len(self._records)


class CSRFTokenService:
    """Issue and validate one-time tokens.

    Parameters
    ----------
    store : CSRFTokenStore
        Token table owned by this service.
    ttl_seconds : float, default=3600
        Token lifetime.
    clock : Callable[[], float], default=time.time
        Source of epoch seconds.
    """

    def __init__(
        self,
        store: CSRFTokenStore,
        *,
        ttl_seconds: float = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, session_id: str) -> IssuedToken:
        """Create a token bound to ``session_id``.

        Parameters
        ----------
        session_id : str
            Caller session identifier.

        Returns
        -------
        IssuedToken
            Raw token and its deadline.
        """
        if not session_id:
            raise ValueError("session_id is required")
        token = generate_opaque_token()
        now = self._clock()
        record = CSRFTokenRecord(
            session_id=session_id,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        with self._store.lock:
            self._sweep_locked(now)
            self._store.put(lookup_hash(token), record)
        return IssuedToken(
            token=token,
            session_id=session_id,
            expires_at=datetime.fromtimestamp(record.expires_at, tz=timezone.utc),
        )

    def validate(self, token: str | None, session_id: str | None) -> None:
        """Consume ``token`` for ``session_id``.

        Parameters
        ----------
        token : str | None
            Raw token from the request.
        session_id : str | None
            Session identifier from the request.

        Returns
        -------
        None
            The token is now consumed.

        Raises
        ------
        CSRFValidationError
            With the specific reason the token was rejected.
        """
        if not token or not session_id:
            raise CSRFValidationError(CSRFFailure.MISSING)
        token_hash = lookup_hash(token)
        with self._store.lock:
            record = self._store.get(token_hash)
            if record is None:
                raise CSRFValidationError(CSRFFailure.UNKNOWN_TOKEN)
            if record.used:
                raise CSRFValidationError(CSRFFailure.ALREADY_USED)
            if self._clock() > record.expires_at:
                self._store.delete(token_hash)
                raise CSRFValidationError(CSRFFailure.EXPIRED)
            if not constant_time_equals(record.session_id, session_id):
                raise CSRFValidationError(CSRFFailure.SESSION_MISMATCH)
            record.used = True

    def sweep(self) -> int:
        """Remove tokens past their deadline.

        Consumed tokens stay until their deadline so a replay reports
        ``ALREADY_USED`` rather than ``UNKNOWN_TOKEN``.

        Returns
        -------
        int
            Number of records removed.
        """
        with self._store.lock:
            return self._sweep_locked(self._clock())

    def pending_count(self) -> int:
        """Return how many records the table currently holds."""
        return len(self._store)

    def _sweep_locked(self, now: float) -> int:
        removed = 0
        for token_hash, record in self._store.items():
            if now > record.expires_at:
                self._store.delete(token_hash)
                removed += 1
        if removed:
            logger.debug("Swept %d expired CSRF tokens", removed)
        return removed
