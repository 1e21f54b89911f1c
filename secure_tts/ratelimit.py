"""Sliding-window rate limiting."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable, Hashable


class SlidingWindowRateLimiter:
    """Admit at most ``max_requests`` per actor within a trailing window.

    Each actor owns an ordered deque of admission timestamps. Timestamps
    older than the window are evicted lazily whenever the actor is checked,
    and an actor with no timestamps left is dropped. Once per window
    ``acquire`` also sweeps actors that were never checked again.
    All window mutation happens under one lock, so concurrent requests for
    the same actor never lose an update.

    Parameters
    ----------
    max_requests : int
        Admissions allowed inside one window.
    window_seconds : float
        Length of the trailing window.
    clock : Callable[[], float], default=time.monotonic
        Source of the current time in seconds.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[Hashable, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def can_admit(self, actor: Hashable) -> bool:
        """Return whether another request from ``actor`` fits the window.

        Parameters
        ----------
        actor : Hashable
            Actor key (session identifier or client address).

        Returns
        -------
        bool
            ``True`` when fewer than ``max_requests`` admissions remain.
        """
        with self._lock:
            return len(self._evict(actor, self._clock())) < self.max_requests

    def record_admission(self, actor: Hashable) -> None:
        """Record one admission for ``actor`` at the current time.

        Parameters
        ----------
        actor : Hashable
            Actor key.

        Returns
        -------
        None
            Appends a timestamp to the actor window.
        """
        with self._lock:
            now = self._clock()
            self._evict(actor, now)
            self._windows.setdefault(actor, deque()).append(now)

    def acquire(self, actor: Hashable) -> bool:
        """Check and record in a single step.

        Parameters
        ----------
        actor : Hashable
            Actor key.

        Returns
        -------
        bool
            ``True`` if the request was admitted and recorded.
        """
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.window_seconds:
                self._sweep_locked(now)
            window = self._evict(actor, now)
            if len(window) >= self.max_requests:
                return False
            self._windows.setdefault(actor, window).append(now)
            return True

    def time_until_reset(self, actor: Hashable) -> int:
        """Return whole seconds until the actor can be admitted again.

        Parameters
        ----------
        actor : Hashable
            Actor key.

        Returns
        -------
        int
            Seconds until the oldest retained timestamp leaves the window,
            or ``0`` when the actor is under capacity.
        """
        with self._lock:
            now = self._clock()
            window = self._evict(actor, now)
            if len(window) < self.max_requests:
                return 0
            remaining = self.window_seconds - (now - window[0])
            return max(0, math.ceil(remaining))

    def remaining(self, actor: Hashable) -> int:
        """Return how many admissions are left in the current window."""
        with self._lock:
            return max(0, self.max_requests - len(self._evict(actor, self._clock())))

    def reset(self, actor: Hashable | None = None) -> None:
        """Forget one actor's window, or every window when ``actor`` is None."""
        with self._lock:
            if actor is None:
                self._windows.clear()
            else:
                self._windows.pop(actor, None)

    def sweep(self) -> int:
        """Drop windows whose timestamps have all expired.

        Returns
        -------
        int
            Number of actor windows removed.
        """
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        self._last_sweep = now
        stale = [actor for actor in list(self._windows) if not self._evict(actor, now)]
        return len(stale)

    def _evict(self, actor: Hashable, now: float) -> deque[float]:
        """Evict timestamps outside the window. Caller holds the lock.

        An actor whose window empties is forgotten, so idle actors do not
        accumulate.
        """
        window = self._windows.get(actor)
        if window is None:
            return deque()
        while window and now - window[0] >= self.window_seconds:
            window.popleft()
        if not window:
            del self._windows[actor]
        return window
