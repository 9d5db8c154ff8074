"""
Connection manager: sole owner of the physical printer link.

The dispatcher borrows the link with acquire()/release() and writes through the
returned LinkHandle; it never sees the driver's raw handle. Reconnection policy
(exponential backoff with jitter, health probes, degrade on failure) lives here
so the dispatcher only ever has to react to LinkUnavailable or WriteFailure.

State cycle: Disconnected -> Connecting -> Connected -> Degraded -> Disconnected.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .driver import EscposDriver, PrinterDriver
from .errors import LinkUnavailable, WriteFailure
from .models import LinkState, utc_now

logger = logging.getLogger(__name__)


class LinkHandle:
    """Borrowed access to the link for one job. Becomes stale after release."""

    __slots__ = ("_manager", "generation")

    def __init__(self, manager: "ConnectionManager", generation: int) -> None:
        self._manager = manager
        self.generation = generation

    def write(self, frame: bytes) -> None:
        self._manager._write(self, frame)


class ConnectionManager:
    def __init__(
        self,
        driver: PrinterDriver,
        *,
        backoff_base: float = 0.2,
        backoff_cap: float = 5.0,
        backoff_jitter: float = 0.1,
        health_check_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._driver = driver
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.backoff_jitter = backoff_jitter
        self.health_check_interval = health_check_interval
        self._clock = clock
        self._rng = rng or random.Random()

        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._state = LinkState.DISCONNECTED
        self._handle: Any = None
        self._generation = 0
        self._held: Optional[LinkHandle] = None
        self._open_failures = 0
        self._next_attempt_at = 0.0
        self._last_probe = 0.0

        self.last_health_check_at: Optional[datetime] = None
        self.consecutive_failure_count = 0
        self.last_error: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Any, driver: Optional[PrinterDriver] = None) -> "ConnectionManager":
        return cls(
            driver or EscposDriver(settings),
            backoff_base=settings.backoff_base,
            backoff_cap=settings.backoff_cap,
            backoff_jitter=settings.backoff_jitter,
            health_check_interval=settings.health_check_interval,
        )

    @property
    def state(self) -> LinkState:
        return self._state

    def is_healthy(self) -> bool:
        """Non-blocking probe for status reporting; reads state only."""
        return self._state is LinkState.CONNECTED

    def snapshot(self) -> Dict[str, Any]:
        checked = self.last_health_check_at
        return {
            "state": self._state.value,
            "lastHealthCheckAt": checked.isoformat() if checked else None,
            "consecutiveFailureCount": self.consecutive_failure_count,
            "lastError": self.last_error,
        }

    def backoff_delay(self, attempt: int) -> float:
        """Delay before reconnect attempt number `attempt` (1-based), never above the cap."""
        delay = min(self.backoff_cap, self.backoff_base * (2 ** max(0, attempt - 1)))
        return delay * (1.0 - self.backoff_jitter * self._rng.random())

    def acquire(self, timeout: float) -> LinkHandle:
        """
        Block until the link is Connected and grant it to the caller.

        Reconnects while Disconnected/Degraded, backing off between failed
        opens. Raises LinkUnavailable if no healthy link within `timeout`.
        """
        deadline = self._clock() + timeout
        while True:
            with self._lock:
                if self._closed.is_set():
                    raise LinkUnavailable("connection manager is closed")
                if self._held is not None:
                    raise RuntimeError("printer link is already acquired")

                if self._state is LinkState.CONNECTED and self._health_check_due():
                    self._probe_locked()
                if self._state is LinkState.CONNECTED:
                    self._held = LinkHandle(self, self._generation)
                    return self._held

                wait = self._next_attempt_at - self._clock()
                if wait <= 0:
                    self._reconnect_locked()
                    if self._state is LinkState.CONNECTED:
                        self._held = LinkHandle(self, self._generation)
                        return self._held
                    wait = self._next_attempt_at - self._clock()

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise LinkUnavailable(f"printer not reachable within {timeout:.1f}s ({self.last_error or 'no link'})")
            self._closed.wait(min(wait, remaining))

    def release(self, link: LinkHandle) -> None:
        """Return the link to shared custody. Does not close it."""
        with self._lock:
            if self._held is link:
                self._held = None

    def report_failure(self, link: LinkHandle, error: BaseException) -> None:
        """Mark the link Degraded; the next acquire reconnects before granting."""
        with self._lock:
            self.consecutive_failure_count += 1
            self.last_error = f"{type(error).__name__}: {error}"
            if link.generation == self._generation and self._state is LinkState.CONNECTED:
                self._set_state(LinkState.DEGRADED)
        logger.warning(
            "Printer write failed (consecutive failures=%d): %s",
            self.consecutive_failure_count,
            error,
        )

    def report_success(self, link: LinkHandle) -> None:
        with self._lock:
            if self.consecutive_failure_count:
                logger.info("Printer link recovered after %d failure(s)", self.consecutive_failure_count)
            self.consecutive_failure_count = 0

    def close(self) -> None:
        """Tear the link down; subsequent acquire calls fail immediately."""
        self._closed.set()
        with self._lock:
            self._close_handle_locked()
            self._held = None
            self._set_state(LinkState.DISCONNECTED)

    # Internal helpers; callers hold self._lock unless noted.

    def _set_state(self, state: LinkState) -> None:
        if state is not self._state:
            logger.info("Printer link %s -> %s", self._state.value, state.value)
            self._state = state

    def _health_check_due(self) -> bool:
        return self._clock() - self._last_probe >= self.health_check_interval

    def _probe_locked(self) -> None:
        self._last_probe = self._clock()
        self.last_health_check_at = utc_now()
        try:
            healthy = self._driver.probe(self._handle)
        except Exception as e:
            healthy = False
            self.last_error = f"{type(e).__name__}: {e}"
        if not healthy:
            self.consecutive_failure_count += 1
            logger.warning("Printer health check failed; link degraded")
            self._set_state(LinkState.DEGRADED)

    def _close_handle_locked(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            self._driver.close(handle)
        except Exception as e:
            logger.warning("Ignoring error while closing printer link: %s", e)

    def _reconnect_locked(self) -> None:
        self._close_handle_locked()
        self._set_state(LinkState.CONNECTING)
        try:
            handle = self._driver.open()
        except Exception as e:
            self._open_failures += 1
            self.last_error = f"{type(e).__name__}: {e}"
            delay = self.backoff_delay(self._open_failures)
            self._next_attempt_at = self._clock() + delay
            self._set_state(LinkState.DISCONNECTED)
            logger.warning(
                "Printer connect attempt %d failed: %s; next attempt in %.2fs",
                self._open_failures,
                self.last_error,
                delay,
            )
            return

        self._handle = handle
        self._generation += 1
        self._open_failures = 0
        self._next_attempt_at = 0.0
        self._last_probe = self._clock()
        self.last_health_check_at = utc_now()
        self._set_state(LinkState.CONNECTED)

    def _write(self, link: LinkHandle, frame: bytes) -> None:
        # Called without the lock held; only the current holder may write.
        with self._lock:
            if link is not self._held or link.generation != self._generation or self._state is not LinkState.CONNECTED:
                raise WriteFailure("printer link handle is stale")
            handle = self._handle
        try:
            self._driver.write(handle, frame)
        except Exception as e:
            raise WriteFailure(f"{type(e).__name__}: {e}") from e


__all__ = ["ConnectionManager", "LinkHandle"]
