# =============================================================================
# core/capability_cache.py - Memoized server capability check
# =============================================================================

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional


class CapabilityState(Enum):
    """Known availability of a server-side capability"""
    UNKNOWN = "unknown"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class CapabilityCache:
    """
    Process-wide memo of whether a server-side capability exists.

    Concurrent callers share a single in-flight probe; every other caller waits
    for its answer instead of probing again. Answers expire after ttl_seconds.
    """

    def __init__(self, name: str, ttl_seconds: float = 3600,
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CapabilityState.UNKNOWN
        self._expires_at: Optional[float] = None
        self._in_flight: Optional[threading.Event] = None
        self.logger = logging.getLogger(__name__)

    @property
    def state(self) -> CapabilityState:
        with self._lock:
            self._expire_locked()
            return self._state

    def get(self, probe: Callable[[], bool]) -> bool:
        """Return the memoized answer, running probe at most once per expiry"""
        while True:
            with self._lock:
                self._expire_locked()
                if self._state != CapabilityState.UNKNOWN:
                    return self._state == CapabilityState.AVAILABLE

                if self._in_flight is None:
                    event = threading.Event()
                    self._in_flight = event
                    break

                waiting_on = self._in_flight

            waiting_on.wait()

        available = False
        try:
            available = bool(probe())
        except Exception as e:
            self.logger.warning(f"Capability probe for {self.name} failed: {e}")
            available = False
        finally:
            with self._lock:
                if self._in_flight is event:
                    self._set_locked(available)
                    self._in_flight = None
            event.set()

        self.logger.debug(f"Capability {self.name} available: {available}")
        return available

    def set(self, available: bool) -> None:
        """Record an answer learned outside of a probe"""
        with self._lock:
            self._set_locked(available)

    def reset(self) -> None:
        """Forget the memoized answer"""
        with self._lock:
            self._state = CapabilityState.UNKNOWN
            self._expires_at = None
            self._in_flight = None

    def _set_locked(self, available: bool) -> None:
        self._state = CapabilityState.AVAILABLE if available else CapabilityState.UNAVAILABLE
        self._expires_at = self._clock() + self.ttl_seconds

    def _expire_locked(self) -> None:
        if self._expires_at is not None and self._clock() >= self._expires_at:
            self._state = CapabilityState.UNKNOWN
            self._expires_at = None
