"""
rental_services.notifier -- Throttled user-facing warnings.

Responsibility:
    Forward warnings about degraded operations (scheduling timeouts,
    persistence failures) to a caller-supplied sink without flooding it.
    A key is forwarded at most once per ``min_interval_seconds``; failure
    reports for a key are only forwarded once they exceed
    ``failure_threshold``.

Architecture position:
    Services -- owns mutable state, so it is always constructed by the
    caller and injected.  There is no module-level instance.

Failure modes:
    - A sink that raises is logged at ERROR and reported as not delivered;
      the warning path never fails the operation that produced it.
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from rental_config.schema import NotificationSettings
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.logging_config import get_logger

logger = get_logger("services.notifier")


@runtime_checkable
class NotificationSink(Protocol):
    """Where user-facing warnings end up (toast, email, chat...)."""

    def notify(self, key: str, message: str) -> None:
        ...


class LoggingSink:
    """Sink that writes warnings to the structured log."""

    def notify(self, key: str, message: str) -> None:
        logger.warning("user_notification", extra={
            "notification_key": key,
            "notification_message": message,
        })


class RateLimitedNotifier:
    """
    Rate-limited warning dispatcher.

    Contract:
        All state (last-sent times, failure counts) belongs to this
        instance.  Methods are safe to call from the scheduling worker
        thread.
    """

    def __init__(
        self,
        sink: NotificationSink | None = None,
        failure_threshold: int = 3,
        min_interval_seconds: float = 30.0,
        clock: Clock | None = None,
    ):
        if failure_threshold < 0:
            raise ValueError("failure_threshold cannot be negative")
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds cannot be negative")
        self._sink = sink or LoggingSink()
        self._failure_threshold = failure_threshold
        self._min_interval = min_interval_seconds
        self._clock = clock or SystemClock()
        self._last_sent: dict[str, float] = {}
        self._failures: dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: NotificationSettings,
        sink: NotificationSink | None = None,
        clock: Clock | None = None,
    ) -> RateLimitedNotifier:
        return cls(
            sink=sink,
            failure_threshold=settings.failure_threshold,
            min_interval_seconds=settings.min_interval_seconds,
            clock=clock,
        )

    def warn(self, key: str, message: str) -> bool:
        """
        Forward ``message`` unless ``key`` was forwarded within the interval.

        Returns:
            True if the sink received the message.
        """
        now = self._clock.now().timestamp()
        with self._lock:
            last = self._last_sent.get(key)
            if last is not None and now - last < self._min_interval:
                logger.debug("notification_suppressed", extra={
                    "notification_key": key,
                    "seconds_since_last": round(now - last, 3),
                })
                return False
            self._last_sent[key] = now

        try:
            self._sink.notify(key, message)
        except Exception:
            logger.error(
                "notification_sink_failed",
                extra={"notification_key": key},
                exc_info=True,
            )
            return False
        return True

    def record_failure(self, key: str, message: str) -> bool:
        """
        Count a failure for ``key``; forward once the count exceeds the
        threshold (still subject to the interval).
        """
        with self._lock:
            count = self._failures.get(key, 0) + 1
            self._failures[key] = count
        if count <= self._failure_threshold:
            logger.debug("failure_recorded", extra={
                "notification_key": key,
                "failure_count": count,
                "failure_threshold": self._failure_threshold,
            })
            return False
        return self.warn(key, message)

    def failure_count(self, key: str) -> int:
        with self._lock:
            return self._failures.get(key, 0)

    def reset(self, key: str | None = None) -> None:
        """Forget state for ``key``, or for every key when omitted."""
        with self._lock:
            if key is None:
                self._failures.clear()
                self._last_sent.clear()
            else:
                self._failures.pop(key, None)
                self._last_sent.pop(key, None)
