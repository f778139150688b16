"""
Repository-layer exceptions for daily metrics persistence.
"""

from __future__ import annotations

from datetime import date


class MetricsPersistenceError(Exception):
    """
    Raised when reading or writing one daily metrics row fails.

    ``retryable`` marks transient failures (lost connections, timeouts) that
    may succeed when attempted again.
    """

    def __init__(
        self,
        message: str,
        *,
        day: date | None = None,
        country_id: str | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.day = day
        self.country_id = country_id
        self.retryable = retryable

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "day": self.day.isoformat() if self.day else None,
            "country_id": self.country_id,
            "retryable": self.retryable,
        }
