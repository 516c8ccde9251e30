"""Bounded in-memory alert ring buffer."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from ipo_sentinel.core.models import AlertEvent


class AlertBuffer:
    """Keeps the newest ``cap`` alerts; the oldest is evicted on overflow."""

    def __init__(self, cap: int = 50) -> None:
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self._alerts: deque[AlertEvent] = deque(maxlen=cap)

    @property
    def cap(self) -> int:
        return self._alerts.maxlen or 0

    def append(self, alert: AlertEvent) -> None:
        self._alerts.append(alert)

    def extend(self, alerts: Iterable[AlertEvent]) -> None:
        self._alerts.extend(alerts)

    def recent(self, limit: int = 20) -> list[AlertEvent]:
        """Newest ``limit`` alerts, oldest first."""
        if limit <= 0:
            return []
        return list(self._alerts)[-limit:]

    def clear(self) -> None:
        self._alerts.clear()

    def __len__(self) -> int:
        return len(self._alerts)

    def __iter__(self) -> Iterator[AlertEvent]:
        return iter(list(self._alerts))
