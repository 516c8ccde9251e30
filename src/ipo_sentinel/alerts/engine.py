"""Stateless alert evaluation over current and previous reconciled values."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from ipo_sentinel.core.config import AlertsConfig
from ipo_sentinel.core.models import (
    AlertEvent,
    AlertType,
    PremiumQuote,
    Severity,
    SubscriptionLevel,
)


def _fmt(value: float) -> str:
    return f"{value:g}"


def subscription_alerts(
    level: SubscriptionLevel,
    config: AlertsConfig,
    now: datetime,
) -> list[AlertEvent]:
    """Threshold alert (at most one) followed by an optional momentum alert."""
    if level.total is None:
        return []

    alerts: list[AlertEvent] = []
    breakdown = {"total": level.total, "qib": level.qib, "nii": level.nii, "retail": level.retail}

    if level.total >= config.critical_total:
        alerts.append(
            AlertEvent(
                type=AlertType.THRESHOLD,
                severity=Severity.CRITICAL,
                key=level.key,
                company_name=level.company_name,
                message=f"EXTREME DEMAND: {level.company_name} subscription at {_fmt(level.total)}x",
                payload=breakdown,
                created_at=now,
            )
        )
    elif level.total >= config.warning_total:
        alerts.append(
            AlertEvent(
                type=AlertType.THRESHOLD,
                severity=Severity.WARNING,
                key=level.key,
                company_name=level.company_name,
                message=f"HIGH DEMAND: {level.company_name} subscription at {_fmt(level.total)}x",
                payload=breakdown,
                created_at=now,
            )
        )

    delta = level.delta
    if delta is not None and delta >= config.momentum_delta:
        alerts.append(
            AlertEvent(
                type=AlertType.MOMENTUM,
                severity=Severity.WARNING,
                key=level.key,
                company_name=level.company_name,
                message=f"MOMENTUM: {level.company_name} subscription jumped +{_fmt(delta)}x",
                payload={"previous": level.previous_total, "current": level.total, "delta": delta},
                created_at=now,
            )
        )
    return alerts


def premium_alert(
    quote: PremiumQuote,
    previous: float | None,
    config: AlertsConfig,
    now: datetime,
) -> AlertEvent | None:
    """Spike/drop alert when the premium moved by at least the configured percent.

    No alert without a previous value, when the previous value is zero,
    or when the premium is unchanged.
    """
    if previous is None or previous == 0 or quote.premium == previous:
        return None

    change = quote.premium - previous
    change_percent = change / abs(previous) * 100
    if abs(change_percent) < config.premium_change_percent:
        return None

    rose = change > 0
    sign = "+" if rose else ""
    return AlertEvent(
        type=AlertType.PREMIUM_SPIKE if rose else AlertType.PREMIUM_DROP,
        severity=Severity.INFO if rose else Severity.WARNING,
        key=quote.key,
        company_name=quote.company_name,
        message=(
            f"GMP {'SPIKE' if rose else 'DROP'}: {quote.company_name} GMP changed "
            f"{sign}{_fmt(change)} ({change_percent:.1f}%)"
        ),
        payload={
            "previous": previous,
            "current": quote.premium,
            "change": change,
            "change_percent": round(change_percent, 2),
        },
        created_at=now,
    )


def evaluate_alerts(
    subscriptions: Sequence[SubscriptionLevel],
    premiums: Sequence[PremiumQuote],
    previous_premiums: Mapping[str, float],
    config: AlertsConfig | None = None,
    now: datetime | None = None,
) -> list[AlertEvent]:
    """All alerts for one poll: subscription alerts in input order, then premium alerts."""
    config = config or AlertsConfig()
    now = now or datetime.now(UTC)

    alerts: list[AlertEvent] = []
    for level in subscriptions:
        alerts.extend(subscription_alerts(level, config, now))
    for quote in premiums:
        alert = premium_alert(quote, previous_premiums.get(quote.key), config, now)
        if alert is not None:
            alerts.append(alert)
    return alerts
