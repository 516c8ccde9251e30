"""ipo_sentinel.alerts — Alert evaluation and buffering."""

from ipo_sentinel.alerts.buffer import AlertBuffer
from ipo_sentinel.alerts.engine import evaluate_alerts, premium_alert, subscription_alerts

__all__ = ["AlertBuffer", "evaluate_alerts", "premium_alert", "subscription_alerts"]
