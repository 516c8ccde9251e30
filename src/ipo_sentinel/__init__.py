"""ipo-sentinel: multi-source IPO data reconciliation and adaptive polling."""

__version__ = "0.1.0"
