"""Integration test fixtures: real SQLite and ASGI stack, canned sources."""

from __future__ import annotations

from pathlib import Path

import pytest

from ipo_sentinel.core.config import QuotaConfig, SentinelConfig, StorageConfig
from ipo_sentinel.core.models import OperationKind, Tier

SUBS = OperationKind.SUBSCRIPTIONS
PREMIUMS = OperationKind.PREMIUMS


@pytest.fixture
def api_config(tmp_path: Path) -> SentinelConfig:
    return SentinelConfig(
        storage=StorageConfig(sqlite_path=str(tmp_path / "integration.db")),
        quota=QuotaConfig(keys={"pro-key": Tier.PRO, "ent-key": Tier.ENTERPRISE}),
    )


@pytest.fixture
def canned_adapters(fake_adapter, make_raw):
    """Four sources: two report ACME subscriptions, two report its GMP."""
    return {
        "nse": fake_adapter(
            "nse",
            {
                SUBS: [make_raw("nse", SUBS, "Acme Ltd", total=25.0, qib=40.0)],
                OperationKind.LISTINGS: [make_raw("nse", OperationKind.LISTINGS, "Acme Ltd", lot_size=148)],
            },
        ),
        "chittorgarh": fake_adapter(
            "chittorgarh",
            {
                SUBS: [make_raw("chittorgarh", SUBS, "ACME Limited", total=24.0)],
                PREMIUMS: [make_raw("chittorgarh", PREMIUMS, "Acme Ltd", premium=40.0)],
            },
        ),
        "investorgain": fake_adapter(
            "investorgain",
            {PREMIUMS: [make_raw("investorgain", PREMIUMS, "Acme Ltd", premium=48.0)]},
        ),
        "groww": fake_adapter("groww", fail="HTTP 503"),
    }
