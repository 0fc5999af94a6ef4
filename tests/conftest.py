from __future__ import annotations

import pytest
from fakes import TARGET_APP

from steam_roster_enricher.config import EnricherConfig, ThrottleConfig


@pytest.fixture
def config() -> EnricherConfig:
    return EnricherConfig(
        steam_api_key="KEY",
        target_app_id=TARGET_APP,
        reputation_endpoint="https://rep.example/graphql",
        throttle=ThrottleConfig(row_delay_s=0.0, time_budget_s=0.0),
    )


@pytest.fixture
def no_sleep(monkeypatch) -> list[float]:
    sleeps: list[float] = []
    monkeypatch.setattr("time.sleep", lambda s: sleeps.append(float(s)))
    return sleeps
