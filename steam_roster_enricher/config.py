from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class RetryConfig:
    retries: int = 3
    base_sleep_s: float = 1.0
    jitter_s: float = 0.3
    http_429_default_retry_after_s: float = 5.0


@dataclass(frozen=True)
class RequestConfig:
    timeout_s: int = 10


@dataclass(frozen=True)
class SteamConfig:
    min_interval_s: float = 0.2


@dataclass(frozen=True)
class ReputationConfig:
    min_interval_s: float = 0.5


@dataclass(frozen=True)
class ThrottleConfig:
    """
    Self-imposed pacing for batch runs.

    `time_budget_s` is a soft ceiling: once exceeded, the driver asks whether to keep going at
    the next checkpoint. Checkpoints happen every `*_check_every_n` rows, per batch kind.
    """

    row_delay_s: float = 0.5
    time_budget_s: float = 270.0
    ownership_check_every_n: int = 20
    reputation_check_every_n: int = 10

    def check_every_n(self, kind: str) -> int:
        if str(kind) == "reputation":
            return int(self.reputation_check_every_n)
        return int(self.ownership_check_every_n)


@dataclass(frozen=True)
class CLIConfig:
    progress_every_n: int = 25
    progress_min_interval_s: float = 30.0


RETRY = RetryConfig()
REQUEST = RequestConfig()
STEAM = SteamConfig()
REPUTATION = ReputationConfig()
THROTTLE = ThrottleConfig()
CLI = CLIConfig()

PROFILE_URL_TEMPLATE = "https://steamcommunity.com/profiles/{steam_id}"
REPUTATION_URL_TEMPLATE = "https://steamhistory.net/id/{steam_id}"


@dataclass(frozen=True)
class EnricherConfig:
    """
    Everything a batch run needs that is not table data: provider credentials, the target app,
    link templates and throttling.
    """

    steam_api_key: str = ""
    target_app_id: int = 0
    reputation_endpoint: str = ""
    reputation_api_key: str = ""
    profile_url_template: str = PROFILE_URL_TEMPLATE
    reputation_url_template: str = REPUTATION_URL_TEMPLATE
    # Only 17-digit identifiers are sent to providers when enabled.
    strict_ids: bool = False
    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)

    @classmethod
    def from_credentials(cls, credentials: dict[str, Any], **overrides: Any) -> EnricherConfig:
        steam = credentials.get("steam", {}) or {}
        rep = credentials.get("reputation", {}) or {}
        raw_app_id = str(steam.get("target_app_id", "") or "").strip()
        cfg = cls(
            steam_api_key=str(steam.get("api_key", "") or "").strip(),
            target_app_id=int(raw_app_id) if raw_app_id.isdigit() else 0,
            reputation_endpoint=str(rep.get("endpoint", "") or "").strip(),
            reputation_api_key=str(rep.get("api_key", "") or "").strip(),
            profile_url_template=str(steam.get("profile_url_template", "") or "")
            or PROFILE_URL_TEMPLATE,
            reputation_url_template=str(rep.get("link_url_template", "") or "")
            or REPUTATION_URL_TEMPLATE,
        )
        updates = {k: v for k, v in overrides.items() if v is not None}
        return replace(cfg, **updates) if updates else cfg

    def with_throttle(self, **overrides: Any) -> EnricherConfig:
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return replace(self, throttle=replace(self.throttle, **updates))
