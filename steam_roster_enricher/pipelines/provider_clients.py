from __future__ import annotations

from ..clients import ReputationClient, SteamOwnershipClient
from ..config import REPUTATION, STEAM, EnricherConfig
from ..errors import SetupError


def build_ownership_client(config: EnricherConfig) -> SteamOwnershipClient:
    if not config.steam_api_key:
        raise SetupError("Missing steam.api_key in credentials")
    if not config.target_app_id:
        raise SetupError("Missing target app id (steam.target_app_id or --app-id)")
    return SteamOwnershipClient(api_key=config.steam_api_key, min_interval_s=STEAM.min_interval_s)


def build_reputation_client(config: EnricherConfig) -> ReputationClient:
    if not config.reputation_endpoint:
        raise SetupError("Missing reputation.endpoint in credentials")
    return ReputationClient(
        endpoint=config.reputation_endpoint,
        api_key=config.reputation_api_key,
        min_interval_s=REPUTATION.min_interval_s,
    )
