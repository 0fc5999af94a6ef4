from __future__ import annotations

import logging
from typing import Any

import requests

from ..config import RETRY, STEAM
from ..errors import ProviderError
from ..utils.utilities import RateLimiter
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .models import OwnedTitle, OwnedTitles

STEAM_API_URL = "https://api.steampowered.com"
OWNED_GAMES_URL = f"{STEAM_API_URL}/IPlayerService/GetOwnedGames/v1/"
RECENTLY_PLAYED_URL = f"{STEAM_API_URL}/IPlayerService/GetRecentlyPlayedGames/v1/"
SUPPORTED_API_LIST_URL = f"{STEAM_API_URL}/ISteamWebAPIUtil/GetSupportedAPIList/v1/"

_KEY_REJECTED = object()


def _as_minutes(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return None


class SteamOwnershipClient:
    """
    Ownership lookups against the Steam Web API (IPlayerService).

    Playtimes are reported in minutes. `playtime_2weeks` is omitted by Steam when the player
    has no recent activity for a title, so `recent_minutes` is None in that case.
    """

    def __init__(
        self,
        api_key: str,
        min_interval_s: float = STEAM.min_interval_s,
        session: requests.Session | None = None,
    ):
        if not str(api_key or "").strip():
            raise ValueError("Steam Web API key is required")
        self.api_key = str(api_key).strip()
        self._session = session or requests.Session()
        self.stats: dict[str, int] = {
            "owned_fetch": 0,
            "owned_private": 0,
            "recent_fetch": 0,
            # HTTP request counters (attempts, including retries).
            "http_owned": 0,
            "http_recent": 0,
        }
        base_http = HTTPJSONClient(self._session, stats=self.stats)
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._http = ConfiguredHTTPJSONClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=RETRY.retries,
                counter_key="http_owned",
                context_prefix="Steam",
            ),
        )

    def _params(self, steam_id: str, **extra: Any) -> dict[str, Any]:
        return {"key": self.api_key, "steamid": steam_id, "format": "json", **extra}

    @staticmethod
    def _parse_games(data: Any, *, context: str) -> OwnedTitles:
        if not isinstance(data, dict) or not isinstance(data.get("response"), dict):
            raise ProviderError(f"{context}: unexpected payload")
        resp = data["response"]
        games = resp.get("games")
        if games is None:
            # Private profiles answer with an empty response object.
            return OwnedTitles(titles=[], visible=bool(resp.get("game_count") == 0))
        if not isinstance(games, list):
            raise ProviderError(f"{context}: 'games' is not a list")
        titles: list[OwnedTitle] = []
        for g in games:
            if not isinstance(g, dict) or g.get("appid") is None:
                continue
            try:
                appid = int(g["appid"])
            except (TypeError, ValueError):
                continue
            titles.append(
                OwnedTitle(
                    app_id=appid,
                    total_minutes=_as_minutes(g.get("playtime_forever")) or 0,
                    recent_minutes=_as_minutes(g.get("playtime_2weeks")),
                )
            )
        return OwnedTitles(titles=titles, visible=True)

    def get_owned_titles(self, steam_id: str) -> OwnedTitles:
        context = f"GetOwnedGames steamid={steam_id}"
        data = self._http.get_json(
            OWNED_GAMES_URL,
            params=self._params(
                steam_id, include_played_free_games=1, include_free_sub=1, skip_unvetted_apps=0
            ),
            context=context,
        )
        out = self._parse_games(data, context=context)
        self.stats["owned_fetch"] += 1
        if not out.visible:
            self.stats["owned_private"] += 1
            logging.debug(f"[STEAM] Game list not visible for {steam_id}")
        return out

    def get_recently_played(self, steam_id: str) -> OwnedTitles:
        context = f"GetRecentlyPlayedGames steamid={steam_id}"
        data = self._http.get_json(
            RECENTLY_PLAYED_URL,
            params=self._params(steam_id, count=0),
            counter_key="http_recent",
            context=context,
        )
        self.stats["recent_fetch"] += 1
        if isinstance(data, dict) and data.get("response") == {}:
            # No recent activity at all (or private): nothing to report.
            return OwnedTitles(titles=[], visible=True)
        return self._parse_games(data, context=context)

    def validate_api_key(self) -> bool:
        """Return False when Steam rejects the key (401/403); raise ProviderError otherwise."""
        data = self._http.get_json(
            SUPPORTED_API_LIST_URL,
            params={"key": self.api_key},
            status_handlers={401: _KEY_REJECTED, 403: _KEY_REJECTED},
            counter_key="http_key_check",
            context="GetSupportedAPIList",
        )
        return data is not _KEY_REJECTED

    def format_stats(self) -> str:
        s = self.stats
        return (
            f"owned fetch={s['owned_fetch']} (private={s['owned_private']}) "
            f"recent fetch={s['recent_fetch']}, "
            f"{HTTPJSONClient.format_timing(s, key='http_owned')}, "
            f"{HTTPJSONClient.format_timing(s, key='http_recent')}"
        )
