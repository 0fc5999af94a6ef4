from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import requests

from ..config import REPUTATION, RETRY
from ..errors import ProviderError
from ..utils.utilities import RateLimiter
from .http_client import ConfiguredHTTPJSONClient, HTTPJSONClient, HTTPRequestDefaults
from .models import Ban, ReputationRecord

_BAN_FIELDS = "created expires reason list { name organisation }"

REPUTATION_QUERY = f"""
query Reputation($steamId: String!) {{
  profile(steamId: $steamId) {{
    reputation {{ points riskRating }}
    activeBans {{ {_BAN_FIELDS} }}
    expiredBans {{ {_BAN_FIELDS} }}
  }}
}}
""".strip()


def parse_timestamp(value: Any) -> datetime | None:
    """Accept epoch seconds (int/str) or ISO-8601 text; return an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    s = str(value).strip()
    if s.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(s), tz=timezone.utc)
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as e:
        raise ProviderError(f"unparseable timestamp {s!r}") from e
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _parse_ban(raw: Any) -> Ban:
    if not isinstance(raw, dict):
        raise ProviderError("ban entry is not an object")
    lst = raw.get("list") or {}
    if not isinstance(lst, dict):
        lst = {}
    return Ban(
        created=parse_timestamp(raw.get("created")),
        expires=parse_timestamp(raw.get("expires")),
        reason=str(raw.get("reason") or "").strip(),
        list_name=str(lst.get("name") or "").strip(),
        organisation=str(lst.get("organisation") or "").strip(),
    )


class ReputationClient:
    """
    Reputation / ban-list lookups over a GraphQL endpoint.

    `get_reputation_record` returns None when the service has no profile for the identifier.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str = "",
        min_interval_s: float = REPUTATION.min_interval_s,
        session: requests.Session | None = None,
    ):
        if not str(endpoint or "").strip():
            raise ValueError("Reputation endpoint is required")
        self.endpoint = str(endpoint).strip()
        self._session = session or requests.Session()
        self.stats: dict[str, int] = {
            "record_fetch": 0,
            "record_not_found": 0,
            "http_graphql": 0,
        }
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if str(api_key or "").strip():
            headers["Authorization"] = f"Bearer {str(api_key).strip()}"
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._http = ConfiguredHTTPJSONClient(
            HTTPJSONClient(self._session, stats=self.stats),
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=RETRY.retries,
                headers=headers,
                counter_key="http_graphql",
                context_prefix="Reputation",
            ),
        )

    def get_reputation_record(self, steam_id: str) -> ReputationRecord | None:
        context = f"profile steamid={steam_id}"
        data = self._http.post_json(
            self.endpoint,
            json_body={"query": REPUTATION_QUERY, "variables": {"steamId": steam_id}},
            context=context,
        )
        if not isinstance(data, dict):
            raise ProviderError(f"Reputation: {context}: unexpected payload")
        errors = data.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else errors
            msg = first.get("message") if isinstance(first, dict) else str(first)
            raise ProviderError(f"Reputation: {context}: {msg}")
        profile = (data.get("data") or {}).get("profile")
        self.stats["record_fetch"] += 1
        if profile is None:
            self.stats["record_not_found"] += 1
            return None
        if not isinstance(profile, dict):
            raise ProviderError(f"Reputation: {context}: profile is not an object")
        return self._parse_profile(profile, context=context)

    @staticmethod
    def _parse_profile(profile: dict[str, Any], *, context: str) -> ReputationRecord:
        rep = profile.get("reputation") or {}
        try:
            points = float(rep.get("points") or 0)
        except (TypeError, ValueError) as e:
            raise ProviderError(f"Reputation: {context}: bad reputation points") from e
        active = profile.get("activeBans") or []
        expired = profile.get("expiredBans") or []
        if not isinstance(active, list) or not isinstance(expired, list):
            raise ProviderError(f"Reputation: {context}: ban lists are not arrays")
        return ReputationRecord(
            reputation_points=int(points) if points.is_integer() else points,
            risk_rating=str(rep.get("riskRating") or "").strip(),
            active_bans=[_parse_ban(b) for b in active],
            expired_bans=[_parse_ban(b) for b in expired],
        )

    def format_stats(self) -> str:
        s = self.stats
        return (
            f"fetch={s['record_fetch']} (not found={s['record_not_found']}), "
            f"{HTTPJSONClient.format_timing(s, key='http_graphql')}"
        )
