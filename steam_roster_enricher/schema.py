from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BatchKind(str, Enum):
    OWNERSHIP = "ownership"
    REPUTATION = "reputation"

    def __str__(self) -> str:
        return self.value


# -----------------------------------------------------------------------------
# Header matching rules
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchRule:
    """
    Case-insensitive substring test against one header cell.

    Matches when every `all_of` term is present, at least one `any_of` term is present (if any
    are given), and no `none_of` term is present.
    """

    all_of: tuple[str, ...] = ()
    any_of: tuple[str, ...] = ()
    none_of: tuple[str, ...] = ()

    def matches(self, header: str) -> bool:
        h = str(header or "").strip().casefold()
        if not h:
            return False
        if any(t not in h for t in self.all_of):
            return False
        if self.any_of and not any(t in h for t in self.any_of):
            return False
        return not any(t in h for t in self.none_of)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    rules: tuple[MatchRule, ...]
    default_label: str
    # Optional columns are used when present but never appended.
    optional: bool = False
    # Input columns are never appended; the user is asked to pick one instead.
    is_input: bool = False

    def matches(self, header: str) -> bool:
        return any(r.matches(header) for r in self.rules)


# Logical field names
STEAM_ID = "steam_id"
OWNS_TARGET = "owns_target"
RECENT_HOURS = "recent_hours"
TOTAL_HOURS = "total_hours"
PROFILE_LINK = "profile_link"
HAS_ACTIVE_BANS = "has_active_bans"
ACTIVE_BAN_COUNT = "active_ban_count"
EXPIRED_BAN_COUNT = "expired_ban_count"
REPUTATION_POINTS = "reputation_points"
RISK_RATING = "risk_rating"
BAN_DETAILS = "ban_details"
REPUTATION_LINK = "reputation_link"

STEAM_ID_FIELD = FieldSpec(
    STEAM_ID,
    rules=(
        MatchRule(all_of=("steam",), any_of=("id", "64"), none_of=("link", "url")),
        MatchRule(all_of=("steamid",)),
    ),
    default_label="SteamID",
    is_input=True,
)

PROFILE_LINK_FIELD = FieldSpec(
    PROFILE_LINK,
    rules=(MatchRule(all_of=("profile",), any_of=("link", "url")),),
    default_label="Profile Link",
    optional=True,
)

OWNERSHIP_FIELDS: tuple[FieldSpec, ...] = (
    STEAM_ID_FIELD,
    FieldSpec(
        OWNS_TARGET,
        rules=(MatchRule(any_of=("owns", "owned", "ownership"), none_of=("playtime", "hours")),),
        default_label="Owns Game",
    ),
    FieldSpec(
        RECENT_HOURS,
        rules=(MatchRule(all_of=("recent",), none_of=("link",)),),
        default_label="Recent Playtime (hours)",
    ),
    FieldSpec(
        TOTAL_HOURS,
        rules=(
            MatchRule(all_of=("total",), any_of=("playtime", "hours", "time")),
            MatchRule(all_of=("playtime",), none_of=("recent",)),
        ),
        default_label="Total Playtime (hours)",
    ),
    PROFILE_LINK_FIELD,
)

REPUTATION_FIELDS: tuple[FieldSpec, ...] = (
    STEAM_ID_FIELD,
    FieldSpec(
        HAS_ACTIVE_BANS,
        rules=(MatchRule(all_of=("ban",), any_of=("has ", "banned?", "has_")),),
        default_label="Has Active Bans",
    ),
    FieldSpec(
        ACTIVE_BAN_COUNT,
        rules=(MatchRule(all_of=("active", "ban"), none_of=("has ", "has_", "link")),),
        default_label="Active Bans",
    ),
    FieldSpec(
        EXPIRED_BAN_COUNT,
        rules=(MatchRule(all_of=("expired", "ban"), none_of=("link",)),),
        default_label="Expired Bans",
    ),
    FieldSpec(
        REPUTATION_POINTS,
        rules=(MatchRule(all_of=("rep",), any_of=("point", "score"), none_of=("link",)),),
        default_label="Reputation Points",
    ),
    FieldSpec(
        RISK_RATING,
        rules=(MatchRule(all_of=("risk",)),),
        default_label="Risk Rating",
    ),
    FieldSpec(
        BAN_DETAILS,
        rules=(MatchRule(all_of=("ban",), any_of=("detail", "reason")),),
        default_label="Ban Details",
    ),
    PROFILE_LINK_FIELD,
    FieldSpec(
        REPUTATION_LINK,
        rules=(MatchRule(all_of=("link",), any_of=("rep", "ban", "history")),),
        default_label="Reputation Link",
        optional=True,
    ),
)

FIELDS_BY_KIND: dict[BatchKind, tuple[FieldSpec, ...]] = {
    BatchKind.OWNERSHIP: OWNERSHIP_FIELDS,
    BatchKind.REPUTATION: REPUTATION_FIELDS,
}

# Cell markers
YES = "Yes"
NO = "No"
PRIVATE = "Private"
NOT_FOUND = "Not Found"
ERROR_PREFIX = "Error: "
