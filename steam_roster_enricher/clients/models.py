from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class OwnedTitle:
    app_id: int
    total_minutes: int
    # None when the provider did not report recent activity for this title.
    recent_minutes: int | None = None


@dataclass(frozen=True)
class OwnedTitles:
    titles: list[OwnedTitle] = field(default_factory=list)
    # False when the profile (or its game details) is private.
    visible: bool = True

    def find(self, app_id: int) -> OwnedTitle | None:
        for t in self.titles:
            if int(t.app_id) == int(app_id):
                return t
        return None


@dataclass(frozen=True)
class Ban:
    created: datetime | None
    expires: datetime | None
    reason: str
    list_name: str
    organisation: str


@dataclass(frozen=True)
class ReputationRecord:
    reputation_points: float
    risk_rating: str
    active_bans: list[Ban] = field(default_factory=list)
    expired_bans: list[Ban] = field(default_factory=list)


class OwnershipProvider(Protocol):
    def get_owned_titles(self, steam_id: str) -> OwnedTitles: ...

    def get_recently_played(self, steam_id: str) -> OwnedTitles: ...


class ReputationProvider(Protocol):
    def get_reputation_record(self, steam_id: str) -> ReputationRecord | None: ...
