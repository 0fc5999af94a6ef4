from __future__ import annotations

import logging
from dataclasses import dataclass

from ..clients.models import OwnedTitles, OwnershipProvider
from ..config import EnricherConfig
from ..errors import SetupError
from ..schema import (
    NO,
    OWNERSHIP_FIELDS,
    OWNS_TARGET,
    PRIVATE,
    RECENT_HOURS,
    TOTAL_HOURS,
    YES,
    BatchKind,
)
from ..storage.table_store import TableStore
from .columns import ColumnMap
from .common import BaseRowProcessor, Row, minutes_to_hours


@dataclass(frozen=True)
class OwnershipResult:
    owns_target: bool
    recent_minutes: int = 0
    total_minutes: int = 0


def derive_ownership(
    owned: OwnedTitles,
    target_app_id: int,
    *,
    recently_played: OwnedTitles | None = None,
) -> OwnershipResult:
    title = owned.find(target_app_id)
    if title is None:
        return OwnershipResult(owns_target=False)
    recent = title.recent_minutes
    if recent is None and recently_played is not None:
        hit = recently_played.find(target_app_id)
        recent = hit.recent_minutes if hit is not None else None
    return OwnershipResult(
        owns_target=True,
        recent_minutes=max(0, int(recent or 0)),
        total_minutes=max(0, int(title.total_minutes)),
    )


class OwnershipRowProcessor(BaseRowProcessor):
    """
    Does the account own the target app, and how much has it been played?

    Only when the target is owned but the owned-games listing has no recent figure, a second
    "recently played" lookup fills it in.
    """

    kind = BatchKind.OWNERSHIP
    fields = OWNERSHIP_FIELDS
    label = "OWNERSHIP"

    def __init__(self, table: TableStore, provider: OwnershipProvider, config: EnricherConfig):
        if not config.target_app_id:
            raise SetupError("target_app_id is required for ownership batches")
        super().__init__(
            table,
            profile_url_template=config.profile_url_template,
            strict_ids=config.strict_ids,
        )
        self.provider = provider
        self.target_app_id = int(config.target_app_id)

    def fetch(self, steam_id: str) -> OwnershipResult | None:
        """None means the game list is private."""
        owned = self.provider.get_owned_titles(steam_id)
        if not owned.visible:
            return None
        title = owned.find(self.target_app_id)
        recently_played = None
        if title is not None and title.recent_minutes is None:
            logging.debug(f"[{self.label}] {steam_id}: no recent figure, asking recently played")
            recently_played = self.provider.get_recently_played(steam_id)
        return derive_ownership(owned, self.target_app_id, recently_played=recently_played)

    def enrich_row(self, row: Row, columns: ColumnMap, steam_id: str) -> None:
        result = self.fetch(steam_id)
        if result is None:
            self.write(row, columns, OWNS_TARGET, PRIVATE)
            self.write(row, columns, RECENT_HOURS, "")
            self.write(row, columns, TOTAL_HOURS, "")
            return
        if not result.owns_target:
            self.write(row, columns, OWNS_TARGET, NO)
            self.write(row, columns, RECENT_HOURS, "")
            self.write(row, columns, TOTAL_HOURS, "")
            return
        self.write(row, columns, OWNS_TARGET, YES)
        self.write(row, columns, RECENT_HOURS, minutes_to_hours(result.recent_minutes))
        self.write(row, columns, TOTAL_HOURS, minutes_to_hours(result.total_minutes))

    def write_failure(self, row: Row, columns: ColumnMap, reason: str) -> None:
        self.write_error(row, columns, OWNS_TARGET, reason)
        self.write(row, columns, RECENT_HOURS, "")
        self.write(row, columns, TOTAL_HOURS, "")
