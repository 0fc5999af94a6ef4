from __future__ import annotations

from dataclasses import dataclass

from ..clients.models import Ban, ReputationProvider, ReputationRecord
from ..config import EnricherConfig
from ..schema import (
    ACTIVE_BAN_COUNT,
    BAN_DETAILS,
    EXPIRED_BAN_COUNT,
    HAS_ACTIVE_BANS,
    NO,
    NOT_FOUND,
    REPUTATION_FIELDS,
    REPUTATION_LINK,
    REPUTATION_POINTS,
    RISK_RATING,
    YES,
    BatchKind,
)
from ..storage.table_store import TableStore
from .columns import ColumnMap
from .common import BaseRowProcessor, Row, check_url_template

_VALUE_FIELDS = (ACTIVE_BAN_COUNT, EXPIRED_BAN_COUNT, REPUTATION_POINTS, RISK_RATING, BAN_DETAILS)


@dataclass(frozen=True)
class ReputationResult:
    has_active_bans: bool
    active_ban_count: int
    expired_ban_count: int
    reputation_points: float
    risk_rating: str


def derive_reputation(record: ReputationRecord) -> ReputationResult:
    return ReputationResult(
        has_active_bans=bool(record.active_bans),
        active_ban_count=len(record.active_bans),
        expired_ban_count=len(record.expired_bans),
        reputation_points=record.reputation_points,
        risk_rating=record.risk_rating,
    )


def format_ban(ban: Ban) -> str:
    source = ban.list_name or "unknown list"
    if ban.organisation:
        source = f"{source} ({ban.organisation})"
    created = ban.created.strftime("%Y-%m-%d") if ban.created else "?"
    expires = ban.expires.strftime("%Y-%m-%d") if ban.expires else "permanent"
    reason = ban.reason or "no reason given"
    return f"{source}: {reason} [{created} -> {expires}]"


def format_ban_details(record: ReputationRecord) -> str:
    parts = [format_ban(b) for b in record.active_bans]
    parts += [f"expired: {format_ban(b)}" for b in record.expired_bans]
    return "; ".join(parts)


class ReputationRowProcessor(BaseRowProcessor):
    kind = BatchKind.REPUTATION
    fields = REPUTATION_FIELDS
    label = "REPUTATION"

    def __init__(self, table: TableStore, provider: ReputationProvider, config: EnricherConfig):
        super().__init__(
            table,
            profile_url_template=config.profile_url_template,
            strict_ids=config.strict_ids,
        )
        self.provider = provider
        self.reputation_url_template = check_url_template(
            config.reputation_url_template, "reputation"
        )

    def write_links(self, row: Row, columns: ColumnMap, steam_id: str) -> None:
        super().write_links(row, columns, steam_id)
        self.write(
            row, columns, REPUTATION_LINK, self.reputation_url_template.format(steam_id=steam_id)
        )

    def _blank_values(self, row: Row, columns: ColumnMap) -> None:
        for f in _VALUE_FIELDS:
            self.write(row, columns, f, "")

    def enrich_row(self, row: Row, columns: ColumnMap, steam_id: str) -> None:
        record = self.provider.get_reputation_record(steam_id)
        if record is None:
            self.write(row, columns, HAS_ACTIVE_BANS, NOT_FOUND)
            self._blank_values(row, columns)
            return
        result = derive_reputation(record)
        self.write(row, columns, HAS_ACTIVE_BANS, YES if result.has_active_bans else NO)
        self.write(row, columns, ACTIVE_BAN_COUNT, result.active_ban_count)
        self.write(row, columns, EXPIRED_BAN_COUNT, result.expired_ban_count)
        self.write(row, columns, REPUTATION_POINTS, result.reputation_points)
        self.write(row, columns, RISK_RATING, result.risk_rating)
        self.write(row, columns, BAN_DETAILS, format_ban_details(record))

    def write_failure(self, row: Row, columns: ColumnMap, reason: str) -> None:
        self.write_error(row, columns, HAS_ACTIVE_BANS, reason)
        self._blank_values(row, columns)
