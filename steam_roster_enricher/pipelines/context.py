from __future__ import annotations

from dataclasses import dataclass

from ..clients.models import OwnershipProvider, ReputationProvider
from ..config import EnricherConfig
from ..schema import BatchKind
from ..storage.kv_store import JsonFileStore
from ..storage.table_store import TableStore
from ..utils.utilities import RunPaths
from .common import RowProcessor
from .cursor import ProgressCursor
from .ownership import OwnershipRowProcessor
from .provider_clients import build_ownership_client, build_reputation_client
from .reputation import ReputationRowProcessor


@dataclass(frozen=True)
class PipelineContext:
    run_paths: RunPaths
    config: EnricherConfig

    def cursor(self) -> ProgressCursor:
        return ProgressCursor(JsonFileStore(self.run_paths.progress_path))

    def build_processor(
        self,
        kind: BatchKind,
        table: TableStore,
        *,
        ownership: OwnershipProvider | None = None,
        reputation: ReputationProvider | None = None,
    ) -> RowProcessor:
        if kind == BatchKind.OWNERSHIP:
            provider = ownership or build_ownership_client(self.config)
            return OwnershipRowProcessor(table, provider, self.config)
        return ReputationRowProcessor(
            table, reputation or build_reputation_client(self.config), self.config
        )
