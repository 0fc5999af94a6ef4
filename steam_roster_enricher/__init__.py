"""Steam Roster Enricher - Resumable batch enrichment of Steam ID tables."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("steam-roster-enricher")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"
