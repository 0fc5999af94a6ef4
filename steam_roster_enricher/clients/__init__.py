"""API clients for the ownership and reputation providers."""

from .models import Ban, OwnedTitle, OwnedTitles, ReputationRecord
from .reputation_client import ReputationClient
from .steam_client import SteamOwnershipClient

__all__ = [
    "Ban",
    "OwnedTitle",
    "OwnedTitles",
    "ReputationClient",
    "ReputationRecord",
    "SteamOwnershipClient",
]
