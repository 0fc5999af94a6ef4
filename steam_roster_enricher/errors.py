from __future__ import annotations


class EnricherError(Exception):
    """Base class for errors raised by the enricher."""


class ValidationError(EnricherError):
    """A row identifier is blank or malformed; the row is skipped, not reported."""


class ProviderError(EnricherError):
    """
    A provider call failed (transport error, non-2xx status, unexpected payload).

    Row processors turn this into an error marker in the table and keep going.
    """


class SetupError(EnricherError):
    """The batch cannot start: missing table, missing credentials, cancelled column prompt."""


class StateMismatchError(EnricherError):
    """The saved cursor belongs to a different table and the switch was not confirmed."""

    def __init__(self, saved_table: str, active_table: str):
        self.saved_table = saved_table
        self.active_table = active_table
        super().__init__(
            f"Saved progress belongs to '{saved_table}', not the active table '{active_table}'"
        )


class ResumeNotFoundError(EnricherError):
    """No saved cursor exists for the requested batch kind."""
