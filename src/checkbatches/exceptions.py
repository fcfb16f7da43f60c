"""
Checkbatches-specific runtime exceptions.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """
    Raised when a required setting is missing or invalid.

    Notes
    -----
    This is the only error that aborts a run. It is raised while the checker
    is being built, before any record, provider or queue I/O happens.
    """


class MessageSerializationError(ValueError):
    """
    Raised when a notification message cannot be turned into a wire body.

    Notes
    -----
    The dispatcher drops the affected message and never retries it.
    """

    def __init__(self, *, batch_id: str, reason: str) -> None:
        super().__init__(f"Cannot serialize message for batch {batch_id!r}: {reason}")
        self.batch_id = batch_id
        self.reason = reason
