from enum import Enum


class BatchStatus(str, Enum):
    UNKNOWN = "Unknown"
    WAITING = "Waiting"
    UPDATING = "Updating"
    COMPLETED = "Completed"
    FAILED = "Failed"


class ProviderBatchStatus(str, Enum):
    VALIDATING = "validating"
    IN_PROGRESS = "in_progress"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"


TERMINAL_PROVIDER_STATUSES = frozenset(
    {
        ProviderBatchStatus.COMPLETED.value,
        ProviderBatchStatus.FAILED.value,
    }
)


def is_terminal_status(status: str) -> bool:
    """
    Check whether an external batch status will not change any further.

    Parameters
    ----------
    status : str
        Free-form status reported by the provider.

    Returns
    -------
    bool
        ``True`` when the status case-insensitively equals ``completed`` or ``failed``.
    """
    return status.casefold() in TERMINAL_PROVIDER_STATUSES
