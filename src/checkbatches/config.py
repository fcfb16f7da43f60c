"""
Runtime settings resolved from environment variables.
"""

from __future__ import annotations

import math
import os
import typing as t
from dataclasses import dataclass

from checkbatches.exceptions import ConfigurationError

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_STATUS_INDEX = "StatusIndex"

StoreBackend = t.Literal["dynamodb", "sql"]
STORE_BACKENDS: tuple[StoreBackend, ...] = ("dynamodb", "sql")


def _require(*, environ: t.Mapping[str, str], name: str) -> str:
    value = environ.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} must be set")
    return value


def _parse_number(
    *,
    environ: t.Mapping[str, str],
    name: str,
    default: float,
    cast: t.Callable[[str], float],
    minimum: float,
    exclusive: bool = False,
) -> t.Any:
    """
    Read an optional numeric setting.

    Parameters
    ----------
    environ : typing.Mapping[str, str]
        Source environment.
    name : str
        Variable name.
    default : float
        Value used when the variable is unset or empty.
    cast : typing.Callable[[str], float]
        Conversion applied to the raw string (``int`` or ``float``).
    minimum : float
        Smallest accepted value.
    exclusive : bool, optional
        If ``True``, ``minimum`` itself is rejected.

    Returns
    -------
    typing.Any
        Parsed value.
    """
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as error:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from error
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be a finite number, got {raw!r}")
    if value < minimum or (exclusive and value == minimum):
        comparison = ">" if exclusive else ">="
        raise ConfigurationError(f"{name} must be {comparison} {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """
    Configuration for one reconciliation run.

    Parameters
    ----------
    openai_api_key : str
        Credential used by the status prober.
    batches_table_name : str
        Record-store table holding batch metadata.
    update_batch_queue_url : str
        Queue receiving one notification per completed batch.
    status_index_name : str
        Secondary index used to select batches by status.
    store_backend : StoreBackend
        Record-store implementation, ``dynamodb`` or ``sql``.
    database_url : str | None
        SQLAlchemy URL for the ``sql`` backend.
    openai_base_url : str
        Base URL of the provider API.
    openai_timeout_seconds : float
        HTTP timeout applied to each probe.
    check_concurrency : int
        Maximum number of probes in flight.
    send_concurrency : int
        Maximum number of queue sends in flight.
    send_try_count : int
        Send attempts per chunk.
    send_retry_delay_seconds : float
        Flat delay before every attempt after the first.
    aws_region : str | None
        Region for boto3 clients, ``None`` to use the boto3 default chain.
    """

    openai_api_key: str
    batches_table_name: str
    update_batch_queue_url: str
    status_index_name: str = DEFAULT_STATUS_INDEX
    store_backend: StoreBackend = "dynamodb"
    database_url: str | None = None
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    openai_timeout_seconds: float = 30.0
    check_concurrency: int = 4
    send_concurrency: int = 4
    send_try_count: int = 3
    send_retry_delay_seconds: float = 0.25
    aws_region: str | None = None

    @classmethod
    def from_env(cls, environ: t.Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Parameters
        ----------
        environ : typing.Mapping[str, str] | None, optional
            Source mapping, defaults to ``os.environ``.

        Returns
        -------
        Settings
            Validated settings.

        Raises
        ------
        ConfigurationError
            If a required variable is missing or an optional one is invalid.
        """
        environ = os.environ if environ is None else environ

        openai_api_key = _require(environ=environ, name="OPENAI_API_KEY")
        batches_table_name = _require(environ=environ, name="BATCHES_TABLE_NAME")
        update_batch_queue_url = _require(environ=environ, name="UPDATE_BATCH_QUEUE_URL")

        store_backend = environ.get("BATCH_STORE_BACKEND", "").strip().lower() or "dynamodb"
        if store_backend not in STORE_BACKENDS:
            raise ConfigurationError(
                f"BATCH_STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, "
                f"got {store_backend!r}"
            )
        database_url = environ.get("BATCHES_DATABASE_URL", "").strip() or None
        if store_backend == "sql" and database_url is None:
            raise ConfigurationError("BATCHES_DATABASE_URL must be set when using the sql backend")

        return cls(
            openai_api_key=openai_api_key,
            batches_table_name=batches_table_name,
            update_batch_queue_url=update_batch_queue_url,
            status_index_name=environ.get("BATCHES_STATUS_INDEX", "").strip()
            or DEFAULT_STATUS_INDEX,
            store_backend=t.cast(StoreBackend, store_backend),
            database_url=database_url,
            openai_base_url=environ.get("OPENAI_BASE_URL", "").strip().rstrip("/")
            or DEFAULT_OPENAI_BASE_URL,
            openai_timeout_seconds=_parse_number(
                environ=environ,
                name="OPENAI_TIMEOUT_SECONDS",
                default=30.0,
                cast=float,
                minimum=0,
                exclusive=True,
            ),
            check_concurrency=_parse_number(
                environ=environ, name="CHECK_CONCURRENCY", default=4, cast=int, minimum=1
            ),
            send_concurrency=_parse_number(
                environ=environ, name="SEND_CONCURRENCY", default=4, cast=int, minimum=1
            ),
            send_try_count=_parse_number(
                environ=environ, name="SEND_TRY_COUNT", default=3, cast=int, minimum=1
            ),
            send_retry_delay_seconds=_parse_number(
                environ=environ,
                name="SEND_RETRY_DELAY_SECONDS",
                default=0.25,
                cast=float,
                minimum=0,
            ),
            aws_region=environ.get("AWS_REGION", "").strip()
            or environ.get("AWS_DEFAULT_REGION", "").strip()
            or None,
        )
