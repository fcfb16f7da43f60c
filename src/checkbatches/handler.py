"""
Entry point for a single scheduled invocation.
"""

from __future__ import annotations

import asyncio
import logging
import typing as t

import structlog
from botocore.exceptions import NoRegionError
from dotenv import load_dotenv

from checkbatches.checker import BatchChecker, CheckReport
from checkbatches.config import Settings
from checkbatches.dispatcher import NotificationDispatcher
from checkbatches.exceptions import ConfigurationError
from checkbatches.limiter import ConcurrencyLimiter
from checkbatches.prober import OpenAIStatusProber
from checkbatches.queues import SQSQueueTransport
from checkbatches.reconciler import BatchReconciler
from checkbatches.records import BatchRecordSource, DynamoDBBatchSource, SqlBatchSource
from checkbatches.utils.logging import setup_logging

log = structlog.get_logger(__name__)


def build_record_source(settings: Settings) -> BatchRecordSource:
    if settings.store_backend == "dynamodb":
        return DynamoDBBatchSource(
            settings.batches_table_name,
            index_name=settings.status_index_name,
            region_name=settings.aws_region,
        )
    if settings.store_backend == "sql":
        return SqlBatchSource(settings.batches_table_name, database_url=settings.database_url)
    raise ConfigurationError(f"Unsupported batch store backend: {settings.store_backend!r}")


def build_checker(
    settings: Settings,
    *,
    dry_run: bool = False,
    records: BatchRecordSource | None = None,
) -> BatchChecker:
    """
    Wire a checker from settings.

    Parameters
    ----------
    settings : Settings
        Validated settings.
    dry_run : bool, optional
        If ``True``, nothing is sent to the queue.
    records : BatchRecordSource | None, optional
        Record source override, built from settings when omitted.

    Returns
    -------
    BatchChecker
        Ready-to-run checker.
    """
    prober = OpenAIStatusProber(
        settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
    )
    reconciler = BatchReconciler(
        prober=prober,
        limiter=ConcurrencyLimiter(settings.check_concurrency, name="check"),
    )
    try:
        transport = SQSQueueTransport(
            settings.update_batch_queue_url,
            region_name=settings.aws_region,
        )
        if records is None:
            records = build_record_source(settings)
    except NoRegionError as error:
        raise ConfigurationError("AWS_REGION or AWS_DEFAULT_REGION must be set") from error
    dispatcher = NotificationDispatcher(
        transport=transport,
        limiter=ConcurrencyLimiter(settings.send_concurrency, name="send"),
        try_count=settings.send_try_count,
        retry_delay_seconds=settings.send_retry_delay_seconds,
        dry_run=dry_run,
    )
    return BatchChecker(
        records=records,
        reconciler=reconciler,
        dispatcher=dispatcher,
    )


def run_once(*, settings: Settings | None = None, dry_run: bool = False) -> CheckReport:
    settings = Settings.from_env() if settings is None else settings
    checker = build_checker(settings, dry_run=dry_run)
    return asyncio.run(checker.run())


def handler(event: t.Any = None, context: t.Any = None) -> str:
    """
    Run one reconciliation pass.

    Parameters
    ----------
    event : typing.Any, optional
        Trigger payload, ignored.
    context : typing.Any, optional
        Runtime context, ignored.

    Returns
    -------
    str
        ``"ok"`` whenever the pass completes, even if some batches were
        skipped or some messages were dropped.

    Raises
    ------
    ConfigurationError
        If required settings are missing.
    """
    load_dotenv(override=False)
    setup_logging(level=logging.INFO)
    log.info(event="Entering batch check handler")
    run_once()
    log.info(event="Exiting batch check handler")
    return "ok"
