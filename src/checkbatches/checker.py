"""
Orchestrates one reconciliation pass over the waiting batches.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from checkbatches.dispatcher import NotificationDispatcher
from checkbatches.models import Batch, UpdateBatchMessage
from checkbatches.records import BatchRecordSource
from checkbatches.reconciler import BatchReconciler

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckReport:
    """
    Counts collected during a run. Informational only.

    Parameters
    ----------
    candidates : int
        Waiting batches returned by the record source.
    eligible : int
        Batches whose provider status is terminal.
    chunks : int
        Chunks handed to the dispatcher.
    delivered : int
        Messages accepted by the queue.
    dropped : int
        Messages dropped after exhausting the try budget.
    serialization_failures : int
        Messages dropped because they could not be serialized.
    """

    candidates: int
    eligible: int
    chunks: int
    delivered: int
    dropped: int
    serialization_failures: int


class BatchChecker:
    """
    Find waiting batches that finished on the provider side and announce them.

    Parameters
    ----------
    records : BatchRecordSource
        Source of waiting batches.
    reconciler : BatchReconciler
        Per-batch status check, bounded by its own limiter.
    dispatcher : NotificationDispatcher
        Queue delivery, bounded by its own limiter.
    """

    def __init__(
        self,
        *,
        records: BatchRecordSource,
        reconciler: BatchReconciler,
        dispatcher: NotificationDispatcher,
    ) -> None:
        if reconciler.limiter is dispatcher.limiter:
            raise ValueError("Probing and dispatch must not share a limiter")
        self._records = records
        self._reconciler = reconciler
        self._dispatcher = dispatcher

    async def _get_available_batches(self) -> list[Batch]:
        log.info(event="Retrieving batches to check")
        batches = await self._records.get_waiting_batches()
        log.info(event="Retrieved waiting batches", batch_count=len(batches))
        return batches

    async def run(self) -> CheckReport:
        """
        Run one pass: select, probe, then announce.

        Returns
        -------
        CheckReport
            Counts for the pass. Skipped batches and dropped messages only
            show up here and in logs.
        """
        batches = await self._get_available_batches()

        log.info(event="Waiting for all checks to complete", batch_count=len(batches))
        results = await asyncio.gather(*(self._reconciler.check_batch(batch) for batch in batches))
        log.info(event="All checks completed")

        messages = [
            UpdateBatchMessage(batch_id=batch.id) for batch in results if batch is not None
        ]
        log.info(event="Retrieved batches to update", batch_count=len(messages))

        log.info(event="Sending messages")
        dispatch_report = await self._dispatcher.dispatch(messages)
        log.info(event="All update messages sent")

        report = CheckReport(
            candidates=len(batches),
            eligible=len(messages),
            chunks=dispatch_report.chunk_count,
            delivered=dispatch_report.delivered,
            dropped=dispatch_report.dropped,
            serialization_failures=dispatch_report.serialization_failures,
        )
        log.info(
            event="Batch check finished",
            candidates=report.candidates,
            eligible=report.eligible,
            chunks=report.chunks,
            delivered=report.delivered,
            dropped=report.dropped,
            serialization_failures=report.serialization_failures,
        )
        return report
