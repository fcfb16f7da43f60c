"""
End-to-end tests for a reconciliation pass with in-memory collaborators.
"""

import json

import httpx
import pytest

from checkbatches.checker import BatchChecker
from checkbatches.dispatcher import NotificationDispatcher
from checkbatches.limiter import ConcurrencyLimiter
from checkbatches.models import Batch
from checkbatches.reconciler import BatchReconciler
from tests.mocks.fakes import FakeQueueTransport, FakeStatusProber, InMemoryBatchSource


async def _noop_sleep(delay: float) -> None:
    return None


def _make_checker(
    *,
    batches: list[Batch],
    prober: FakeStatusProber,
    transport: FakeQueueTransport,
) -> BatchChecker:
    dispatcher = NotificationDispatcher(
        transport=transport,
        limiter=ConcurrencyLimiter(4, name="send"),
        try_count=3,
        retry_delay_seconds=0.25,
    )
    dispatcher._sleep = _noop_sleep
    return BatchChecker(
        records=InMemoryBatchSource(batches),
        reconciler=BatchReconciler(prober=prober, limiter=ConcurrencyLimiter(4, name="check")),
        dispatcher=dispatcher,
    )


def _sent_batch_ids(transport: FakeQueueTransport) -> list[str]:
    return sorted(json.loads(entry.body)["batchId"] for entry in transport.delivered)


@pytest.mark.asyncio
async def test_only_terminal_batches_with_reference_are_announced():
    batches = [
        Batch(id="X", openai_batch_id="r1", status="Waiting"),
        Batch(id="Y", openai_batch_id="r2", status="Waiting"),
        Batch(id="Z", openai_batch_id=None, status="Waiting"),
    ]
    prober = FakeStatusProber(statuses={"r1": "completed", "r2": "pending"})
    transport = FakeQueueTransport()

    report = await _make_checker(batches=batches, prober=prober, transport=transport).run()

    assert _sent_batch_ids(transport) == ["X"]
    assert sorted(prober.calls) == ["r1", "r2"]
    assert report.candidates == 3
    assert report.eligible == 1
    assert report.chunks == 1
    assert report.delivered == 1


@pytest.mark.asyncio
async def test_twenty_five_eligible_batches_are_sent_in_three_chunks():
    batches = [Batch(id=f"b{i}", openai_batch_id=f"r{i}", status="Waiting") for i in range(25)]
    prober = FakeStatusProber(statuses={f"r{i}": "failed" for i in range(25)}, delay=0.005)
    transport = FakeQueueTransport(delay=0.005)

    report = await _make_checker(batches=batches, prober=prober, transport=transport).run()

    assert sorted(len(call) for call in transport.calls) == [5, 10, 10]
    assert report.chunks == 3
    assert report.delivered == 25
    assert _sent_batch_ids(transport) == sorted(f"b{i}" for i in range(25))
    assert prober.peak <= 4
    assert transport.peak <= 4


@pytest.mark.asyncio
async def test_each_eligible_batch_produces_exactly_one_message():
    batches = [
        Batch(id="done", openai_batch_id="r-done", status="Waiting"),
        Batch(id="failed", openai_batch_id="r-failed", status="Waiting"),
        Batch(id="unknown", openai_batch_id="r-unknown", status="Waiting"),
        Batch(id="flaky", openai_batch_id="r-flaky", status="Waiting"),
        Batch(id="running", openai_batch_id="r-running", status="Waiting"),
    ]
    prober = FakeStatusProber(
        statuses={
            "r-done": "Completed",
            "r-failed": "FAILED",
            "r-unknown": None,
            "r-flaky": httpx.ReadTimeout("timed out"),
            "r-running": "finalizing",
        }
    )
    transport = FakeQueueTransport()

    report = await _make_checker(batches=batches, prober=prober, transport=transport).run()

    assert _sent_batch_ids(transport) == ["done", "failed"]
    assert report.eligible == 2


@pytest.mark.asyncio
async def test_run_completes_when_queue_rejects_everything():
    batches = [Batch(id=f"b{i}", openai_batch_id=f"r{i}", status="Waiting") for i in range(12)]
    prober = FakeStatusProber(statuses={f"r{i}": "completed" for i in range(12)})
    transport = FakeQueueTransport(outcomes=[0] * 6)

    report = await _make_checker(batches=batches, prober=prober, transport=transport).run()

    assert len(transport.calls) == 6
    assert report.delivered == 0
    assert report.dropped == 12


@pytest.mark.asyncio
async def test_run_without_candidates_sends_nothing():
    prober = FakeStatusProber(statuses={})
    transport = FakeQueueTransport()

    report = await _make_checker(batches=[], prober=prober, transport=transport).run()

    assert transport.calls == []
    assert report.candidates == 0
    assert report.chunks == 0


@pytest.mark.asyncio
async def test_record_source_failure_propagates():
    class BrokenSource:
        async def get_waiting_batches(self):
            raise RuntimeError("table unavailable")

    limiter = ConcurrencyLimiter(4)
    checker = BatchChecker(
        records=BrokenSource(),
        reconciler=BatchReconciler(prober=FakeStatusProber(statuses={}), limiter=limiter),
        dispatcher=NotificationDispatcher(
            transport=FakeQueueTransport(), limiter=ConcurrencyLimiter(4)
        ),
    )

    with pytest.raises(RuntimeError, match="table unavailable"):
        await checker.run()


def test_checker_refuses_shared_limiter():
    limiter = ConcurrencyLimiter(4)

    with pytest.raises(ValueError):
        BatchChecker(
            records=InMemoryBatchSource([]),
            reconciler=BatchReconciler(prober=FakeStatusProber(statuses={}), limiter=limiter),
            dispatcher=NotificationDispatcher(transport=FakeQueueTransport(), limiter=limiter),
        )
