"""
Chunked, retrying delivery of update messages to the queue.

Messages are grouped in chunks of at most ``MAX_BATCH_SIZE`` entries. Chunks are
sent in parallel under the dispatch limiter, while each chunk retries its own
pending entries sequentially:
- every attempt sends only the entries not yet accepted, in one batched call
- a failing call counts as an attempt where nothing was accepted
- entries still pending once the try budget is spent are logged and dropped
"""

from __future__ import annotations

import asyncio
import typing as t
import uuid
from dataclasses import dataclass

import structlog

from checkbatches.exceptions import MessageSerializationError
from checkbatches.limiter import ConcurrencyLimiter
from checkbatches.models import UpdateBatchMessage
from checkbatches.queues import MAX_BATCH_SIZE, QueueTransport, WireEntry
from checkbatches.utils.logging import logging_context

log = structlog.get_logger(__name__)

T = t.TypeVar("T")


@dataclass(frozen=True)
class ChunkResult:
    """
    Outcome of sending one chunk.

    Parameters
    ----------
    chunk_index : int
        Position of the chunk in the dispatch.
    attempted : int
        Entries that were serialized and handed to the transport.
    delivered : int
        Entries the queue accepted.
    dropped : int
        Entries still pending after the last attempt.
    serialization_failures : int
        Messages dropped before sending because they could not be serialized.
    attempts : int
        Number of transport calls made.
    """

    chunk_index: int
    attempted: int
    delivered: int
    dropped: int
    serialization_failures: int
    attempts: int


@dataclass(frozen=True)
class DispatchReport:
    chunks: tuple[ChunkResult, ...] = ()

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    @property
    def delivered(self) -> int:
        return sum(chunk.delivered for chunk in self.chunks)

    @property
    def dropped(self) -> int:
        return sum(chunk.dropped for chunk in self.chunks)

    @property
    def serialization_failures(self) -> int:
        return sum(chunk.serialization_failures for chunk in self.chunks)


def chunked(items: t.Sequence[T], size: int) -> list[list[T]]:
    """
    Split items into ordered chunks of at most ``size`` elements.

    Parameters
    ----------
    items : typing.Sequence[T]
        Items to split.
    size : int
        Maximum chunk length.

    Returns
    -------
    list[list[T]]
        Chunks in input order, all full except possibly the last one.
    """
    if size < 1:
        raise ValueError(f"Chunk size must be >= 1, got {size}")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


class NotificationDispatcher:
    """
    Deliver update messages to the queue with bounded parallelism and retry.

    Parameters
    ----------
    transport : QueueTransport
        Batched-send queue client, shared by all chunks.
    limiter : ConcurrencyLimiter
        Gate bounding the number of chunks being sent at once.
    try_count : int, optional
        Maximum send attempts per chunk.
    retry_delay_seconds : float, optional
        Flat delay before every attempt after the first.
    dry_run : bool, optional
        If ``True``, serialize and chunk messages but never call the transport.
    """

    def __init__(
        self,
        *,
        transport: QueueTransport,
        limiter: ConcurrencyLimiter,
        try_count: int = 3,
        retry_delay_seconds: float = 0.25,
        dry_run: bool = False,
    ) -> None:
        if try_count < 1:
            raise ValueError(f"try_count must be >= 1, got {try_count}")
        self._transport = transport
        self._limiter = limiter
        self._try_count = try_count
        self._retry_delay_seconds = retry_delay_seconds
        self._dry_run = dry_run
        self._sleep: t.Callable[[float], t.Awaitable[None]] = asyncio.sleep

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    async def dispatch(self, messages: t.Sequence[UpdateBatchMessage]) -> DispatchReport:
        """
        Send every message, tolerating partial and total send failures.

        Parameters
        ----------
        messages : typing.Sequence[UpdateBatchMessage]
            Messages to deliver.

        Returns
        -------
        DispatchReport
            Per-chunk outcomes. Failures are reported here and in logs, never raised.
        """
        chunks = chunked(items=messages, size=MAX_BATCH_SIZE)
        if not chunks:
            log.info(event="No messages to send")
            return DispatchReport()

        log.info(
            event="Dispatching messages",
            message_count=len(messages),
            chunk_count=len(chunks),
            dry_run=self._dry_run,
        )
        results = await asyncio.gather(
            *(
                self._send_chunk_limited(chunk=chunk, chunk_index=index)
                for index, chunk in enumerate(chunks)
            )
        )
        report = DispatchReport(chunks=tuple(results))
        log.info(
            event="Dispatch finished",
            chunk_count=report.chunk_count,
            delivered=report.delivered,
            dropped=report.dropped,
            serialization_failures=report.serialization_failures,
        )
        return report

    async def _send_chunk_limited(
        self, *, chunk: list[UpdateBatchMessage], chunk_index: int
    ) -> ChunkResult:
        with logging_context(chunk_index=chunk_index):
            log.debug(event="Waiting to send chunk", message_count=len(chunk))
            async with self._limiter.slot():
                return await self.send_chunk(chunk=chunk, chunk_index=chunk_index)

    def _build_pending(
        self, *, chunk: t.Sequence[UpdateBatchMessage]
    ) -> tuple[dict[str, WireEntry], int]:
        """
        Serialize a chunk into wire entries keyed by fresh tracking ids.

        Parameters
        ----------
        chunk : typing.Sequence[UpdateBatchMessage]
            Messages of a single chunk.

        Returns
        -------
        tuple[dict[str, WireEntry], int]
            Pending entries and the number of messages that failed to serialize.
        """
        pending: dict[str, WireEntry] = {}
        failures = 0
        for message in chunk:
            try:
                body = message.to_wire()
            except MessageSerializationError as error:
                failures += 1
                log.error(
                    event="Failed to serialize message, dropping",
                    batch_id=error.batch_id,
                    error=error.reason,
                )
                continue
            tracking_id = str(object=uuid.uuid4())
            pending[tracking_id] = WireEntry(
                tracking_id=tracking_id,
                body=body,
                batch_id=message.batch_id,
            )
        return pending, failures

    async def send_chunk(
        self, *, chunk: t.Sequence[UpdateBatchMessage], chunk_index: int = 0
    ) -> ChunkResult:
        """
        Send a single chunk, retrying entries the queue did not accept.

        Parameters
        ----------
        chunk : typing.Sequence[UpdateBatchMessage]
            At most ``MAX_BATCH_SIZE`` messages.
        chunk_index : int, optional
            Chunk position, used in logs and in the result.

        Returns
        -------
        ChunkResult
            Outcome of the chunk.
        """
        if len(chunk) > MAX_BATCH_SIZE:
            raise ValueError(
                f"Chunk holds {len(chunk)} messages, maximum is {MAX_BATCH_SIZE}"
            )
        pending, serialization_failures = self._build_pending(chunk=chunk)
        attempted = len(pending)

        if not pending:
            log.warning(event="Chunk has nothing left to send", chunk_index=chunk_index)
            return ChunkResult(
                chunk_index=chunk_index,
                attempted=0,
                delivered=0,
                dropped=0,
                serialization_failures=serialization_failures,
                attempts=0,
            )

        if self._dry_run:
            log.info(
                event="Dry run, not sending chunk",
                chunk_index=chunk_index,
                batch_ids=[entry.batch_id for entry in pending.values()],
            )
            return ChunkResult(
                chunk_index=chunk_index,
                attempted=attempted,
                delivered=0,
                dropped=0,
                serialization_failures=serialization_failures,
                attempts=0,
            )

        attempts = 0
        for attempt in range(1, self._try_count + 1):
            if attempt > 1:
                await self._sleep(self._retry_delay_seconds)
            attempts = attempt
            accepted = await self._attempt_send(
                entries=list(pending.values()),
                chunk_index=chunk_index,
                attempt=attempt,
            )
            for tracking_id in accepted:
                pending.pop(tracking_id, None)
            if not pending:
                log.debug(
                    event="Chunk sent",
                    chunk_index=chunk_index,
                    attempt=attempt,
                    entry_count=attempted,
                )
                break
            log.warning(
                event="Some messages were not accepted",
                chunk_index=chunk_index,
                attempt=attempt,
                try_count=self._try_count,
                pending_count=len(pending),
            )

        if pending:
            log.error(
                event="Failed to send messages after all attempts, dropping",
                chunk_index=chunk_index,
                attempts=attempts,
                dropped_count=len(pending),
                batch_ids=[entry.batch_id for entry in pending.values()],
            )

        return ChunkResult(
            chunk_index=chunk_index,
            attempted=attempted,
            delivered=attempted - len(pending),
            dropped=len(pending),
            serialization_failures=serialization_failures,
            attempts=attempts,
        )

    async def _attempt_send(
        self, *, entries: list[WireEntry], chunk_index: int, attempt: int
    ) -> set[str]:
        try:
            accepted = await self._transport.send_batch(entries)
        except Exception as error:
            log.error(
                event="Send attempt failed",
                chunk_index=chunk_index,
                attempt=attempt,
                entry_count=len(entries),
                error_type=type(error).__name__,
                error=str(object=error),
            )
            return set()
        sent_ids = {entry.tracking_id for entry in entries}
        # ids the transport did not receive in this attempt cannot count as delivered
        return accepted & sent_ids
