"""
Queue transports accepting batched sends with per-entry outcomes.
"""

from __future__ import annotations

import asyncio
import typing as t
from dataclasses import dataclass

import boto3
import structlog

log = structlog.get_logger(__name__)

MAX_BATCH_SIZE = 10


@dataclass(frozen=True)
class WireEntry:
    """
    A serialized message paired with the id used to track its delivery.

    Parameters
    ----------
    tracking_id : str
        Per-entry correlation id, unique within a chunk.
    body : str
        Serialized message body.
    batch_id : str
        Source batch id, kept for logging only.
    """

    tracking_id: str
    body: str
    batch_id: str


class QueueTransport(t.Protocol):
    """Send up to ``MAX_BATCH_SIZE`` entries and report which were accepted."""

    async def send_batch(self, entries: t.Sequence[WireEntry]) -> set[str]: ...


class SQSQueueTransport:
    """
    Queue transport backed by ``SendMessageBatch`` on an SQS queue.

    Parameters
    ----------
    queue_url : str
        Destination queue URL.
    region_name : str | None, optional
        AWS region, ``None`` for the boto3 default.
    client : typing.Any, optional
        Pre-built ``boto3`` SQS client, mostly for tests.
    """

    def __init__(
        self,
        queue_url: str,
        *,
        region_name: str | None = None,
        client: t.Any = None,
    ) -> None:
        self._queue_url = queue_url
        if client is None:
            client = boto3.client("sqs", region_name=region_name)
        self._client = client

    @property
    def queue_url(self) -> str:
        return self._queue_url

    def _send(self, entries: t.Sequence[WireEntry]) -> set[str]:
        response = self._client.send_message_batch(
            QueueUrl=self._queue_url,
            Entries=[{"Id": entry.tracking_id, "MessageBody": entry.body} for entry in entries],
        )
        failed = response.get("Failed", [])
        for failure in failed:
            log.debug(
                event="Queue rejected entry",
                tracking_id=failure.get("Id"),
                code=failure.get("Code"),
                sender_fault=failure.get("SenderFault"),
                reason=failure.get("Message"),
            )
        return {item["Id"] for item in response.get("Successful", [])}

    async def send_batch(self, entries: t.Sequence[WireEntry]) -> set[str]:
        """
        Send entries in a single ``SendMessageBatch`` call.

        Parameters
        ----------
        entries : typing.Sequence[WireEntry]
            Entries to send.

        Returns
        -------
        set[str]
            Tracking ids the queue accepted. Entries reported as failed or
            missing from the response are not included.

        Raises
        ------
        ValueError
            If more than ``MAX_BATCH_SIZE`` entries are given.
        botocore.exceptions.ClientError
            If the whole call is rejected.
        """
        if not entries:
            return set()
        if len(entries) > MAX_BATCH_SIZE:
            raise ValueError(
                f"Cannot send {len(entries)} entries in one batch, maximum is {MAX_BATCH_SIZE}"
            )
        return await asyncio.to_thread(self._send, entries)
