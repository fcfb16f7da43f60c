import pytest

from checkbatches.queues import MAX_BATCH_SIZE, SQSQueueTransport, WireEntry
from tests.mocks.fakes import FakeSQSClient

QUEUE_URL = "https://sqs.eu-west-2.amazonaws.com/123/update-batch"


def _entries(count: int) -> list[WireEntry]:
    return [
        WireEntry(tracking_id=f"t{i}", body=f'{{"batchId":"b{i}"}}', batch_id=f"b{i}")
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_send_batch_returns_successful_ids():
    client = FakeSQSClient()
    transport = SQSQueueTransport(QUEUE_URL, client=client)

    accepted = await transport.send_batch(_entries(3))

    assert accepted == {"t0", "t1", "t2"}
    assert client.calls == [
        {
            "QueueUrl": QUEUE_URL,
            "Entries": [
                {"Id": "t0", "MessageBody": '{"batchId":"b0"}'},
                {"Id": "t1", "MessageBody": '{"batchId":"b1"}'},
                {"Id": "t2", "MessageBody": '{"batchId":"b2"}'},
            ],
        }
    ]


@pytest.mark.asyncio
async def test_failed_entries_are_not_reported_as_accepted():
    client = FakeSQSClient(reject={'{"batchId":"b1"}'})
    transport = SQSQueueTransport(QUEUE_URL, client=client)

    accepted = await transport.send_batch(_entries(3))

    assert accepted == {"t0", "t2"}


@pytest.mark.asyncio
async def test_empty_send_skips_the_queue():
    client = FakeSQSClient()
    transport = SQSQueueTransport(QUEUE_URL, client=client)

    assert await transport.send_batch([]) == set()
    assert client.calls == []


@pytest.mark.asyncio
async def test_oversized_batch_is_rejected():
    client = FakeSQSClient()
    transport = SQSQueueTransport(QUEUE_URL, client=client)

    with pytest.raises(ValueError):
        await transport.send_batch(_entries(MAX_BATCH_SIZE + 1))
    assert client.calls == []


@pytest.mark.asyncio
async def test_client_errors_propagate():
    class ExplodingClient:
        def send_message_batch(self, **kwargs):
            raise ConnectionError("network down")

    transport = SQSQueueTransport(QUEUE_URL, client=ExplodingClient())

    with pytest.raises(ConnectionError):
        await transport.send_batch(_entries(1))
