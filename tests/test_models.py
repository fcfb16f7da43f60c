from decimal import Decimal

import pytest

from checkbatches.exceptions import MessageSerializationError
from checkbatches.models import Batch, ProviderBatch, UpdateBatchMessage
from checkbatches.status import is_terminal_status


@pytest.mark.parametrize(
    "status, expected",
    [
        ("completed", True),
        ("Completed", True),
        ("FAILED", True),
        ("in_progress", False),
        ("cancelled", False),
        ("expired", False),
        ("", False),
        ("brand-new-status", False),
    ],
)
def test_is_terminal_status(status: str, expected: bool):
    assert is_terminal_status(status) is expected
    assert ProviderBatch(id="batch_1", status=status).is_terminal is expected


def test_batch_from_dynamodb_item():
    batch = Batch.model_validate(
        {
            "id": "b-1",
            "openai_batch_id": "batch_abc",
            "status": "Waiting",
            "created_at": Decimal("1717171717"),
            "correlation_id": "corr-1",
            "some_other_attribute": "ignored",
        }
    )

    assert batch.created_at == 1717171717
    assert batch.external_reference_id == "batch_abc"
    assert batch.error_message is None


def test_blank_reference_counts_as_missing():
    assert Batch(id="b-1", openai_batch_id="  ").external_reference_id is None


def test_provider_batch_keeps_extra_fields():
    provider_batch = ProviderBatch.model_validate(
        {"id": "batch_1", "status": "completed", "object": "batch", "request_counts": {}}
    )

    assert provider_batch.output_file_id is None
    assert provider_batch.model_extra == {"object": "batch", "request_counts": {}}


def test_update_message_serialization_is_deterministic():
    first = UpdateBatchMessage(batch_id="b-1").to_wire()
    second = UpdateBatchMessage(batch_id="b-1").to_wire()

    assert first == second == '{"batchId":"b-1"}'


def test_update_message_accepts_wire_alias():
    assert UpdateBatchMessage.model_validate({"batchId": "b-1"}).batch_id == "b-1"


def test_update_message_without_batch_id_cannot_be_serialized():
    with pytest.raises(MessageSerializationError) as excinfo:
        UpdateBatchMessage(batch_id="").to_wire()

    assert excinfo.value.reason == "batch id is empty"


def test_update_message_with_unserializable_id_is_reported():
    message = UpdateBatchMessage.model_construct(batch_id=object())

    with pytest.raises(MessageSerializationError):
        message.to_wire()
