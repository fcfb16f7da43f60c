import time
import typing as t
from decimal import Decimal

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticSerializationError

from checkbatches.exceptions import MessageSerializationError
from checkbatches.status import BatchStatus, is_terminal_status

log = structlog.get_logger(__name__)


class Batch(BaseModel):
    """A batch record as stored in the batches table."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    openai_batch_id: str | None = None
    status: str = BatchStatus.UNKNOWN.value
    created_at: int = Field(default_factory=lambda: int(time.time()))
    error_message: str | None = None
    correlation_id: str | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def coerce_store_number(cls, value: t.Any) -> t.Any:
        # DynamoDB hands numbers back as Decimal
        if isinstance(value, Decimal):
            return int(value)
        return value

    @field_validator("openai_batch_id", mode="before")
    @classmethod
    def blank_reference_is_missing(cls, value: t.Any) -> t.Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def external_reference_id(self) -> str | None:
        return self.openai_batch_id


def parse_batches(items: t.Iterable[t.Mapping[str, t.Any]], *, source: str) -> list[Batch]:
    """
    Validate stored records into batches, skipping the ones that do not fit.

    Parameters
    ----------
    items : typing.Iterable[typing.Mapping[str, typing.Any]]
        Raw records as returned by the record store.
    source : str
        Table name, used in logs.

    Returns
    -------
    list[Batch]
        Valid batches in input order.
    """
    batches: list[Batch] = []
    for item in items:
        try:
            batches.append(Batch.model_validate(dict(item)))
        except ValidationError as error:
            log.error(
                event="Skipping malformed batch record",
                table=source,
                batch_id=item.get("id"),
                error_count=error.error_count(),
                error=str(object=error),
            )
    return batches


class ProviderBatch(BaseModel):
    """Subset of the provider batch object needed to decide on notification."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    status: str
    output_file_id: str | None = None
    error_file_id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)


class UpdateBatchMessage(BaseModel):
    """
    Notification announcing that a batch reached a terminal provider state.

    The batch id is the only payload field; the consumer re-reads everything
    else from the batches table.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    batch_id: str = Field(serialization_alias="batchId", validation_alias="batchId")

    def to_wire(self) -> str:
        """
        Serialize the message into a queue body.

        Returns
        -------
        str
            Compact JSON, identical for identical messages.

        Raises
        ------
        MessageSerializationError
            If the message cannot be represented on the wire.
        """
        if not isinstance(self.batch_id, str) or not self.batch_id.strip():
            raise MessageSerializationError(
                batch_id=str(object=self.batch_id), reason="batch id is empty"
            )
        try:
            body = self.model_dump_json(by_alias=True)
        except PydanticSerializationError as error:
            raise MessageSerializationError(
                batch_id=str(object=self.batch_id), reason=str(object=error)
            ) from error
        log.debug(event="Serialized update message", batch_id=self.batch_id, size=len(body))
        return body
