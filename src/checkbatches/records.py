"""
Record sources that select the batches still waiting for a provider result.
"""

from __future__ import annotations

import asyncio
import typing as t

import boto3
import structlog
from boto3.dynamodb.conditions import Key

from checkbatches.config import DEFAULT_STATUS_INDEX
from checkbatches.db.crud import get_batches_by_status
from checkbatches.db.models import batches_table
from checkbatches.db.session import create_db_engine, create_session_factory, get_db
from checkbatches.models import Batch, parse_batches
from checkbatches.status import BatchStatus

if t.TYPE_CHECKING:
    from sqlalchemy import Engine

log = structlog.get_logger(__name__)


class BatchRecordSource(t.Protocol):
    """Supply every batch whose local status is ``Waiting``."""

    async def get_waiting_batches(self) -> list[Batch]: ...


class DynamoDBBatchSource:
    """
    Query waiting batches from a DynamoDB table through its status index.

    Parameters
    ----------
    table_name : str
        Batches table name.
    index_name : str, optional
        Global secondary index keyed on ``status``.
    region_name : str | None, optional
        AWS region, ``None`` for the boto3 default.
    table : typing.Any, optional
        Pre-built ``boto3`` table resource, mostly for tests.
    """

    def __init__(
        self,
        table_name: str,
        *,
        index_name: str = DEFAULT_STATUS_INDEX,
        region_name: str | None = None,
        table: t.Any = None,
    ) -> None:
        self._table_name = table_name
        self._index_name = index_name
        if table is None:
            table = boto3.resource("dynamodb", region_name=region_name).Table(table_name)
        self._table = table

    def _query_all(self) -> list[dict[str, t.Any]]:
        items: list[dict[str, t.Any]] = []
        query_kwargs: dict[str, t.Any] = {
            "IndexName": self._index_name,
            "KeyConditionExpression": Key("status").eq(BatchStatus.WAITING.value),
        }
        page_count = 0
        while True:
            response = self._table.query(**query_kwargs)
            page_count += 1
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key
        log.debug(
            event="Queried batches table",
            table=self._table_name,
            index=self._index_name,
            page_count=page_count,
            item_count=len(items),
        )
        return items

    async def get_waiting_batches(self) -> list[Batch]:
        items = await asyncio.to_thread(self._query_all)
        return parse_batches(items, source=self._table_name)


class SqlBatchSource:
    """
    Select waiting batches from a SQL table, for local runs against SQLite or Postgres.

    Parameters
    ----------
    table_name : str
        Batches table name.
    database_url : str | None, optional
        SQLAlchemy database URL.
    engine : Engine | None, optional
        Existing engine, takes precedence over ``database_url``.
    """

    def __init__(
        self,
        table_name: str,
        *,
        database_url: str | None = None,
        engine: Engine | None = None,
    ) -> None:
        if engine is None:
            if database_url is None:
                raise ValueError("Either database_url or engine must be provided")
            engine = create_db_engine(database_url)
        self._engine = engine
        self._table = batches_table(table_name)
        self._session_factory = create_session_factory(engine)

    def _select_waiting(self) -> list[Batch]:
        with get_db(self._session_factory) as db:
            return get_batches_by_status(
                db=db, table=self._table, status=BatchStatus.WAITING.value
            )

    async def get_waiting_batches(self) -> list[Batch]:
        batches = await asyncio.to_thread(self._select_waiting)
        log.debug(event="Queried batches table", table=self._table.name, item_count=len(batches))
        return batches
