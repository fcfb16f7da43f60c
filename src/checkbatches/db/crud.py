import typing as t

from sqlalchemy import insert, select

from checkbatches.models import Batch, parse_batches

if t.TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.orm import Session


def create_batch(db: "Session", table: "Table", batch: Batch) -> Batch:
    """Insert a batch row

    Parameters
    ----------
    db : Session
        The database session
    table : Table
        The batches table
    batch : Batch
        The batch to insert

    Returns
    -------
    Batch
        The inserted batch
    """
    db.execute(insert(table).values(**batch.model_dump()))
    db.commit()
    return batch


def get_batch(db: "Session", table: "Table", batch_id: str) -> Batch | None:
    """Get a batch by id

    Parameters
    ----------
    db : Session
        The database session
    table : Table
        The batches table
    batch_id : str
        The id of the batch

    Returns
    -------
    Batch | None
        The batch, or None if no row has this id
    """
    row = db.execute(select(table).where(table.c.id == batch_id)).mappings().first()
    if row is None:
        return None
    return Batch.model_validate(dict(row))


def get_batches_by_status(db: "Session", table: "Table", status: str) -> list[Batch]:
    """Get every batch currently in a given status

    Parameters
    ----------
    db : Session
        The database session
    table : Table
        The batches table
    status : str
        The status to filter on, served by the status index

    Returns
    -------
    list[Batch]
        Matching batches ordered by creation time
    """
    rows = (
        db.execute(
            select(table).where(table.c.status == status).order_by(table.c.created_at, table.c.id)
        )
        .mappings()
        .all()
    )
    return parse_batches(rows, source=table.name)
