from sqlalchemy import BigInteger, Column, Index, MetaData, String, Table

from checkbatches.status import BatchStatus

metadata = MetaData()


def batches_table(name: str = "batches", *, meta: MetaData = metadata) -> Table:
    """
    Return the batches table definition registered under ``name``.

    The table mirrors the attributes of the production batches store, with a
    secondary index on ``status`` used to select batches that are waiting.

    Parameters
    ----------
    name : str, optional
        Table name.
    meta : MetaData, optional
        Metadata collection the table belongs to.

    Returns
    -------
    Table
        Existing or newly registered table.
    """
    existing = meta.tables.get(name)
    if existing is not None:
        return existing
    return Table(
        name,
        meta,
        Column("id", String, primary_key=True),
        Column("openai_batch_id", String, nullable=True),
        Column("status", String, nullable=False, default=BatchStatus.UNKNOWN.value),
        Column("created_at", BigInteger, nullable=False),
        Column("error_message", String, nullable=True),
        Column("correlation_id", String, nullable=True),
        Index(f"ix_{name}_status", "status"),
    )
