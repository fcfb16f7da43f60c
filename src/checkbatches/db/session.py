from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, Table, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def create_db_engine(url: str) -> Engine:
    # in-memory SQLite must keep a single connection or every session sees an empty database
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=False)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=Session)


@contextmanager
def get_db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Engine, table: Table) -> None:
    table.create(bind=engine, checkfirst=True)


def destroy_db(engine: Engine, table: Table) -> None:
    table.drop(bind=engine, checkfirst=True)
