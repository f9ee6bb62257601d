"""Durable key-value store backed by SQLite through SQLModel."""

import logging
from pathlib import Path
from typing import Mapping, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from glwiki.errors import StoreError
from glwiki.models import StoreEntry, utcnow
from glwiki.store.base import KeyValueStore

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> Engine:
    """Create an engine, making sure a sqlite file's directory exists."""
    if database_url == "sqlite://" or database_url.endswith(":memory:"):
        # Share the single connection across sessions and threads
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite:///"):
        path = Path(database_url[len("sqlite:///"):]).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        database_url = f"sqlite:///{path}"
    return create_engine(database_url, echo=False)


class SqlStore(KeyValueStore):
    """Key-value store persisted in the ``store_entry`` table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        SQLModel.metadata.create_all(engine, tables=[StoreEntry.__table__])

    @classmethod
    def from_url(cls, database_url: str) -> "SqlStore":
        return cls(make_engine(database_url))

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            entry = session.get(StoreEntry, key)
            return entry.value if entry else None

    def set_many(self, values: Mapping[str, str]) -> None:
        # One transaction: a failure part-way leaves every key untouched.
        try:
            with Session(self.engine) as session:
                now = utcnow()
                for key, value in values.items():
                    entry = session.get(StoreEntry, key)
                    if entry is None:
                        entry = StoreEntry(key=key, value=value, updated_at=now)
                    else:
                        entry.value = value
                        entry.updated_at = now
                    session.add(entry)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not write {', '.join(values)}: {e}") from e
        logger.debug("Stored keys: %s", ", ".join(values))

    def remove(self, key: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(StoreEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()

    def clear(self) -> None:
        with Session(self.engine) as session:
            for entry in session.exec(select(StoreEntry)).all():
                session.delete(entry)
            session.commit()

    def keys(self) -> list[str]:
        with Session(self.engine) as session:
            return list(session.exec(select(StoreEntry.key)).all())
