from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from linksaver.extensions import db
from linksaver.models import Folder, Link, Tag


class StorageError(Exception):
    pass


class StorageCommitError(StorageError):
    """Staged changes could not be committed and were rolled back."""


_NATURAL_ORDER = {
    Folder: (Folder.sort_order, Folder.date_created, Folder.name),
    Tag: (Tag.date_created, Tag.name),
    Link: (Link.date_added,),
}


class RecordStore:
    """Transactional record store over a SQLAlchemy session.

    Changes made through ``insert``/``delete`` (or by mutating fetched
    records) stay staged until ``save()``. A failed save rolls the session
    back, so nothing staged is visible to later reads.
    """

    def __init__(self, session, *, label: str = "store", engine=None):
        self.session = session
        self.label = label
        self._engine = engine

    @classmethod
    def open(cls, uri: str, *, label: str | None = None) -> "RecordStore":
        try:
            engine = create_engine(uri)
            db.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Unable to open store {uri}: {exc}") from exc
        session = Session(engine, autoflush=False, expire_on_commit=False)
        return cls(session, label=label or uri, engine=engine)

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._engine is None:
            return
        self.session.close()
        self._engine.dispose()
        self._engine = None

    def fetch_all(self, model, *criteria) -> list:
        stmt = select(model)
        if criteria:
            stmt = stmt.where(*criteria)
        stmt = stmt.order_by(*_NATURAL_ORDER.get(model, ()))
        try:
            return list(self.session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Failed to fetch {model.__name__} records from {self.label}: {exc}"
            ) from exc

    def count(self, model) -> int:
        return len(self.fetch_all(model))

    def insert(self, record) -> None:
        self.session.add(record)

    def delete(self, record) -> None:
        self.session.delete(record)

    @contextmanager
    def staging(self):
        with self.session.no_autoflush:
            yield self

    def save(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageCommitError(
                f"Failed to commit changes to {self.label}: {exc}"
            ) from exc

    def discard(self) -> None:
        self.session.rollback()
