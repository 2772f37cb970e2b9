"""SQLite result store backed by SQLAlchemy."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from ..errors import StoreError, StoreProvisioningError
from ..interfaces import ResultStore
from ..models import CombinedDocument
from .elastic import index_name

LOGGER = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class StoredDocument(Base):
    __tablename__ = "speedtest_documents"

    result_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    partition: Mapped[str] = mapped_column(String(128), index=True)
    timestamp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    body: Mapped[str] = mapped_column(Text)


@contextmanager
def get_session(Session: sessionmaker) -> Iterator:
    session = Session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class SqlResultStore(ResultStore):
    """Keeps combined documents in one table, one row per result id."""

    def __init__(self, db_path: Path, index_prefix: str = "speed-test"):
        self.db_path = db_path
        self.index_prefix = index_prefix
        self.engine = create_engine(f"sqlite:///{db_path}", future=True)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    def provision(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreProvisioningError(f"could not initialize {self.db_path}: {exc}") from exc
        LOGGER.info("Result database ready at %s", self.db_path)

    def submit(self, document: CombinedDocument) -> None:
        if not document.document_id:
            raise StoreError("document has no result id")
        record = StoredDocument(
            result_id=document.document_id,
            partition=index_name(self.index_prefix, document),
            timestamp=document.result.parsed_timestamp,
            body=document.to_json(),
        )
        try:
            with get_session(self.Session) as session:
                session.merge(record)
        except SQLAlchemyError as exc:
            raise StoreError(f"could not store result {document.document_id}: {exc}") from exc
        LOGGER.info("Stored result %s in partition %s", record.result_id, record.partition)
