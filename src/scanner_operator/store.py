"""Persistence for scan reports, keyed by image id."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from sqlalchemy import DateTime, String, Text, create_engine, delete, select, text
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from scanner_operator.errors import ConfigurationError, NotFoundError, StorageError
from scanner_operator.validation import validate_report

logger = logging.getLogger(__name__)

# DATABASE_TYPE value -> SQLAlchemy backend name
BACKENDS = {
    "sqlite": "sqlite",
    "postgres": "postgresql",
    "mysql": "mysql",
}


class Base(DeclarativeBase):
    pass


class ScanResultRow(Base):
    __tablename__ = "scan_results"

    image_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    report: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


@dataclass(frozen=True)
class ScanResult:
    """A stored scan report.

    Attributes:
        image_id: Container image id the report describes (unique key).
        report: CycloneDX JSON text, byte-for-byte as it was submitted.
        updated_at: When the row was last written.
    """

    image_id: str
    report: str
    updated_at: datetime

    @classmethod
    def from_row(cls, row: ScanResultRow) -> ScanResult:
        return cls(image_id=row.image_id, report=row.report, updated_at=row.updated_at)


@runtime_checkable
class ResultStore(Protocol):
    """Operations the scheduler and API need from result persistence."""

    def get(self, image_id: str) -> ScanResult:
        """Return the stored result. Raises NotFoundError on a miss."""
        ...

    def list(self) -> list[ScanResult]:
        """Return every stored result, in no particular order."""
        ...

    def delete(self, image_id: str) -> None:
        """Remove a result. Deleting an absent id is not an error."""
        ...

    def upsert(self, image_id: str, raw_report: str) -> ScanResult:
        """Validate a report, then insert or fully replace it."""
        ...


def database_url(database_type: str, dsn: str) -> str:
    """Build a SQLAlchemy URL from DATABASE_TYPE and DSN.

    A bare path is accepted as DSN for SQLite. Other backends need a full
    SQLAlchemy URL whose backend matches database_type.

    Raises:
        ConfigurationError: On an unsupported type or mismatched DSN.
    """
    backend = BACKENDS.get(database_type)
    if backend is None:
        raise ConfigurationError(f"unsupported database type: {database_type}")

    if backend == "sqlite" and "://" not in dsn:
        if dsn in ("", ":memory:"):
            return "sqlite://"
        return f"sqlite:///{Path(dsn)}"

    try:
        url = make_url(dsn)
    except ArgumentError as e:
        raise ConfigurationError(f"invalid DSN for {database_type}: {e}") from e

    if url.get_backend_name() != backend:
        raise ConfigurationError(
            f"DSN backend {url.get_backend_name()!r} does not match DATABASE_TYPE {database_type!r}"
        )
    return dsn


def is_memory_sqlite(url: str) -> bool:
    """True for SQLite URLs naming a private in-memory database."""
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def connect(database_type: str, dsn: str) -> Engine:
    """Open an engine and create the scan_results table if missing.

    Raises:
        ConfigurationError: If the settings are unusable.
        StorageError: If the database cannot be reached.
    """
    url = database_url(database_type, dsn)
    kwargs: dict = {"pool_pre_ping": True}
    if is_memory_sqlite(url):
        # In-memory SQLite needs one shared connection across threads.
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    try:
        engine = create_engine(url, **kwargs)
        Base.metadata.create_all(engine)
    except SQLAlchemyError as e:
        raise StorageError(f"failed to connect to database: {e}") from e
    logger.info("Connected to %s database", engine.dialect.name)
    return engine


class SqlResultStore:
    """ResultStore backed by a relational database through SQLAlchemy."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    def ping(self) -> None:
        """Round-trip a trivial query. Raises StorageError on failure."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageError(f"database unreachable: {e}") from e

    def get(self, image_id: str) -> ScanResult:
        try:
            with self._sessions() as session:
                row = session.get(ScanResultRow, image_id)
        except SQLAlchemyError as e:
            raise StorageError(f"error while getting scan result: {e}") from e
        if row is None:
            raise NotFoundError(image_id)
        return ScanResult.from_row(row)

    def list(self) -> list[ScanResult]:
        try:
            with self._sessions() as session:
                rows = session.scalars(select(ScanResultRow)).all()
        except SQLAlchemyError as e:
            raise StorageError(f"error while listing scan results: {e}") from e
        return [ScanResult.from_row(row) for row in rows]

    def delete(self, image_id: str) -> None:
        try:
            with self._sessions.begin() as session:
                session.execute(delete(ScanResultRow).where(ScanResultRow.image_id == image_id))
        except SQLAlchemyError as e:
            raise StorageError(f"error while deleting scan result: {e}") from e

    def upsert(self, image_id: str, raw_report: str) -> ScanResult:
        """Validate raw_report, then atomically insert or replace the row.

        Raises:
            ReportValidationError: The report is not a CycloneDX BOM. Storage
                is not touched.
            StorageError: The write failed.
        """
        validate_report(raw_report)

        values = {
            "image_id": image_id,
            "report": raw_report,
            "updated_at": datetime.now(timezone.utc),
        }
        stmt = self._upsert_statement(values)
        try:
            with self._sessions.begin() as session:
                session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"error while inserting scan result: {e}") from e
        return ScanResult(**values)

    def _upsert_statement(self, values: dict):
        dialect = self._engine.dialect.name
        replace = {"report": values["report"], "updated_at": values["updated_at"]}
        if dialect == "sqlite":
            stmt = sqlite.insert(ScanResultRow).values(**values)
            return stmt.on_conflict_do_update(index_elements=["image_id"], set_=replace)
        if dialect == "postgresql":
            stmt = postgresql.insert(ScanResultRow).values(**values)
            return stmt.on_conflict_do_update(index_elements=["image_id"], set_=replace)
        if dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(ScanResultRow).values(**values)
            return stmt.on_duplicate_key_update(**replace)
        raise ConfigurationError(f"upsert not supported for dialect {dialect}")
