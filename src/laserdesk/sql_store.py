"""SQLAlchemy-backed record store (sqlite or PostgreSQL)."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    and_,
    create_engine,
    select,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .layouts import (
    BOOLEAN_COLUMNS,
    INCIDENT_COLUMNS,
    INCIDENTS_TABLE,
    REGIONS_TABLE,
    SNAPSHOTS_TABLE,
    SUPPLIERS_TABLE,
)
from .store import DEFAULT_PAGE_SIZE, Filter, RecordStore, Row, StoreError


LOGGER = logging.getLogger("laserdesk.sql_store")

metadata = MetaData()


def _incident_column(name: str) -> Column:
    if name == "numero":
        return Column(name, Text, primary_key=True)
    if name in BOOLEAN_COLUMNS:
        return Column(name, Boolean, nullable=True)
    return Column(name, Text, nullable=True)


incidents = Table(INCIDENTS_TABLE, metadata, *[_incident_column(c) for c in INCIDENT_COLUMNS])

suppliers = Table(
    SUPPLIERS_TABLE,
    metadata,
    Column("provincia", Text, primary_key=True),
    Column("fornitore", Text, nullable=False),
)

regions = Table(
    REGIONS_TABLE,
    metadata,
    Column("name", Text, primary_key=True),
    Column("visible", Boolean, nullable=False, default=True),
)

daily_backlog_snapshots = Table(
    SNAPSHOTS_TABLE,
    metadata,
    Column("snapshot_date", Text, primary_key=True),
    Column("region", Text, primary_key=True),
    Column("total_backlog", Integer, nullable=False, default=0),
    Column("suspended_count", Integer, nullable=False, default=0),
    Column("active_violations", Integer, nullable=False, default=0),
    Column("opened_today", Integer, nullable=False, default=0),
    Column("closed_today", Integer, nullable=False, default=0),
)


class SqlRecordStore(RecordStore):
    """Record store over a SQLAlchemy engine; every call is its own transaction."""

    def __init__(self, url_or_engine: str | Engine, page_size: int = DEFAULT_PAGE_SIZE, create: bool = True):
        self.page_size = page_size
        try:
            if isinstance(url_or_engine, Engine):
                self.engine = url_or_engine
            else:
                self.engine = create_engine(url_or_engine, pool_pre_ping=True)
            if create:
                metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        LOGGER.debug("Record store on %s", self.engine.url.render_as_string(hide_password=True))

    def _table(self, name: str) -> Table:
        try:
            return metadata.tables[name]
        except KeyError:
            raise StoreError(f"relation \"{name}\" does not exist") from None

    @staticmethod
    def _column(table: Table, name: str):
        if name not in table.c:
            raise StoreError(f"column \"{name}\" of relation \"{table.name}\" does not exist")
        return table.c[name]

    def _where(self, table: Table, filters: Sequence[Filter]):
        clauses = []
        for f in filters:
            col = self._column(table, f.column)
            if f.op == "eq":
                clauses.append(col.is_(None) if f.value is None else col == f.value)
            elif f.op == "neq":
                clauses.append(col.is_not(None) if f.value is None else col != f.value)
            elif f.op == "in":
                clauses.append(col.in_(list(f.value)))
            elif f.op == "gte":
                clauses.append(col >= f.value)
            else:
                clauses.append(col <= f.value)
        return and_(*clauses) if clauses else None

    @staticmethod
    def _coerce(table: Table, row: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in row.items():
            if key not in table.c:
                raise StoreError(f"Could not find the '{key}' column of '{table.name}'")
            if value is not None and isinstance(table.c[key].type, Text) and not isinstance(value, str):
                value = str(value)
            out[key] = value
        return out

    def select(self, table, filters=(), offset=0, limit=None) -> List[Row]:
        tbl = self._table(table)
        stmt = select(tbl)
        where = self._where(tbl, filters)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(*tbl.primary_key.columns).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self.engine.connect() as conn:
                return [dict(r._mapping) for r in conn.execute(stmt)]
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def _insert(self, tbl: Table):
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(tbl)
        if dialect == "sqlite":
            return sqlite.insert(tbl)
        raise StoreError(f"Upsert not supported on dialect '{dialect}'")

    def upsert(self, table, rows, conflict_key) -> int:
        if not rows:
            return 0
        tbl = self._table(table)
        self._column(tbl, conflict_key)
        payload = [self._coerce(tbl, r) for r in rows]
        try:
            with self.engine.begin() as conn:
                # Rows in one batch may carry different column sets (supplied columns only)
                for row in payload:
                    stmt = self._insert(tbl).values(**row)
                    changes = {k: stmt.excluded[k] for k in row if k != conflict_key}
                    if changes:
                        stmt = stmt.on_conflict_do_update(index_elements=[conflict_key], set_=changes)
                    else:
                        stmt = stmt.on_conflict_do_nothing(index_elements=[conflict_key])
                    conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        LOGGER.debug("Upserted %d rows into %s", len(payload), table)
        return len(payload)

    def update(self, table, values, match) -> int:
        tbl = self._table(table)
        where = self._where(tbl, match)
        stmt = update(tbl).values(**self._coerce(tbl, values))
        if where is not None:
            stmt = stmt.where(where)
        try:
            with self.engine.begin() as conn:
                return int(conn.execute(stmt).rowcount or 0)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
