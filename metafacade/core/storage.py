############################################################
# storage.py
############################################################

"""
Persistent key-value backends for entity metadata.

A backend stores zero, one or many raw values per (record id, key) pair and
hands them back in insertion order. It knows nothing about normalization or
filter stages; that is the MetaStore's job.

Two implementations are provided:

1. InMemoryMetaStorage - dictionary-backed, the default.
2. SqlMetaStorage      - SQLAlchemy-backed, one row per value with an explicit
                         position column so multi-valued keys keep their order.

Both count storage round trips in get_registry_status() so callers can see
how many independent reads a render pass cost.
"""

import logging
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, Union
from uuid import UUID

from sqlalchemy import JSON, Integer, String, delete, select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, mapped_column

RecordId = Union[int, str, UUID]

# SQLAlchemy Base for the metadata table
Base = declarative_base()


def _record_key(record_id: RecordId) -> str:
    """Record ids are compared in their string form across backends."""
    return str(record_id)


###############################################################################
# 1) The Storage Protocol
###############################################################################

class MetaStorage(Protocol):
    """
    Interface for the persistent metadata store.

    fetch() never raises for a missing pair; it returns an empty list.
    A key of None reads the whole record as a single {key: [values]} mapping;
    fetch_many() only takes real keys.
    Backends are responsible for turning I/O failures into empty results.
    """

    def fetch(self, record_id: RecordId, key: Optional[str]) -> List[Any]: ...
    def fetch_many(self, record_id: RecordId, keys: Iterable[str]) -> Dict[str, List[Any]]: ...
    def write(self, record_id: RecordId, key: str, value: Any) -> bool: ...
    def add(self, record_id: RecordId, key: str, value: Any) -> bool: ...
    def delete(self, record_id: RecordId, key: str) -> bool: ...
    def get_registry_status(self) -> Dict[str, Any]: ...
    def clear(self) -> None: ...


###############################################################################
# 2) InMemoryMetaStorage
###############################################################################

class InMemoryMetaStorage(MetaStorage):
    """
    Default in-memory backend.
    Values live in a dict keyed by (record id, key), each holding a list.
    """
    def __init__(self) -> None:
        self._logger = logging.getLogger("InMemoryMetaStorage")
        self._rows: Dict[Tuple[str, str], List[Any]] = {}
        self._round_trips = 0
        self._fetch_counts: Counter = Counter()

    def fetch(self, record_id: RecordId, key: Optional[str]) -> List[Any]:
        self._round_trips += 1
        self._fetch_counts[(_record_key(record_id), key)] += 1
        if key is None:
            rid = _record_key(record_id)
            everything = {k: list(v) for (r, k), v in self._rows.items() if r == rid}
            return [everything] if everything else []
        return list(self._rows.get((_record_key(record_id), key), []))

    def fetch_many(self, record_id: RecordId, keys: Iterable[str]) -> Dict[str, List[Any]]:
        self._round_trips += 1
        rid = _record_key(record_id)
        out: Dict[str, List[Any]] = {}
        for key in keys:
            self._fetch_counts[(rid, key)] += 1
            out[key] = list(self._rows.get((rid, key), []))
        return out

    def write(self, record_id: RecordId, key: str, value: Any) -> bool:
        self._rows[(_record_key(record_id), key)] = [value]
        self._logger.debug(f"Wrote {key!r} for record {record_id}")
        return True

    def add(self, record_id: RecordId, key: str, value: Any) -> bool:
        self._rows.setdefault((_record_key(record_id), key), []).append(value)
        return True

    def delete(self, record_id: RecordId, key: str) -> bool:
        return self._rows.pop((_record_key(record_id), key), None) is not None

    def fetch_count(self, record_id: RecordId, key: str) -> int:
        """How many times a single (record, key) pair has been read."""
        return self._fetch_counts[(_record_key(record_id), key)]

    def get_registry_status(self) -> Dict[str, Any]:
        records = {rid for rid, _ in self._rows}
        return {
            "storage": "memory",
            "record_count": len(records),
            "pair_count": len(self._rows),
            "value_count": sum(len(v) for v in self._rows.values()),
            "round_trips": self._round_trips,
            "fetched_pairs": len(self._fetch_counts),
        }

    def clear(self) -> None:
        self._rows.clear()
        self._fetch_counts.clear()
        self._round_trips = 0


###############################################################################
# 3) SqlMetaStorage
###############################################################################

class MetaValueSQL(Base):
    """One stored value of a (record id, key) pair."""
    __tablename__ = "entity_meta"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id = mapped_column(String(64), nullable=False, index=True)
    meta_key = mapped_column(String(255), nullable=True, index=True)
    meta_value = mapped_column(JSON, nullable=True)
    position = mapped_column(Integer, nullable=False, default=0)


class SqlMetaStorage(MetaStorage):
    """
    SQL-based backend that:
      1) Accepts a session_factory for producing sessions (e.g. a sessionmaker).
      2) Stores one MetaValueSQL row per value, ordered by `position`.
    Database errors are logged and reported as empty reads or failed writes.
    """
    def __init__(self, session_factory: Callable[..., Any]) -> None:
        self._logger = logging.getLogger("SqlMetaStorage")
        self._session_factory = session_factory
        self._round_trips = 0

    def fetch(self, record_id: RecordId, key: Optional[str]) -> List[Any]:
        self._round_trips += 1
        stmt = select(MetaValueSQL).where(MetaValueSQL.record_id == _record_key(record_id))
        if key is not None:
            stmt = stmt.where(MetaValueSQL.meta_key == key)
        stmt = stmt.order_by(MetaValueSQL.position, MetaValueSQL.id)
        try:
            with self._session_factory() as sess:
                rows = sess.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self._logger.error(f"Fetch of {key!r} for record {record_id} failed - {exc}")
            return []
        if key is None:
            everything: Dict[str, List[Any]] = {}
            for row in rows:
                everything.setdefault(row.meta_key, []).append(row.meta_value)
            return [everything] if everything else []
        return [row.meta_value for row in rows]

    def fetch_many(self, record_id: RecordId, keys: Iterable[str]) -> Dict[str, List[Any]]:
        self._round_trips += 1
        wanted = list(keys)
        out: Dict[str, List[Any]] = {key: [] for key in wanted}
        if not wanted:
            return out
        stmt = (
            select(MetaValueSQL)
            .where(MetaValueSQL.record_id == _record_key(record_id))
            .where(MetaValueSQL.meta_key.in_(wanted))
            .order_by(MetaValueSQL.position, MetaValueSQL.id)
        )
        try:
            with self._session_factory() as sess:
                for row in sess.execute(stmt).scalars().all():
                    out[row.meta_key].append(row.meta_value)
        except SQLAlchemyError as exc:
            self._logger.error(f"Batched fetch for record {record_id} failed - {exc}")
            return {key: [] for key in wanted}
        return out

    def write(self, record_id: RecordId, key: str, value: Any) -> bool:
        rid = _record_key(record_id)
        try:
            with self._session_factory() as sess:
                sess.execute(
                    delete(MetaValueSQL)
                    .where(MetaValueSQL.record_id == rid)
                    .where(MetaValueSQL.meta_key == key)
                )
                sess.add(MetaValueSQL(record_id=rid, meta_key=key, meta_value=value, position=0))
                sess.commit()
            return True
        except SQLAlchemyError as exc:
            self._logger.error(f"Write of {key!r} for record {record_id} failed - {exc}")
            return False

    def add(self, record_id: RecordId, key: str, value: Any) -> bool:
        rid = _record_key(record_id)
        try:
            with self._session_factory() as sess:
                last = sess.execute(
                    select(func.max(MetaValueSQL.position))
                    .where(MetaValueSQL.record_id == rid)
                    .where(MetaValueSQL.meta_key == key)
                ).scalar()
                position = 0 if last is None else last + 1
                sess.add(MetaValueSQL(record_id=rid, meta_key=key, meta_value=value, position=position))
                sess.commit()
            return True
        except SQLAlchemyError as exc:
            self._logger.error(f"Add of {key!r} for record {record_id} failed - {exc}")
            return False

    def delete(self, record_id: RecordId, key: str) -> bool:
        try:
            with self._session_factory() as sess:
                result = sess.execute(
                    delete(MetaValueSQL)
                    .where(MetaValueSQL.record_id == _record_key(record_id))
                    .where(MetaValueSQL.meta_key == key)
                )
                sess.commit()
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as exc:
            self._logger.error(f"Delete of {key!r} for record {record_id} failed - {exc}")
            return False

    def get_registry_status(self) -> Dict[str, Any]:
        return {
            "storage": "sql",
            "round_trips": self._round_trips,
        }

    def clear(self) -> None:
        try:
            with self._session_factory() as sess:
                sess.execute(delete(MetaValueSQL))
                sess.commit()
        except SQLAlchemyError as exc:
            self._logger.error(f"Clear failed - {exc}")
        self._round_trips = 0
