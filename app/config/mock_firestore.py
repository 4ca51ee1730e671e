"""
Mock Firestore - in-process stand-in used when USE_MOCK_DB=true.

Implements the subset of the google-cloud-firestore client surface this
service relies on:
- collection(...).document(...).get / set / update / delete
- where / order_by / limit / stream queries (dotted field paths allowed)
- SERVER_TIMESTAMP, Increment and DELETE_FIELD transforms
- write_option(last_update_time=...) preconditions

Data lives in memory and is optionally mirrored to a JSON file so a local
dev server keeps its issues across restarts.
"""

import copy
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core import exceptions as gexc

logger = logging.getLogger(__name__)

_MISSING = object()


def _get_path(data: Optional[Dict], field_path: str) -> Any:
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(data: Dict, field_path: str, value: Any) -> None:
    parts = field_path.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _delete_path(data: Dict, field_path: str) -> None:
    parts = field_path.split(".")
    current = data
    for part in parts[:-1]:
        current = current.get(part)
        if not isinstance(current, dict):
            return
    current.pop(parts[-1], None)


def _matches(value: Any, op: str, expected: Any) -> bool:
    if value is _MISSING:
        return False
    try:
        if op == "==":
            return value == expected
        if op == "!=":
            return value != expected
        if op == "<":
            return value < expected
        if op == "<=":
            return value <= expected
        if op == ">":
            return value > expected
        if op == ">=":
            return value >= expected
        if op == "in":
            return value in expected
        if op == "not-in":
            return value not in expected
        if op == "array-contains":
            return isinstance(value, list) and expected in value
    except TypeError:
        # Firestore never matches across incompatible types
        return False
    raise ValueError(f"Unsupported operator: {op}")


class _LastUpdateOption:
    def __init__(self, last_update_time: datetime):
        self.last_update_time = last_update_time


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[Dict],
                 create_time: Optional[datetime] = None, update_time: Optional[datetime] = None):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.create_time = create_time
        self.update_time = update_time

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict]:
        if self._data is None:
            return None
        return copy.deepcopy(self._data)

    def get(self, field_path: str) -> Any:
        value = _get_path(self._data, field_path)
        if value is _MISSING:
            raise KeyError(field_path)
        return copy.deepcopy(value)


class MockDocumentReference:
    def __init__(self, db: "MockFirestore", collection: str, document_id: str):
        self._db = db
        self._collection = collection
        self.id = document_id

    @property
    def path(self) -> str:
        return f"{self._collection}/{self.id}"

    def get(self) -> MockDocumentSnapshot:
        return self._db._snapshot(self._collection, self.id)

    def set(self, document_data: Dict, merge: bool = False) -> None:
        self._db._set(self._collection, self.id, document_data, merge)

    def update(self, field_updates: Dict, option: Optional[_LastUpdateOption] = None) -> None:
        self._db._update(self._collection, self.id, field_updates, option)

    def delete(self, option: Optional[_LastUpdateOption] = None) -> None:
        self._db._delete(self._collection, self.id, option)


class MockQuery:
    def __init__(self, db: "MockFirestore", collection: str,
                 filters: Tuple = (), orders: Tuple = (), limit_count: Optional[int] = None):
        self._db = db
        self._collection = collection
        self._filters = filters
        self._orders = orders
        self._limit = limit_count

    def _copy(self, **overrides) -> "MockQuery":
        params = {
            "filters": self._filters,
            "orders": self._orders,
            "limit_count": self._limit,
        }
        params.update(overrides)
        return MockQuery(self._db, self._collection, **params)

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        return self._copy(filters=self._filters + ((field_path, op_string, value),))

    def order_by(self, field_path: str, direction: str = "ASCENDING") -> "MockQuery":
        return self._copy(orders=self._orders + ((field_path, direction),))

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit_count=count)

    def stream(self) -> Iterator[MockDocumentSnapshot]:
        return iter(self._db._run_query(self))

    def get(self) -> List[MockDocumentSnapshot]:
        return self._db._run_query(self)


class MockCollectionReference(MockQuery):
    def __init__(self, db: "MockFirestore", name: str):
        super().__init__(db, name)
        self.id = name

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._db, self._collection, document_id or uuid.uuid4().hex[:20])


class MockFirestore:
    """Thread-safe in-memory Firestore replacement."""

    def __init__(self, path: Optional[str] = None):
        self._path = path or None
        self._lock = threading.RLock()
        self._last_time = datetime.fromtimestamp(0, tz=timezone.utc)
        # {collection: {doc_id: {"data": ..., "create_time": ..., "update_time": ...}}}
        self._store: Dict[str, Dict[str, Dict[str, Any]]] = {}
        if self._path and os.path.exists(self._path):
            self._load()

    # Public client surface

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self._lock:
            return [MockCollectionReference(self, name) for name in self._store]

    def write_option(self, **kwargs) -> _LastUpdateOption:
        if set(kwargs) != {"last_update_time"}:
            raise TypeError("Only last_update_time preconditions are supported")
        return _LastUpdateOption(kwargs["last_update_time"])

    # Internals

    def _now(self) -> datetime:
        now = datetime.now(timezone.utc)
        if now <= self._last_time:
            now = self._last_time + timedelta(microseconds=1)
        self._last_time = now
        return now

    def _resolve(self, value: Any, current: Any, now: datetime) -> Any:
        if value is firestore.SERVER_TIMESTAMP:
            return now
        if isinstance(value, firestore.Increment):
            base = current if isinstance(current, (int, float)) and current is not _MISSING else 0
            return base + value.value
        if isinstance(value, dict):
            return {k: self._resolve(v, _MISSING, now) for k, v in value.items()}
        if isinstance(value, list):
            return [self._resolve(v, _MISSING, now) for v in value]
        return copy.deepcopy(value)

    def _snapshot(self, collection: str, doc_id: str) -> MockDocumentSnapshot:
        ref = MockDocumentReference(self, collection, doc_id)
        with self._lock:
            record = self._store.get(collection, {}).get(doc_id)
            if record is None:
                return MockDocumentSnapshot(ref, None)
            return MockDocumentSnapshot(
                ref, copy.deepcopy(record["data"]), record["create_time"], record["update_time"]
            )

    def _check_precondition(self, record: Optional[Dict], option: Optional[_LastUpdateOption], path: str) -> None:
        if option is None:
            return
        if record is None or record["update_time"] != option.last_update_time:
            raise gexc.FailedPrecondition(f"Document {path} was modified since it was last read")

    def _set(self, collection: str, doc_id: str, data: Dict, merge: bool) -> None:
        with self._lock:
            now = self._now()
            docs = self._store.setdefault(collection, {})
            record = docs.get(doc_id)
            resolved = {k: self._resolve(v, _MISSING, now) for k, v in data.items()}
            if record is not None and merge:
                merged = copy.deepcopy(record["data"])
                merged.update(resolved)
                resolved = merged
            docs[doc_id] = {
                "data": resolved,
                "create_time": record["create_time"] if record else now,
                "update_time": now,
            }
            self._persist()

    def _update(self, collection: str, doc_id: str, field_updates: Dict, option: Optional[_LastUpdateOption]) -> None:
        path = f"{collection}/{doc_id}"
        with self._lock:
            record = self._store.get(collection, {}).get(doc_id)
            if record is None:
                raise gexc.NotFound(f"No document to update: {path}")
            self._check_precondition(record, option, path)
            now = self._now()
            data = copy.deepcopy(record["data"])
            for field_path, value in field_updates.items():
                if value is firestore.DELETE_FIELD:
                    _delete_path(data, field_path)
                    continue
                current = _get_path(data, field_path)
                _set_path(data, field_path, self._resolve(value, current, now))
            record["data"] = data
            record["update_time"] = now
            self._persist()

    def _delete(self, collection: str, doc_id: str, option: Optional[_LastUpdateOption]) -> None:
        path = f"{collection}/{doc_id}"
        with self._lock:
            docs = self._store.get(collection, {})
            self._check_precondition(docs.get(doc_id), option, path)
            docs.pop(doc_id, None)
            self._persist()

    def _run_query(self, query: MockQuery) -> List[MockDocumentSnapshot]:
        with self._lock:
            records = list(self._store.get(query._collection, {}).items())
            rows = []
            for doc_id, record in records:
                data = record["data"]
                if all(_matches(_get_path(data, f), op, v) for f, op, v in query._filters):
                    rows.append((doc_id, record))

            for field_path, _ in query._orders:
                rows = [row for row in rows if _get_path(row[1]["data"], field_path) is not _MISSING]
            for field_path, direction in reversed(query._orders):
                rows.sort(
                    key=lambda row: _get_path(row[1]["data"], field_path),
                    reverse=str(direction).upper() == "DESCENDING",
                )

            if query._limit is not None:
                rows = rows[: query._limit]

            return [
                MockDocumentSnapshot(
                    MockDocumentReference(self, query._collection, doc_id),
                    copy.deepcopy(record["data"]),
                    record["create_time"],
                    record["update_time"],
                )
                for doc_id, record in rows
            ]

    # JSON mirror

    def _persist(self) -> None:
        if not self._path:
            return
        try:
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(self._store, f, default=_encode_datetime, indent=2)
        except OSError as e:
            logger.warning(f"Mock DB could not be written to {self._path}: {e}")

    def _load(self) -> None:
        with open(self._path, "r", encoding="utf-8") as f:
            self._store = json.load(f, object_hook=_decode_datetime)
        logger.info(f"Mock DB loaded from {self._path}")


def _encode_datetime(value: Any) -> Dict[str, str]:
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode_datetime(obj: Dict) -> Any:
    if set(obj) == {"__datetime__"}:
        return datetime.fromisoformat(obj["__datetime__"])
    return obj


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    return MockFirestore(path)
