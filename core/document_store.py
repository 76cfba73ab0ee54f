"""
DocumentStore: in-memory document collections with JSON persistence.

Path: data/store.json. Passing path=None keeps everything in memory, which is
what the tests and the CLI dry runs use.

Writes are serialised by a re-entrant lock. `update` accepts an `expected`
mapping that is checked under the same lock before the write is applied, so
callers can do compare-and-swap on a status field.
"""
import json
import os
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from core.exceptions import ConflictError, NotFoundError, StoreError
from core.logger import get_logger
from core.paths import DATA_DIR

STORE_PATH = DATA_DIR / "store.json"

_DEFAULT_PATH = object()

logger = get_logger("document_store")

ID_PREFIXES = {
    "weekly_goals": "wg",
    "daily_tasks": "dt",
    "example_posts": "ep",
    "users": "usr",
    "payments": "pay",
}


class AnyOf:
    """Filter value matching any of the given values (like Mongo's $in)."""

    def __init__(self, values):
        self.values = list(values)

    def matches(self, value: Any) -> bool:
        return value in self.values


class NotEqual:
    """Filter value matching anything but the given value (like $ne)."""

    def __init__(self, value: Any):
        self.value = value

    def matches(self, value: Any) -> bool:
        return value != self.value


def _matches(doc: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        actual = doc.get(key)
        if isinstance(expected, (AnyOf, NotEqual)):
            if not expected.matches(actual):
                return False
        elif actual != expected:
            return False
    return True


class DocumentStore:
    """Collections of JSON documents keyed by id."""

    def __init__(self, path: Any = _DEFAULT_PATH):
        self._path: Optional[Path] = STORE_PATH if path is _DEFAULT_PATH else path
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._load()

    @classmethod
    def in_memory(cls) -> "DocumentStore":
        return cls(path=None)

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to load store %s: %s", self._path, e)
            raise StoreError(f"Cannot read document store: {e}", path=str(self._path)) from e

        collections = data.get("collections", {}) if isinstance(data, dict) else {}
        for name, docs in collections.items():
            self._collections[name] = {d["id"]: d for d in docs if "id" in d}
        logger.info(
            "Store loaded path=%s collections=%s",
            self._path,
            {name: len(docs) for name, docs in self._collections.items()},
        )

    def save(self) -> None:
        if self._path is None:
            return
        payload = {
            "collections": {
                name: list(docs.values()) for name, docs in self._collections.items()
            }
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_path, self._path)
        except OSError as e:
            logger.error("Failed to save store %s: %s", self._path, e)
            raise StoreError(f"Cannot write document store: {e}", path=str(self._path)) from e

    @contextmanager
    def transaction(self) -> Iterator["DocumentStore"]:
        """Hold the write lock across a read-then-write sequence."""
        with self._lock:
            yield self

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return dict(doc) if doc is not None else None

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort_key: Optional[Callable[[Dict[str, Any]], Any]] = None,
        reverse: bool = False,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            docs = [dict(d) for d in self._collection(collection).values() if _matches(d, filters)]
        if sort_key is not None:
            docs.sort(key=sort_key, reverse=reverse)
        return docs

    def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            for doc in self._collection(collection).values():
                if _matches(doc, filters):
                    return dict(doc)
        return None

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for d in self._collection(collection).values() if _matches(d, filters))

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def create(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now().isoformat()
        with self._lock:
            docs = self._collection(collection)
            record = dict(doc)
            if not record.get("id"):
                prefix = ID_PREFIXES.get(collection, "doc")
                record["id"] = f"{prefix}_{uuid.uuid4().hex[:12]}"
            if record["id"] in docs:
                raise ConflictError(f"{collection} document {record['id']} already exists")
            record.setdefault("created_at", now)
            record["updated_at"] = now
            record["version"] = 1
            docs[record["id"]] = record
            try:
                self.save()
            except StoreError:
                del docs[record["id"]]
                raise
            return dict(record)

    def update(
        self,
        collection: str,
        doc_id: str,
        changes: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Apply `changes` in place.

        Raises:
            NotFoundError: no such document
            ConflictError: a field in `expected` does not hold its value
        """
        with self._lock:
            docs = self._collection(collection)
            current = docs.get(doc_id)
            if current is None:
                raise NotFoundError(collection, doc_id)
            if expected and not _matches(current, expected):
                raise ConflictError(
                    f"{collection} document {doc_id} changed concurrently",
                    current=dict(current),
                )
            updated = dict(current)
            updated.update(changes)
            updated["id"] = doc_id
            updated["updated_at"] = datetime.now().isoformat()
            updated["version"] = int(current.get("version", 0)) + 1
            docs[doc_id] = updated
            try:
                self.save()
            except StoreError:
                docs[doc_id] = current
                raise
            return dict(updated)

    def delete(self, collection: str, doc_id: str, filters: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Remove a document if it exists and matches `filters`; return it."""
        with self._lock:
            docs = self._collection(collection)
            current = docs.get(doc_id)
            if current is None or not _matches(current, filters):
                return None
            del docs[doc_id]
            try:
                self.save()
            except StoreError:
                docs[doc_id] = current
                raise
            return dict(current)
