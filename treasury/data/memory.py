import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from treasury.data.base import DbAdapter, Operation

logger = logging.getLogger(__name__)


def _matches(document: Dict[str, Any], conditions: Optional[Dict[str, Any]]) -> bool:
    """Equality matching plus the `$in` and `$ne` operators."""
    for key, expected in (conditions or {}).items():
        actual = document.get(key)
        if isinstance(expected, dict):
            if '$in' in expected and actual not in expected['$in']:
                return False
            if '$ne' in expected and actual == expected['$ne']:
                return False
        elif actual != expected:
            return False
    return True


def _sort_key(field_name: str):
    # None sorts before any value, like MongoDB's ascending order
    def key(document):
        value = document.get(field_name)
        return (value is not None, value)
    return key


class MemoryAdapter(DbAdapter):
    """
    Process-local document store.

    Collections are lists of plain dicts. The outermost context holds the
    store lock from its first read to its last write, so contexts of
    different threads run one after another. A context that exits with an
    exception restores the snapshot taken on entry, and so does a failed
    `run_transaction`.
    """

    def __init__(self):
        self.collections: Dict[str, List[Dict[str, Any]]] = {}
        self.indexes: Dict[str, List[str]] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot = None

    def __enter__(self) -> 'MemoryAdapter':
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = copy.deepcopy(self.collections)
        self._depth += 1
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        try:
            self._depth -= 1
            if self._depth == 0:
                if exc_type is not None:
                    logger.info("Context rolled back after %s", exc_type.__name__)
                    self.collections = self._snapshot
                self._snapshot = None
        finally:
            self._lock.release()

    def _collection(self, table: str) -> List[Dict[str, Any]]:
        return self.collections.setdefault(table, [])

    def run_transaction(self, operations_list: List[Operation]):
        with self._lock:
            snapshot = copy.deepcopy(self.collections)
            try:
                for op in operations_list:
                    op()
            except Exception:
                logger.info("Transaction rolled back")
                self.collections = snapshot
                raise

    def get_one(self, table: str, conditions: Dict[str, Any],
                sort: Optional[List[Tuple[str, int]]] = None) -> Optional[Dict[str, Any]]:
        found = self.get_many(table, conditions, sort=sort, limit=1)
        return found[0] if found else None

    def get_many(self, table: str, conditions: Optional[Dict[str, Any]] = None,
                 sort: Optional[List[Tuple[str, int]]] = None,
                 limit: Optional[int] = None, offset: Optional[int] = None) -> List[Dict[str, Any]]:
        with self._lock:
            documents = [d for d in self._collection(table) if _matches(d, conditions)]
            # Apply the least significant key first; Python's sort is stable.
            for field_name, direction in reversed(sort or []):
                documents.sort(key=_sort_key(field_name), reverse=direction < 0)
            if offset:
                documents = documents[offset:]
            if limit:
                documents = documents[:limit]
            return copy.deepcopy(documents)

    def get_count(self, table: str, conditions: Dict[str, Any]) -> int:
        with self._lock:
            return sum(1 for d in self._collection(table) if _matches(d, conditions))

    def get_move_entity_to_audit_table_query(self, table: str, entity_id: str) -> Operation:
        def move():
            current = next((d for d in self._collection(table) if d.get('entity_id') == entity_id), None)
            if current:
                self._collection(f"{table}_audit").append(copy.deepcopy(current))
        return move

    def get_save_query(self, table: str, data: Dict[str, Any]) -> Operation:
        if 'entity_id' not in data:
            raise RuntimeError("save failed: 'entity_id' is required in data")
        document = copy.deepcopy(data)

        def save():
            collection = self._collection(table)
            for index, existing in enumerate(collection):
                if existing.get('entity_id') == document['entity_id']:
                    collection[index] = copy.deepcopy(document)
                    return
            collection.append(copy.deepcopy(document))
        return save

    def get_insert_query(self, table: str, data: Dict[str, Any]) -> Operation:
        document = copy.deepcopy(data)

        def insert():
            collection = self._collection(table)
            if any(d.get('entity_id') == document.get('entity_id') for d in collection):
                raise RuntimeError(f"insert failed: duplicate entity_id {document.get('entity_id')}")
            collection.append(copy.deepcopy(document))
        return insert

    def create_index(self, table: str, columns, index_name: str, unique: bool = False) -> str:
        self.indexes.setdefault(table, []).append(index_name)
        return index_name
