from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

# A staged write. Operations are built first and executed together by run_transaction.
Operation = Callable[[], Any]


class DbAdapter(ABC):
    """Abstract base class for document store adapters."""

    @abstractmethod
    def __enter__(self) -> 'DbAdapter':
        """Context manager entry point for preparing the DB connection."""
        pass

    @abstractmethod
    def __exit__(self, exc_type, exc_value, traceback):
        """Context manager exit point for releasing the DB connection."""
        pass

    @abstractmethod
    def run_transaction(self, operations_list: List[Operation]):
        """Execute a list of staged operations atomically. Either all apply or none do."""
        pass

    @abstractmethod
    def get_one(self, table: str, conditions: Dict[str, Any],
                sort: Optional[List[Tuple[str, int]]] = None) -> Optional[Dict[str, Any]]:
        """Fetches a single record from the specified table based on given conditions."""
        pass

    @abstractmethod
    def get_many(self, table: str, conditions: Optional[Dict[str, Any]] = None,
                 sort: Optional[List[Tuple[str, int]]] = None,
                 limit: Optional[int] = None, offset: Optional[int] = None) -> List[Dict[str, Any]]:
        """Fetches multiple records from the specified table based on given conditions."""
        pass

    @abstractmethod
    def get_count(self, table: str, conditions: Dict[str, Any]) -> int:
        """Counts the records of the specified table matching the given conditions."""
        pass

    @abstractmethod
    def get_move_entity_to_audit_table_query(self, table: str, entity_id: str) -> Operation:
        """Returns an operation that copies the current version of an entity into {table}_audit."""
        pass

    @abstractmethod
    def get_save_query(self, table: str, data: Dict[str, Any]) -> Operation:
        """Returns an operation that upserts a record by entity_id."""
        pass

    @abstractmethod
    def get_insert_query(self, table: str, data: Dict[str, Any]) -> Operation:
        """Returns an operation that inserts a new record. Never replaces an existing one."""
        pass

    def lock_entity(self, table: str, entity_id: str) -> None:
        """
        Serialize the current context with every other context that locks the
        same entity. Adapters whose contexts already run one at a time need
        nothing more.
        """
        pass
