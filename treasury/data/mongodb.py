from typing import Any, Dict, List, Optional, Tuple, Union
from pymongo import MongoClient, errors
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.client_session import ClientSession
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from treasury.data.base import DbAdapter, Operation


class MongoDBAdapter(DbAdapter):
    """
    MongoDB adapter for the treasury collections:
      - Retryable writes enabled
      - Majority write concern
      - One session and one snapshot transaction per outermost context, so
        the reads that validate an operation and its writes commit together
    """

    def __init__(
        self,
        mongo_uri: str,
        mongo_database: str,
        **client_options: Any
    ):
        options = {
            'retryWrites': True,
            'w': 'majority',
            'serverSelectionTimeoutMS': 5000,
            'connectTimeoutMS': 5000,
            'maxPoolSize': 100,
            'tz_aware': True,
        }
        options.update(client_options)
        self.client: MongoClient = MongoClient(mongo_uri, **options)
        self.db_name: str = mongo_database
        self.db: Database = None
        self._session: Optional[ClientSession] = None
        self._depth = 0

    def __enter__(self) -> 'MongoDBAdapter':
        """
        Context manager entry point for establishing a MongoDB connection.

        The outermost entry pings the server, selects the database, starts a
        causal-consistency session and opens a transaction on it. Nested entries
        reuse that transaction so that a service operation and the repositories
        it calls read from one snapshot and write atomically.

        Returns:
            MongoDBAdapter: The initialized adapter with a live connection.
        """
        if self._depth == 0:
            try:
                self.client.admin.command('ping')
            except errors.PyMongoError as e:
                raise ConnectionError(f"MongoDB ping failed: {e}") from e

            self.db = self.client.get_database(self.db_name)
            self._session = self.client.start_session(causal_consistency=True)
            self._session.start_transaction(
                read_concern=ReadConcern('snapshot'),
                write_concern=WriteConcern('majority'),
            )
        self._depth += 1
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        """
        Commit the transaction when the outermost context exits cleanly, abort
        it when the context exits with an exception, then end the session.

        The MongoClient is long-lived and is closed by application teardown.
        """
        self._depth = max(self._depth - 1, 0)
        if self._depth == 0 and self._session:
            session, self._session = self._session, None
            try:
                if session.in_transaction:
                    if exc_type is None:
                        session.commit_transaction()
                    else:
                        session.abort_transaction()
            finally:
                session.end_session()

    def _get_collection(self, name: str, write: bool = False) -> Collection:
        rc = ReadConcern('local')
        if write:
            return self.db.get_collection(name, read_concern=rc, write_concern=WriteConcern('majority'))
        return self.db.get_collection(name, read_concern=rc)

    def run_transaction(self, operations_list: List[Operation]) -> None:
        """
        Execute a list of staged operations inside the transaction of the
        current context. They are committed when the outermost context exits.

        Raises:
            RuntimeError: If the session is not started before calling this method.
        """
        if not self._session:
            raise RuntimeError("Session not started")
        for op in operations_list:
            op()

    def lock_entity(self, table: str, entity_id: str) -> None:
        """
        Write a lock counter on the entity. Two transactions that lock the same
        entity conflict, and the later one fails with a write conflict instead
        of committing over the earlier one's reads.
        """
        if not self._session:
            raise RuntimeError("Session not started")
        try:
            coll = self._get_collection(table, write=True)
            coll.update_one({'entity_id': entity_id}, {'$inc': {'_lock': 1}}, session=self._session)
        except errors.PyMongoError as e:
            raise RuntimeError(f"lock_entity failed: {e}") from e

    def get_one(
        self,
        table: str,
        conditions: Dict[str, Any],
        sort: Optional[List[Tuple[str, int]]] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            coll = self._get_collection(table)
            kwargs: Dict[str, Any] = {'session': self._session}
            if sort is not None:
                kwargs['sort'] = sort
            return coll.find_one(conditions, **kwargs)
        except errors.PyMongoError as e:
            raise RuntimeError(f"get_one failed: {e}") from e

    def get_many(
        self,
        table: str,
        conditions: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        try:
            coll = self._get_collection(table)
            cursor = coll.find(conditions or {}, session=self._session)
            if sort:
                cursor = cursor.sort(sort)
            if offset is not None and offset > 0:
                cursor = cursor.skip(offset)
            if limit is not None and limit > 0:
                cursor = cursor.limit(limit)
            return list(cursor)
        except errors.PyMongoError as e:
            raise RuntimeError(f"get_many failed: {e}") from e

    def get_count(
        self,
        table: str,
        conditions: Dict[str, Any]
    ) -> int:
        try:
            coll = self._get_collection(table)
            return coll.count_documents(conditions, session=self._session)
        except errors.PyMongoError as e:
            raise RuntimeError(f"get_count failed: {e}") from e

    def get_move_entity_to_audit_table_query(self, table: str, entity_id: str) -> Operation:
        """
        Returns an operation copying the current version of an entity into `{table}_audit`.
        Nothing is copied for an entity that has not been stored yet.
        """
        def move():
            coll = self._get_collection(table, write=True)
            current = coll.find_one({'entity_id': entity_id}, session=self._session)
            if current:
                current.pop('_id', None)
                audit = self._get_collection(f"{table}_audit", write=True)
                audit.insert_one(current, session=self._session)
        return move

    def get_save_query(self, table: str, data: Dict[str, Any]) -> Operation:
        if 'entity_id' not in data:
            raise RuntimeError("save failed: 'entity_id' is required in data")
        document = {k: v for k, v in data.items() if k != '_id'}

        def save():
            coll = self._get_collection(table, write=True)
            coll.replace_one({'entity_id': document['entity_id']}, document,
                             upsert=True, session=self._session)
        return save

    def get_insert_query(self, table: str, data: Dict[str, Any]) -> Operation:
        document = {k: v for k, v in data.items() if k != '_id'}

        def insert():
            coll = self._get_collection(table, write=True)
            coll.insert_one(dict(document), session=self._session)
        return insert

    def create_index(
        self,
        table: str,
        columns: List[Union[str, Tuple[str, int]]],
        index_name: str,
        unique: bool = False,
    ) -> str:
        """
        Create a MongoDB index on `table`.

        Raises:
            RuntimeError: If the operation fails due to a PyMongoError.
        """
        try:
            coll = self._get_collection(table, write=True)
            return coll.create_index(columns, name=index_name, unique=unique)
        except errors.PyMongoError as e:
            raise RuntimeError(f"create_index failed: {e}") from e
