"""
base repository for treasury
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from treasury.data.base import DbAdapter, Operation
from treasury.models.non_versioned_model import NonVersionedModel
from treasury.models.versioned_model import VersionedModel

logger = logging.getLogger(__name__)

Model = Union[VersionedModel, NonVersionedModel]


class BaseRepository:
    """
    BaseRepository class

    Reads go straight to the adapter. Writes are exposed two ways: as staged
    operations (`get_save_queries`, `get_insert_query`) that a service commits
    together with other writes, and as self-committing `save`/`insert` calls.
    """

    def __init__(
        self,
        adapter: DbAdapter,
        model: Type[Model],
        user_id: Optional[str] = None
    ):
        self.adapter = adapter
        self.model = model
        self.table_name = model.__name__.lower()
        self.user_id = user_id
        # Move the previous version of a record into {table}_audit on every update
        self.use_audit_table = True

    def _execute_within_context(
        self,
        func,
        *args,
        **kwargs
    ):
        """Utility method to execute adapter methods within the context manager."""
        with self.adapter:
            return func(*args, **kwargs)

    def _is_versioned_model(self) -> bool:
        return issubclass(self.model, VersionedModel)

    def _with_default_conditions(self, conditions: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        db_conditions = dict(conditions or {})
        if self._is_versioned_model() and 'active' not in db_conditions:
            db_conditions['active'] = True
        return db_conditions

    def _from_db(self, data: Optional[Dict[str, Any]]) -> Optional[Model]:
        if not data:
            return None
        return self.model.from_dict(data)

    def get_one(
        self,
        conditions: Dict[str, Any],
        sort: List[Tuple[str, int]] = None
    ) -> Optional[Model]:
        """
        Fetches a single record based on given conditions.

        :param conditions: filter conditions
        :param sort: sort order
        :return: a model instance if found, None otherwise
        """
        data = self._execute_within_context(
            self.adapter.get_one,
            self.table_name,
            self._with_default_conditions(conditions),
            sort=sort
        )
        return self._from_db(data)

    def get_by_id(self, entity_id: str) -> Optional[Model]:
        if not entity_id:
            return None
        return self.get_one({'entity_id': entity_id})

    def get_many(
        self,
        conditions: Dict[str, Any] = None,
        sort: List[Tuple[str, int]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None
    ) -> List[Model]:
        """
        Fetches multiple records based on given conditions.

        :param conditions: filter conditions
        :param sort: sort order
        :param limit: maximum number of records to return
        :param offset: number of records to skip before returning results
        :return: list of model instances
        """
        records = self._execute_within_context(
            self.adapter.get_many,
            self.table_name,
            self._with_default_conditions(conditions),
            sort,
            limit,
            offset
        )
        return [self.model.from_dict(record) for record in records]

    def get_count(self, conditions: Dict[str, Any] = None) -> int:
        return self._execute_within_context(
            self.adapter.get_count,
            self.table_name,
            self._with_default_conditions(conditions)
        )

    def _process_data_before_save(
        self,
        instance: Model,
        changed_by_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Convert a model instance to a data dictionary for the adapter."""
        if isinstance(instance, VersionedModel):
            instance.prepare_for_save(changed_by_id=changed_by_id or self.user_id)
        else:
            instance.prepare_for_save()
        return instance.as_dict()

    def get_save_queries(
        self,
        instance: VersionedModel,
        changed_by_id: Optional[str] = None
    ) -> List[Operation]:
        """
        Stage the save of a versioned instance. The instance is prepared (new
        version, validated) immediately; nothing is written until the returned
        operations run.
        """
        data = self._process_data_before_save(instance, changed_by_id)
        operations = []
        if self.use_audit_table and not instance.is_first_version:
            operations.append(self.adapter.get_move_entity_to_audit_table_query(
                self.table_name, instance.entity_id))
        operations.append(self.adapter.get_save_query(self.table_name, data))
        return operations

    def get_insert_query(self, instance: NonVersionedModel) -> Operation:
        """Stage the insert of a write-once record."""
        data = self._process_data_before_save(instance)
        return self.adapter.get_insert_query(self.table_name, data)

    def save(
        self,
        instance: VersionedModel,
        changed_by_id: Optional[str] = None
    ) -> VersionedModel:
        """
        Saves a versioned instance in its own transaction.

        :param instance: The instance to save.
        :param changed_by_id: identity recorded as the author of this version.
        :return: The saved instance.
        """
        logger.info(f"Saving entity_id={instance.entity_id} in {self.table_name}")
        with self.adapter:
            self.adapter.run_transaction(self.get_save_queries(instance, changed_by_id))
        return instance

    def delete(
        self,
        instance: VersionedModel,
        changed_by_id: Optional[str] = None
    ) -> VersionedModel:
        """
        Logically deletes an instance by setting its active flag to False.

        :return: The deleted instance, which is now in a logically deleted state.
        """
        instance.active = False
        return self.save(instance, changed_by_id)
