"""
Plumbing shared by the treasury services.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from treasury.data.base import DbAdapter, Operation
from treasury.models.versioned_model import default_datetime

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class BaseService:
    """
    A service runs each public operation inside one adapter context: every
    read and validation happens first, and the writes are collected as staged
    operations and handed to `commit` together, so a failure anywhere leaves
    the store unchanged.

    Operations that check an organization-wide count before writing lock the
    organization first, so two of them never both pass the same check.
    """

    def __init__(self, adapter: DbAdapter, clock: Optional[Clock] = None):
        self.adapter = adapter
        self.clock = clock or default_datetime

    def now(self) -> datetime:
        return self.clock()

    def commit(self, operations: List[Operation]) -> None:
        if not operations:
            return
        self.adapter.run_transaction(operations)

    def lock_organization(self, organization_id: str) -> None:
        self.adapter.lock_entity('organization', organization_id)
