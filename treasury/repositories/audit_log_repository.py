from datetime import datetime
from typing import List, Optional

from treasury.models import AuditLogEntry
from .base_repository import BaseRepository


class AuditLogRepository(BaseRepository):
    """Audit entries are insert-only; the repository exposes no update or delete."""

    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, AuditLogEntry, user_id)

    def save(self, instance, changed_by_id=None):
        raise NotImplementedError("Audit log entries are append-only")

    def delete(self, instance, changed_by_id=None):
        raise NotImplementedError("Audit log entries are append-only")

    def find_by_organization(
        self,
        organization_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        actor_id: Optional[str] = None,
        actions: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> List[AuditLogEntry]:
        """
        Newest first. Of entries sharing a timestamp, the last staged comes first.
        `start` and `end` are both inclusive.
        """
        conditions = {'organization_id': organization_id}
        if actor_id:
            conditions['actor_id'] = actor_id
        if actions:
            conditions['action'] = {'$in': list(actions)}
        entries = self.get_many(conditions, sort=[('timestamp', -1), ('sequence', -1)])
        if start is not None:
            entries = [e for e in entries if e.timestamp >= start]
        if end is not None:
            entries = [e for e in entries if e.timestamp <= end]
        if limit:
            entries = entries[:limit]
        return entries
