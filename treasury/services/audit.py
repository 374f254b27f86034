"""
Append-only audit trail.
"""
import itertools
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from treasury.data.base import Operation
from treasury.models import AuditLogEntry
from treasury.repositories import AuditLogRepository, IdentityRepository
from .base import BaseService

logger = logging.getLogger(__name__)

_sequence = itertools.count(1)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuditRecorder(BaseService):
    """Stages audit entries into the caller's transaction and lists them."""

    def __init__(self, adapter, access_gate, clock=None):
        super().__init__(adapter, clock)
        self.access_gate = access_gate
        self.entries = AuditLogRepository(adapter)
        self.identities = IdentityRepository(adapter)

    def entry(
        self,
        organization_id: str,
        actor_id: str,
        action: str,
        object_type: str,
        object_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None
    ) -> Operation:
        """Stage one audit entry. It is written only when the returned operation runs."""
        entry = AuditLogEntry(
            organization_id=organization_id,
            actor_id=actor_id,
            action=action,
            object_type=object_type,
            object_id=object_id,
            metadata=metadata,
            timestamp=timestamp or self.now(),
            sequence=next(_sequence),
        )
        return self.entries.get_insert_query(entry)

    def list(
        self,
        organization_id: str,
        handle: str,
        limit: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        actor_id: Optional[str] = None,
        actions: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Audit entries of an organization, newest first. `end` includes the whole
        day it falls on. Each entry carries the handle of its actor.
        """
        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'audit.view')
            entries = self.entries.find_by_organization(
                organization_id,
                start=_as_utc(start) if start else None,
                end=_as_utc(end) + timedelta(days=1) if end else None,
                actor_id=actor_id,
                actions=actions,
                limit=limit,
            )
            actor_handles = {}
            for entry in entries:
                if entry.actor_id not in actor_handles:
                    actor = self.identities.get_by_id(entry.actor_id)
                    actor_handles[entry.actor_id] = actor.handle if actor else None

        result = []
        for entry in entries:
            item = entry.as_dict()
            item['actor_handle'] = actor_handles.get(entry.actor_id)
            result.append(item)
        return result
