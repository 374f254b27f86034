"""
Audit log entry model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .non_versioned_model import NonVersionedModel
from .versioned_model import default_datetime


@dataclass
class AuditLogEntry(NonVersionedModel):
    """An immutable record of one state-changing action."""

    organization_id: Optional[str] = None
    actor_id: Optional[str] = None
    action: Optional[str] = None
    object_type: Optional[str] = None
    object_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=default_datetime)
    # Staging order within the process; breaks ties between equal timestamps
    sequence: int = 0

    def validate_action(self):
        if not self.action or "." not in self.action:
            return f"Audit action '{self.action}' must be '<object>.<verb>'"
        return None
