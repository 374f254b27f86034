"""
Membership model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .versioned_model import VersionedModel, default_datetime
from .enums import MembershipStatus, Role


@dataclass
class Membership(VersionedModel):
    """The (organization, identity, role) relation. One per organization and identity."""

    organization_id: Optional[str] = None
    identity_id: Optional[str] = None
    role: Role = Role.VIEWER
    status: MembershipStatus = MembershipStatus.ACTIVE
    created_at: datetime = field(default_factory=default_datetime)

    @property
    def is_active_admin(self) -> bool:
        return self.role == Role.ADMIN and self.status == MembershipStatus.ACTIVE
