from typing import List, Optional

from treasury.models import Membership, MembershipStatus, Role
from .base_repository import BaseRepository


class MembershipRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, Membership, user_id)

    def find_membership(self, organization_id: str, identity_id: str) -> Optional[Membership]:
        """The single membership row of an identity in an organization, whatever its status."""
        return self.get_one({'organization_id': organization_id, 'identity_id': identity_id})

    def find_organizations_by_member(self, identity_id: str) -> List[Membership]:
        """Active memberships of an identity across all organizations."""
        return self.get_many({'identity_id': identity_id, 'status': MembershipStatus.ACTIVE.value})

    def find_by_organization(self, organization_id: str) -> List[Membership]:
        return self.get_many({'organization_id': organization_id}, sort=[('created_at', 1)])

    def count_active(self, organization_id: str) -> int:
        return self.get_count({'organization_id': organization_id, 'status': MembershipStatus.ACTIVE.value})

    def count_active_admins(self, organization_id: str) -> int:
        return self.get_count({
            'organization_id': organization_id,
            'role': Role.ADMIN.value,
            'status': MembershipStatus.ACTIVE.value,
        })
