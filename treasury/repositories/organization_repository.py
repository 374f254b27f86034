from typing import List

from treasury.models import Organization
from .base_repository import BaseRepository


class OrganizationRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, Organization, user_id)

    def get_many_by_ids(self, organization_ids: List[str]) -> List[Organization]:
        if not organization_ids:
            return []
        return self.get_many({'entity_id': {'$in': list(organization_ids)}})
