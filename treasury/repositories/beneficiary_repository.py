from typing import List, Optional

from treasury.models import Beneficiary
from .base_repository import BaseRepository


class BeneficiaryRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, Beneficiary, user_id)

    def find_by_organization(self, organization_id: str, active_only: bool = False) -> List[Beneficiary]:
        conditions = {'organization_id': organization_id}
        if active_only:
            conditions['is_active'] = True
        return self.get_many(conditions, sort=[('created_at', 1)])

    def count_for_organization(self, organization_id: str) -> int:
        """Counts inactive beneficiaries too."""
        return self.get_count({'organization_id': organization_id})

    def find_by_address(self, organization_id: str, address: str) -> Optional[Beneficiary]:
        return self.get_one({'organization_id': organization_id, 'address': address})

    def get_many_by_ids(self, beneficiary_ids: List[str]) -> List[Beneficiary]:
        if not beneficiary_ids:
            return []
        return self.get_many({'entity_id': {'$in': list(beneficiary_ids)}})
