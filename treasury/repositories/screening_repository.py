from typing import Dict, List, Optional

from treasury.models import ScreeningResult
from .base_repository import BaseRepository


class ScreeningRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, ScreeningResult, user_id)

    def find_by_beneficiary(self, beneficiary_id: str) -> Optional[ScreeningResult]:
        return self.get_one({'beneficiary_id': beneficiary_id})

    def find_by_beneficiaries(self, beneficiary_ids: List[str]) -> Dict[str, ScreeningResult]:
        if not beneficiary_ids:
            return {}
        results = self.get_many({'beneficiary_id': {'$in': list(beneficiary_ids)}})
        return {result.beneficiary_id: result for result in results}

    def find_by_organization(self, organization_id: str, status: Optional[str] = None) -> List[ScreeningResult]:
        conditions = {'organization_id': organization_id}
        if status is not None:
            conditions['status'] = status
        return self.get_many(conditions, sort=[('screened_at', -1)])
