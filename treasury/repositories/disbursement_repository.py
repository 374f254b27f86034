from typing import Dict, List, Optional

from treasury.models import Disbursement, DisbursementRecipient
from .base_repository import BaseRepository


class DisbursementRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, Disbursement, user_id)

    def find_by_organization(self, organization_id: str, conditions: Optional[Dict] = None) -> List[Disbursement]:
        db_conditions = dict(conditions or {})
        db_conditions['organization_id'] = organization_id
        return self.get_many(db_conditions, sort=[('created_at', 1)])


class DisbursementRecipientRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, DisbursementRecipient, user_id)

    def find_by_disbursement(self, disbursement_id: str) -> List[DisbursementRecipient]:
        return self.get_many({'disbursement_id': disbursement_id}, sort=[('created_at', 1)])

    def find_by_disbursements(self, disbursement_ids: List[str]) -> Dict[str, List[DisbursementRecipient]]:
        """Recipients grouped by disbursement id, in creation order."""
        grouped = {disbursement_id: [] for disbursement_id in disbursement_ids}
        if not disbursement_ids:
            return grouped
        recipients = self.get_many({'disbursement_id': {'$in': list(disbursement_ids)}},
                                   sort=[('created_at', 1)])
        for recipient in recipients:
            grouped.setdefault(recipient.disbursement_id, []).append(recipient)
        return grouped
