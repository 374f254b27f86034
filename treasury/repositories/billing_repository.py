from typing import Optional

from treasury.models import BillingRecord
from .base_repository import BaseRepository


class BillingRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, BillingRecord, user_id)

    def find_by_organization(self, organization_id: str) -> Optional[BillingRecord]:
        return self.get_one({'organization_id': organization_id})
