from typing import Optional

from treasury.models import Safe
from .base_repository import BaseRepository


class SafeRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, Safe, user_id)

    def find_by_organization(self, organization_id: str) -> Optional[Safe]:
        return self.get_one({'organization_id': organization_id})
