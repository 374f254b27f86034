from typing import Optional

from treasury.models import Identity
from .base_repository import BaseRepository


class IdentityRepository(BaseRepository):
    def __init__(self, adapter, user_id=None):
        super().__init__(adapter, Identity, user_id)

    def find_by_handle(self, handle: str) -> Optional[Identity]:
        """handle must already be normalized"""
        return self.get_one({'handle': handle})
