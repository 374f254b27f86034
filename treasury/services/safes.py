"""
Linkage of the multisig account an organization pays from.
"""
import logging
from typing import Dict, Optional

from treasury.addresses import is_valid_address, normalize_address
from treasury.errors import AlreadyExists, InvalidAddress, NotFound
from treasury.models import Safe
from treasury.repositories import SafeRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class SafeService(BaseService):
    """One linked Safe per organization."""

    def __init__(self, adapter, access_gate, audit, clock=None):
        super().__init__(adapter, clock)
        self.access_gate = access_gate
        self.audit = audit
        self.safes = SafeRepository(adapter)

    def link(self, organization_id: str, handle: str, safe_address: str, chain_id: int) -> Dict[str, str]:
        if not is_valid_address(safe_address):
            raise InvalidAddress(f"Invalid Safe address: {safe_address}")
        with self.adapter:
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'safe.link')
            if self.safes.find_by_organization(organization_id) is not None:
                raise AlreadyExists("This organization already has a linked Safe")
            now = self.now()
            safe = Safe(
                organization_id=organization_id,
                chain_id=chain_id,
                safe_address=normalize_address(safe_address),
                created_at=now,
            )
            operations = self.safes.get_save_queries(safe, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'safe.linked', 'safe', safe.entity_id,
                metadata={'safeAddress': safe.safe_address, 'chainId': chain_id}, timestamp=now,
            ))
            self.commit(operations)

        logger.info("Linked Safe %s on chain %s to organization %s", safe.safe_address, chain_id, organization_id)
        return {"safe_id": safe.entity_id}

    def get_for_org(self, organization_id: str, handle: str) -> Optional[Safe]:
        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'safe.view')
            return self.safes.find_by_organization(organization_id)

    def unlink(self, safe_id: str, handle: str) -> Dict[str, bool]:
        with self.adapter:
            safe = self.safes.get_by_id(safe_id)
            if safe is None:
                raise NotFound("Safe not found")
            identity, _ = self.access_gate.authorize_operation(safe.organization_id, handle, 'safe.unlink')
            safe.active = False
            operations = self.safes.get_save_queries(safe, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                safe.organization_id, identity.entity_id, 'safe.unlinked', 'safe', safe.entity_id,
                metadata={'safeAddress': safe.safe_address},
            ))
            self.commit(operations)

        logger.info("Unlinked Safe %s from organization %s", safe.safe_address, safe.organization_id)
        return {"success": True}
