"""
Beneficiary registry: the named recipients an organization pays.
"""
import logging
from typing import Any, Dict, List, Optional

from treasury.addresses import is_valid_address, normalize_address
from treasury.errors import (
    AlreadyExists,
    DuplicateInBatch,
    EmptyBatch,
    InvalidAddress,
    NotFound,
    TierLimitExceeded,
    ValidationError,
)
from treasury.models import Beneficiary, BeneficiaryType
from treasury.repositories import BeneficiaryRepository
from .base import BaseService

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('type', 'name', 'address', 'notes', 'is_active')


def beneficiary_limit_message(max_beneficiaries: int) -> str:
    return f"Your plan allows a maximum of {max_beneficiaries} beneficiaries. Please upgrade to add more."


def _beneficiary_type(value) -> BeneficiaryType:
    try:
        return BeneficiaryType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown beneficiary type: {value}") from e


class BeneficiaryRegistry(BaseService):

    def __init__(self, adapter, access_gate, limits, audit, clock=None):
        super().__init__(adapter, clock)
        self.access_gate = access_gate
        self.limits = limits
        self.audit = audit
        self.beneficiaries = BeneficiaryRepository(adapter)

    def _check_capacity(self, organization_id: str, adding: int) -> None:
        """The count includes inactive beneficiaries."""
        limits = self.limits.limits_for(organization_id)
        current = self.beneficiaries.count_for_organization(organization_id)
        if not limits.allows_beneficiaries(current + adding):
            raise TierLimitExceeded(beneficiary_limit_message(limits.max_beneficiaries))

    def build(
        self,
        organization_id: str,
        name: str,
        address: str,
        type=BeneficiaryType.INDIVIDUAL,
        notes: Optional[str] = None
    ) -> Beneficiary:
        """A new, unsaved beneficiary with a normalized address."""
        now = self.now()
        return Beneficiary(
            organization_id=organization_id,
            type=_beneficiary_type(type),
            name=name,
            address=normalize_address(address),
            notes=notes,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    def stage_create(self, beneficiary: Beneficiary, actor_id: str) -> list:
        """Insert and audit operations for a new beneficiary."""
        operations = self.beneficiaries.get_save_queries(beneficiary, changed_by_id=actor_id)
        operations.append(self.audit.entry(
            beneficiary.organization_id, actor_id, 'beneficiary.created', 'beneficiary', beneficiary.entity_id,
            metadata={'type': beneficiary.type.value, 'name': beneficiary.name, 'address': beneficiary.address},
            timestamp=beneficiary.created_at,
        ))
        return operations

    def create(
        self,
        organization_id: str,
        handle: str,
        name: str,
        address: str,
        type=BeneficiaryType.INDIVIDUAL,
        notes: Optional[str] = None
    ) -> Dict[str, str]:
        if not (name or '').strip():
            raise ValidationError("Beneficiary name is required")
        if not normalize_address(address):
            raise InvalidAddress("Beneficiary address is required")

        with self.adapter:
            self.lock_organization(organization_id)
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'beneficiary.create')
            self._check_capacity(organization_id, 1)
            beneficiary = self.build(organization_id, name, address, type=type, notes=notes)
            self.commit(self.stage_create(beneficiary, identity.entity_id))

        logger.info("Created beneficiary %s in organization %s", beneficiary.entity_id, organization_id)
        return {"beneficiary_id": beneficiary.entity_id}

    def update(self, beneficiary_id: str, handle: str, **fields) -> Dict[str, Any]:
        """
        Replace any of `type`, `name`, `address`, `notes` and `is_active`.
        Fields passed as None are left unchanged.
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update beneficiary fields: {', '.join(sorted(unknown))}")

        with self.adapter:
            beneficiary = self.beneficiaries.get_by_id(beneficiary_id)
            if beneficiary is None:
                raise NotFound("Beneficiary not found")
            identity, _ = self.access_gate.authorize_operation(
                beneficiary.organization_id, handle, 'beneficiary.update')

            applied = {}
            for name in UPDATABLE_FIELDS:
                value = fields.get(name)
                if value is None:
                    continue
                if name == 'type':
                    value = _beneficiary_type(value)
                elif name == 'name':
                    value = value.strip()
                    if not value:
                        raise ValidationError("Beneficiary name is required")
                elif name == 'address':
                    value = normalize_address(value)
                    if not value:
                        raise InvalidAddress("Beneficiary address is required")
                setattr(beneficiary, name, value)
                applied[name] = value.value if name == 'type' else value
            now = self.now()
            beneficiary.updated_at = now

            operations = self.beneficiaries.get_save_queries(beneficiary, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                beneficiary.organization_id, identity.entity_id, 'beneficiary.updated', 'beneficiary',
                beneficiary.entity_id, metadata=applied, timestamp=now,
            ))
            self.commit(operations)

        logger.info("Updated beneficiary %s: %s", beneficiary_id, ", ".join(applied) or "no fields")
        return {"success": True}

    def bulk_create(self, organization_id: str, handle: str, entries: List[Dict[str, Any]]) -> Dict[str, List[str]]:
        """
        Create many beneficiaries at once. Every entry is validated before
        anything is written; one invalid entry rejects the whole list.

        Each entry is a dict with `name`, `address` and optional `type` and `notes`.
        """
        with self.adapter:
            self.lock_organization(organization_id)
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'beneficiary.create')
            if not entries:
                raise EmptyBatch("At least one beneficiary is required")

            seen = set()
            for position, entry in enumerate(entries, start=1):
                address = entry.get('address') or ''
                if not is_valid_address(address):
                    raise InvalidAddress(f"Invalid address in row {position}: {address}")
                if not (entry.get('name') or '').strip():
                    raise ValidationError(f"Name is required in row {position}")
                normalized = normalize_address(address)
                if normalized in seen:
                    raise DuplicateInBatch(f"Duplicate address in row {position}: {normalized}")
                seen.add(normalized)

            for normalized in seen:
                if self.beneficiaries.find_by_address(organization_id, normalized) is not None:
                    raise AlreadyExists(f"A beneficiary with address {normalized} already exists")

            self._check_capacity(organization_id, len(entries))

            operations = []
            created = []
            for entry in entries:
                beneficiary = self.build(
                    organization_id,
                    entry['name'].strip(),
                    entry['address'],
                    type=entry.get('type') or BeneficiaryType.INDIVIDUAL,
                    notes=entry.get('notes'),
                )
                operations.extend(self.stage_create(beneficiary, identity.entity_id))
                created.append(beneficiary.entity_id)
            self.commit(operations)

        logger.info("Bulk created %d beneficiaries in organization %s", len(created), organization_id)
        return {"beneficiary_ids": created}

    def list(self, organization_id: str, handle: str, active_only: bool = False) -> List[Beneficiary]:
        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'beneficiary.view')
            return self.beneficiaries.find_by_organization(organization_id, active_only=active_only)

    def get(self, beneficiary_id: str, handle: str) -> Optional[Beneficiary]:
        with self.adapter:
            beneficiary = self.beneficiaries.get_by_id(beneficiary_id)
            if beneficiary is None:
                return None
            self.access_gate.authorize_operation(beneficiary.organization_id, handle, 'beneficiary.view')
            return beneficiary
