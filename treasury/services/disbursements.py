"""
Disbursement lifecycle: creation of single and batch payment intents,
status transitions gated by screening, and filtered listing.

Any status may be written over any other status. Every transition is
recorded as a `disbursement.<status>` audit entry and as a new version of
the disbursement, which together give its full history.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from treasury.errors import (
    BeneficiaryInactive,
    DuplicateBeneficiary,
    EmptyBatch,
    InvalidAmount,
    InvalidBeneficiary,
    NoSafeLinked,
    NotFound,
    ValidationError,
)
from treasury.models import (
    BatchDisbursement,
    Disbursement,
    DisbursementRecipient,
    DisbursementStatus,
    DisbursementType,
    SingleDisbursement,
    exact_sum,
    parse_amount,
)
from treasury.repositories import (
    BeneficiaryRepository,
    DisbursementRecipientRepository,
    DisbursementRepository,
    SafeRepository,
)
from .base import BaseService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
SORT_KEYS = ('created_at', 'amount', 'status')
SORT_ORDERS = ('asc', 'desc')
SCREENED_STATUSES = frozenset({DisbursementStatus.PENDING, DisbursementStatus.PROPOSED})


def format_amount(amount: Decimal) -> str:
    """Plain decimal notation, never scientific."""
    return format(amount, 'f')


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _numeric_amount(amount: str) -> Decimal:
    return parse_amount(amount) or Decimal(0)


def batch_display_name(names: List[str], search: Optional[str] = None) -> str:
    """
    "<name> +N" for a batch of N + 1 recipients, using the first recipient
    whose name matches `search` when there is one. "Batch" when empty.
    """
    if not names:
        return "Batch"
    shown = names[0]
    needle = (search or "").strip().lower()
    if needle:
        shown = next((name for name in names if needle in name.lower()), shown)
    others = len(names) - 1
    return f"{shown} +{others}" if others > 0 else shown


class DisbursementEngine(BaseService):

    def __init__(self, adapter, access_gate, audit, screening, clock=None):
        super().__init__(adapter, clock)
        self.access_gate = access_gate
        self.audit = audit
        self.screening = screening
        self.disbursements = DisbursementRepository(adapter)
        self.recipients = DisbursementRecipientRepository(adapter)
        self.beneficiaries = BeneficiaryRepository(adapter)
        self.safes = SafeRepository(adapter)

    def _require_safe(self, organization_id: str, chain_id: Optional[int]):
        safe = self.safes.find_by_organization(organization_id)
        if safe is None or (chain_id is not None and safe.chain_id != chain_id):
            raise NoSafeLinked("No Safe linked for this chain")
        return safe

    def create_single(
        self,
        organization_id: str,
        handle: str,
        beneficiary_id: str,
        token: str,
        amount: str,
        memo: Optional[str] = None,
        chain_id: Optional[int] = None
    ) -> Dict[str, str]:
        with self.adapter:
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'disbursement.create')
            safe = self._require_safe(organization_id, chain_id)

            beneficiary = self.beneficiaries.get_by_id(beneficiary_id)
            if beneficiary is None or beneficiary.organization_id != organization_id:
                raise InvalidBeneficiary("Invalid beneficiary")
            if not beneficiary.is_active:
                raise BeneficiaryInactive("Beneficiary is not active")
            if parse_amount(amount) is None:
                raise InvalidAmount(f"Invalid amount: {amount}")

            now = self.now()
            disbursement = SingleDisbursement(
                organization_id=organization_id,
                safe_id=safe.entity_id,
                chain_id=safe.chain_id,
                beneficiary_id=beneficiary.entity_id,
                token=token,
                amount=str(amount).strip(),
                memo=memo,
                status=DisbursementStatus.DRAFT,
                created_by=identity.entity_id,
                created_at=now,
                updated_at=now,
            )
            operations = self.disbursements.get_save_queries(disbursement, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'disbursement.created', 'disbursement', disbursement.entity_id,
                metadata={'beneficiaryId': beneficiary.entity_id, 'token': token, 'amount': disbursement.amount},
                timestamp=now,
            ))
            self.commit(operations)

        logger.info("Created disbursement %s of %s %s", disbursement.entity_id, disbursement.amount, token)
        return {"disbursement_id": disbursement.entity_id}

    def create_batch(
        self,
        organization_id: str,
        handle: str,
        token: str,
        recipients: List[Dict[str, str]],
        memo: Optional[str] = None,
        chain_id: Optional[int] = None
    ) -> Dict[str, str]:
        """
        Create one disbursement paying several beneficiaries. `recipients` is a
        list of `{'beneficiary_id': ..., 'amount': ...}`.
        """
        with self.adapter:
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'disbursement.create')
            if not recipients:
                raise EmptyBatch("At least one recipient is required")
            beneficiary_ids = [recipient.get('beneficiary_id') for recipient in recipients]
            if len(set(beneficiary_ids)) != len(beneficiary_ids):
                raise DuplicateBeneficiary("Duplicate beneficiaries are not allowed")
            safe = self._require_safe(organization_id, chain_id)

            found = {b.entity_id: b for b in self.beneficiaries.get_many_by_ids(beneficiary_ids)}
            amounts = []
            validated = []
            for recipient in recipients:
                beneficiary = found.get(recipient.get('beneficiary_id'))
                if beneficiary is None or beneficiary.organization_id != organization_id:
                    raise InvalidBeneficiary(f"Invalid beneficiary: {recipient.get('beneficiary_id')}")
                if not beneficiary.is_active:
                    raise BeneficiaryInactive(f"Beneficiary is not active: {beneficiary.name}")
                amount = parse_amount(recipient.get('amount'))
                if amount is None:
                    raise InvalidAmount(f"Invalid amount for beneficiary: {beneficiary.name}")
                amounts.append(amount)
                validated.append((beneficiary, str(recipient['amount']).strip()))

            now = self.now()
            disbursement = BatchDisbursement(
                organization_id=organization_id,
                safe_id=safe.entity_id,
                chain_id=safe.chain_id,
                token=token,
                total_amount=format_amount(exact_sum(amounts)),
                memo=memo,
                status=DisbursementStatus.DRAFT,
                created_by=identity.entity_id,
                created_at=now,
                updated_at=now,
            )
            operations = self.disbursements.get_save_queries(disbursement, changed_by_id=identity.entity_id)
            for beneficiary, amount in validated:
                operations.append(self.recipients.get_insert_query(DisbursementRecipient(
                    disbursement_id=disbursement.entity_id,
                    beneficiary_id=beneficiary.entity_id,
                    recipient_address=beneficiary.address,
                    amount=amount,
                    created_at=now,
                )))
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'disbursement.created', 'disbursement', disbursement.entity_id,
                metadata={
                    'type': DisbursementType.BATCH.value,
                    'token': token,
                    'totalAmount': disbursement.total_amount,
                    'recipientCount': len(validated),
                },
                timestamp=now,
            ))
            self.commit(operations)

        logger.info("Created batch disbursement %s of %s %s to %d recipients",
                    disbursement.entity_id, disbursement.total_amount, token, len(validated))
        return {"disbursement_id": disbursement.entity_id}

    def update_status(
        self,
        disbursement_id: str,
        handle: str,
        new_status,
        safe_tx_hash: Optional[str] = None,
        tx_hash: Optional[str] = None
    ) -> Dict[str, bool]:
        try:
            new_status = DisbursementStatus(new_status)
        except ValueError as e:
            raise ValidationError(f"Unknown disbursement status: {new_status}") from e

        with self.adapter:
            disbursement = self.disbursements.get_by_id(disbursement_id)
            if disbursement is None:
                raise NotFound("Disbursement not found")
            identity, _ = self.access_gate.authorize_operation(
                disbursement.organization_id, handle, 'disbursement.update_status')

            if new_status in SCREENED_STATUSES:
                self.screening.enforce(disbursement)

            now = self.now()
            previous_status = disbursement.status
            disbursement.status = new_status
            if safe_tx_hash:
                disbursement.safe_tx_hash = safe_tx_hash
            if tx_hash:
                disbursement.tx_hash = tx_hash
            disbursement.updated_at = now

            operations = self.disbursements.get_save_queries(disbursement, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                disbursement.organization_id, identity.entity_id, f"disbursement.{new_status.value}",
                'disbursement', disbursement.entity_id,
                metadata={'status': new_status.value, 'safeTxHash': safe_tx_hash, 'txHash': tx_hash},
                timestamp=now,
            ))
            self.commit(operations)

        logger.info("Disbursement %s moved from %s to %s", disbursement_id, previous_status.value, new_status.value)
        return {"success": True}

    def _beneficiary_view(self, beneficiary) -> Optional[Dict[str, str]]:
        if beneficiary is None:
            return None
        return {'name': beneficiary.name, 'address': beneficiary.address}

    def get(self, disbursement_id: str, handle: str) -> Optional[Dict[str, Any]]:
        with self.adapter:
            disbursement = self.disbursements.get_by_id(disbursement_id)
            if disbursement is None:
                return None
            self.access_gate.authorize_operation(disbursement.organization_id, handle, 'disbursement.view')
            beneficiary = None
            if isinstance(disbursement, SingleDisbursement):
                beneficiary = self.beneficiaries.get_by_id(disbursement.beneficiary_id)

        result = disbursement.as_dict()
        result['beneficiary'] = self._beneficiary_view(beneficiary)
        result['display_amount'] = disbursement.display_amount
        return result

    def get_with_recipients(self, disbursement_id: str, handle: str) -> Optional[Dict[str, Any]]:
        with self.adapter:
            result = self.get(disbursement_id, handle)
            if result is None:
                return None
            recipients = []
            if result['type'] == DisbursementType.BATCH.value:
                recipients = self.recipients.find_by_disbursement(disbursement_id)
            beneficiaries = {b.entity_id: b for b in self.beneficiaries.get_many_by_ids(
                [r.beneficiary_id for r in recipients])}

        result['recipients'] = []
        for recipient in recipients:
            item = recipient.as_dict()
            item['beneficiary'] = self._beneficiary_view(beneficiaries.get(recipient.beneficiary_id))
            result['recipients'].append(item)
        return result

    def list(
        self,
        organization_id: str,
        handle: str,
        statuses: Optional[List[str]] = None,
        token: Optional[str] = None,
        chain_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
        sort_by: str = 'created_at',
        sort_order: str = 'desc',
        cursor: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Dict[str, Any]:
        """
        Filtered, sorted, cursor-paginated disbursements of an organization.

        `date_to` includes the whole day it falls on. `search` matches the
        beneficiary name (every recipient name for a batch), the memo and the
        amount. `cursor` is the `next_cursor` of the previous page.
        """
        if sort_by not in SORT_KEYS:
            raise ValidationError(f"Cannot sort disbursements by {sort_by}")
        if sort_order not in SORT_ORDERS:
            raise ValidationError(f"Unknown sort order: {sort_order}")
        needle = (search or "").strip().lower()
        wanted = None
        if statuses:
            try:
                wanted = {DisbursementStatus(status).value for status in statuses}
            except ValueError as e:
                raise ValidationError(f"Unknown disbursement status in {statuses}") from e

        conditions = {}
        if wanted:
            conditions['status'] = {'$in': sorted(wanted)}
        if token:
            conditions['token'] = token
        if chain_id is not None:
            conditions['chain_id'] = chain_id

        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'disbursement.view')
            disbursements = self.disbursements.find_by_organization(organization_id, conditions)
            batch_ids = [d.entity_id for d in disbursements if isinstance(d, BatchDisbursement)]
            recipients = self.recipients.find_by_disbursements(batch_ids)
            beneficiary_ids = {d.beneficiary_id for d in disbursements if isinstance(d, SingleDisbursement)}
            for batch_recipients in recipients.values():
                beneficiary_ids.update(r.beneficiary_id for r in batch_recipients)
            beneficiaries = {b.entity_id: b for b in self.beneficiaries.get_many_by_ids(list(beneficiary_ids))}

        items = []
        for disbursement in disbursements:
            item = disbursement.as_dict()
            item['display_amount'] = disbursement.display_amount
            if isinstance(disbursement, BatchDisbursement):
                names = [beneficiaries[r.beneficiary_id].name
                         for r in recipients.get(disbursement.entity_id, [])
                         if r.beneficiary_id in beneficiaries]
                item['recipient_names'] = names
                item['beneficiary'] = {'name': batch_display_name(names, needle), 'address': ''}
            else:
                item['recipient_names'] = []
                item['beneficiary'] = self._beneficiary_view(beneficiaries.get(disbursement.beneficiary_id))
            items.append(item)

        if date_from is not None:
            date_from = _as_utc(date_from)
            items = [item for item in items if item['created_at'] >= date_from]
        if date_to is not None:
            end_of_day = _as_utc(date_to) + timedelta(days=1)
            items = [item for item in items if item['created_at'] <= end_of_day]
        if needle:
            items = [item for item in items if self._matches_search(item, needle)]

        def sort_key(item):
            if sort_by == 'amount':
                return _numeric_amount(item['display_amount'])
            return item[sort_by]
        items.sort(key=sort_key, reverse=sort_order == 'desc')

        total_count = len(items)
        start = 0
        if cursor:
            position = next((i for i, item in enumerate(items) if item['entity_id'] == cursor), None)
            if position is not None:
                start = position + 1
        page = items[start:start + limit]
        has_more = start + limit < total_count
        return {
            'items': page,
            'total_count': total_count,
            'has_more': has_more,
            'next_cursor': page[-1]['entity_id'] if has_more and page else None,
        }

    @staticmethod
    def _matches_search(item: Dict[str, Any], needle: str) -> bool:
        beneficiary = item.get('beneficiary') or {}
        if needle in (beneficiary.get('name') or '').lower():
            return True
        if any(needle in name.lower() for name in item['recipient_names']):
            return True
        if needle in (item.get('memo') or '').lower():
            return True
        return needle in (item['display_amount'] or '')
