"""
Boundary to the external sanctions screener.

The core never matches names itself. It stores the verdicts it is handed,
lets admins review them, and consults them when a disbursement moves to a
status that commits funds. Verdicts are read from the store on every check.
"""
import logging
from typing import Any, Dict, List, Optional

from treasury.errors import ComplianceBlock, NotFound, ValidationError
from treasury.models import (
    BatchDisbursement,
    Disbursement,
    ScreeningEnforcement,
    ScreeningResult,
    ScreeningStatus,
    SingleDisbursement,
)
from treasury.models.screening_result import REVIEWED_STATUSES
from treasury.repositories import (
    BeneficiaryRepository,
    DisbursementRecipientRepository,
    DisbursementRepository,
    OrganizationRepository,
    ScreeningRepository,
)
from .base import BaseService

logger = logging.getLogger(__name__)


def compliance_block_message(beneficiary_name: str) -> str:
    return (f'Disbursement blocked: beneficiary "{beneficiary_name}" has an unresolved SDN screening match. '
            f'An admin must review the screening result before proceeding.')


class ScreeningService(BaseService):

    def __init__(self, adapter, access_gate, audit, clock=None):
        super().__init__(adapter, clock)
        self.access_gate = access_gate
        self.audit = audit
        self.results = ScreeningRepository(adapter)
        self.organizations = OrganizationRepository(adapter)
        self.beneficiaries = BeneficiaryRepository(adapter)
        self.disbursements = DisbursementRepository(adapter)
        self.recipients = DisbursementRecipientRepository(adapter)

    def record_result(
        self,
        organization_id: str,
        beneficiary_id: str,
        status,
        matches: Optional[List[Dict[str, Any]]] = None
    ) -> str:
        """
        Store the screener's verdict for a beneficiary. A verdict set by an
        admin review (confirmed_match or false_positive) is kept as is.
        """
        try:
            status = ScreeningStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown screening status: {status}") from e
        with self.adapter:
            beneficiary = self.beneficiaries.get_by_id(beneficiary_id)
            if beneficiary is None or beneficiary.organization_id != organization_id:
                raise NotFound("Beneficiary not found")
            result = self.results.find_by_beneficiary(beneficiary_id)
            if result is not None and result.status in REVIEWED_STATUSES:
                return result.entity_id
            if result is None:
                result = ScreeningResult(organization_id=organization_id, beneficiary_id=beneficiary_id)
            result.status = status
            result.matches = list(matches or [])
            result.screened_at = self.now()
            self.commit(self.results.get_save_queries(result))

        logger.info("Screening verdict %s recorded for beneficiary %s", status.value, beneficiary_id)
        return result.entity_id

    def get_for_beneficiary(self, beneficiary_id: str, handle: str) -> Optional[ScreeningResult]:
        with self.adapter:
            beneficiary = self.beneficiaries.get_by_id(beneficiary_id)
            if beneficiary is None:
                raise NotFound("Beneficiary not found")
            self.access_gate.authorize_operation(beneficiary.organization_id, handle, 'screening.view')
            return self.results.find_by_beneficiary(beneficiary_id)

    def list(self, organization_id: str, handle: str, status: Optional[str] = None) -> List[ScreeningResult]:
        """
        Screening results of an organization, most recently screened first.
        `status` narrows them to one verdict; "pending" means no filter.
        """
        if status == 'pending':
            status = None
        if status is not None:
            try:
                status = ScreeningStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown screening status: {status}") from e

        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'screening.view')
            return self.results.find_by_organization(organization_id, status.value if status else None)

    def review(self, result_id: str, handle: str, status) -> Dict[str, bool]:
        """Admin override of a verdict to confirmed_match or false_positive."""
        try:
            status = ScreeningStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unknown screening status: {status}") from e
        if status not in REVIEWED_STATUSES:
            raise ValidationError("A review must set confirmed_match or false_positive")

        with self.adapter:
            result = self.results.get_by_id(result_id)
            if result is None:
                raise NotFound("Screening result not found")
            identity, _ = self.access_gate.authorize_operation(result.organization_id, handle, 'screening.review')
            now = self.now()
            previous_status = result.status
            result.status = status
            result.reviewed_by = identity.entity_id
            result.reviewed_at = now
            result.review_history = list(result.review_history) + [{
                'reviewer_id': identity.entity_id,
                'status': status.value,
                'reviewed_at': now,
            }]
            operations = self.results.get_save_queries(result, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                result.organization_id, identity.entity_id, 'screening.reviewed', 'screeningResult', result.entity_id,
                metadata={
                    'beneficiaryId': result.beneficiary_id,
                    'previousStatus': previous_status.value,
                    'newStatus': status.value,
                },
                timestamp=now,
            ))
            self.commit(operations)

        logger.info("Screening result %s reviewed as %s", result_id, status.value)
        return {"success": True}

    def get_enforcement(self, organization_id: str, handle: str) -> ScreeningEnforcement:
        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'screening.view')
            organization = self.organizations.get_by_id(organization_id)
        if organization is None:
            raise NotFound("Organization not found")
        return organization.screening_enforcement

    def update_enforcement(self, organization_id: str, handle: str, mode) -> Dict[str, bool]:
        try:
            mode = ScreeningEnforcement(mode)
        except ValueError as e:
            raise ValidationError(f"Unknown screening enforcement: {mode}") from e

        with self.adapter:
            identity, _ = self.access_gate.authorize_operation(
                organization_id, handle, 'screening.update_enforcement')
            organization = self.organizations.get_by_id(organization_id)
            if organization is None:
                raise NotFound("Organization not found")
            organization.screening_enforcement = mode
            operations = self.organizations.get_save_queries(organization, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'org.screeningEnforcementUpdated', 'org', organization_id,
                metadata={'enforcement': mode.value},
            ))
            self.commit(operations)

        logger.info("Screening enforcement of organization %s set to %s", organization_id, mode.value)
        return {"success": True}

    def beneficiary_ids_of(self, disbursement: Disbursement) -> List[str]:
        """Beneficiaries paid by a disbursement, in recipient order."""
        if isinstance(disbursement, BatchDisbursement):
            return [r.beneficiary_id for r in self.recipients.find_by_disbursement(disbursement.entity_id)]
        if isinstance(disbursement, SingleDisbursement) and disbursement.beneficiary_id:
            return [disbursement.beneficiary_id]
        return []

    def flagged_results(self, disbursement: Disbursement) -> List[ScreeningResult]:
        beneficiary_ids = self.beneficiary_ids_of(disbursement)
        results = self.results.find_by_beneficiaries(beneficiary_ids)
        return [results[b] for b in beneficiary_ids if b in results and results[b].is_flagged]

    def enforce(self, disbursement: Disbursement) -> None:
        """
        Raise ComplianceBlock when the organization blocks on screening and a
        beneficiary of the disbursement has an unresolved match.
        """
        organization = self.organizations.get_by_id(disbursement.organization_id)
        if organization is None or organization.screening_enforcement != ScreeningEnforcement.BLOCK:
            return
        flagged = self.flagged_results(disbursement)
        if not flagged:
            return
        beneficiary = self.beneficiaries.get_by_id(flagged[0].beneficiary_id)
        name = beneficiary.name if beneficiary else "Unknown"
        logger.warning("Blocked disbursement %s: beneficiary %s is flagged as %s",
                       disbursement.entity_id, flagged[0].beneficiary_id, flagged[0].status.value)
        raise ComplianceBlock(compliance_block_message(name), beneficiary_id=flagged[0].beneficiary_id)

    def check_disbursement(self, disbursement_id: str, handle: str) -> Dict[str, Any]:
        """Screening summary of a disbursement: whether it is clear, the flagged beneficiaries and the mode."""
        with self.adapter:
            disbursement = self.disbursements.get_by_id(disbursement_id)
            if disbursement is None:
                raise NotFound("Disbursement not found")
            self.access_gate.authorize_operation(disbursement.organization_id, handle, 'screening.view')
            organization = self.organizations.get_by_id(disbursement.organization_id)
            flagged = self.flagged_results(disbursement)
            names = {b.entity_id: b.name for b in self.beneficiaries.get_many_by_ids(
                [result.beneficiary_id for result in flagged])}

        return {
            'clear': not flagged,
            'flagged': [
                {
                    'beneficiary_id': result.beneficiary_id,
                    'beneficiary_name': names.get(result.beneficiary_id, "Unknown"),
                    'status': result.status.value,
                }
                for result in flagged
            ],
            'enforcement': organization.screening_enforcement.value if organization else ScreeningEnforcement.OFF.value,
        }
