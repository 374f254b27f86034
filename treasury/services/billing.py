"""
Subscription tiers and the limits they grant.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from treasury.errors import ValidationError
from treasury.models import BillingRecord, BillingStatus, Plan
from treasury.repositories import BillingRepository
from .base import BaseService

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class TierLimits:
    """Ceilings of a plan. None means unbounded."""
    max_seats: Optional[int]
    max_beneficiaries: Optional[int]

    def allows_seats(self, count: int) -> bool:
        return self.max_seats is None or count <= self.max_seats

    def allows_beneficiaries(self, count: int) -> bool:
        return self.max_beneficiaries is None or count <= self.max_beneficiaries


EXPIRED_LIMITS = TierLimits(max_seats=0, max_beneficiaries=0)

# trial grants the limits of the team plan
PLAN_LIMITS = {
    Plan.TRIAL: TierLimits(max_seats=5, max_beneficiaries=100),
    Plan.STARTER: TierLimits(max_seats=1, max_beneficiaries=25),
    Plan.TEAM: TierLimits(max_seats=5, max_beneficiaries=100),
    Plan.PRO: TierLimits(max_seats=None, max_beneficiaries=None),
}

PLAN_PRICES = {
    Plan.TRIAL: 0,
    Plan.STARTER: 25,
    Plan.TEAM: 50,
    Plan.PRO: 99,
}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(record: BillingRecord, now: datetime) -> bool:
    """True once the expiry marker of the record's status lies in the past."""
    expires_at = _as_utc(record.expires_at)
    if record.status in (BillingStatus.TRIAL, BillingStatus.ACTIVE):
        return expires_at is not None and now > expires_at
    return False


class TierLimitEvaluator(BaseService):
    """
    Computes the limits of an organization from its stored billing record and
    the clock. Reads only.
    """

    def __init__(self, adapter, clock=None):
        super().__init__(adapter, clock)
        self.billing = BillingRepository(adapter)

    def limits_for_record(self, record: Optional[BillingRecord]) -> TierLimits:
        if record is None:
            return PLAN_LIMITS[Plan.TRIAL]
        if is_expired(record, self.now()):
            return EXPIRED_LIMITS
        return PLAN_LIMITS[record.plan]

    def limits_for(self, organization_id: str) -> TierLimits:
        return self.limits_for_record(self.billing.find_by_organization(organization_id))

    def is_active(self, organization_id: str) -> bool:
        """An organization without a billing record is not active."""
        record = self.billing.find_by_organization(organization_id)
        if record is None:
            return False
        expires_at = _as_utc(record.expires_at)
        if record.status in (BillingStatus.TRIAL, BillingStatus.ACTIVE):
            return expires_at is not None and self.now() < expires_at
        return False


class BillingService(BaseService):
    """Billing queries and subscription changes."""

    def __init__(self, adapter, access_gate, limits: TierLimitEvaluator, audit, clock=None):
        super().__init__(adapter, clock)
        self.access_gate = access_gate
        self.limits = limits
        self.audit = audit
        self.billing = limits.billing

    def get(self, organization_id: str, handle: str) -> Optional[Dict[str, Any]]:
        """
        The billing record of an organization with `days_remaining`, `is_active`
        and the effective `limits`, or None when the organization has none.
        """
        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'billing.view')
            record = self.billing.find_by_organization(organization_id)
            if record is None:
                return None
            limits = self.limits.limits_for_record(record)

        expires_at = _as_utc(record.expires_at)
        days_remaining = 0
        if expires_at is not None:
            seconds = (expires_at - self.now()).total_seconds()
            days_remaining = max(0, math.ceil(seconds / SECONDS_PER_DAY))
        result = record.as_dict()
        result['days_remaining'] = days_remaining
        result['is_active'] = days_remaining > 0
        result['limits'] = {
            'max_seats': limits.max_seats,
            'max_beneficiaries': limits.max_beneficiaries,
        }
        return result

    def subscribe(
        self,
        organization_id: str,
        handle: str,
        plan,
        tx_hash: str,
        paid_through_at: datetime
    ) -> Dict[str, Any]:
        try:
            plan = Plan(plan)
        except ValueError as e:
            raise ValidationError(f"Unknown plan: {plan}") from e
        if plan == Plan.TRIAL:
            raise ValidationError("Cannot subscribe to the trial plan")
        paid_through_at = _as_utc(paid_through_at)

        with self.adapter:
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'billing.subscribe')
            now = self.now()
            record = self.billing.find_by_organization(organization_id)
            if record is None:
                record = BillingRecord(organization_id=organization_id, created_at=now)
            previous_plan = record.plan
            record.plan = plan
            record.status = BillingStatus.ACTIVE
            record.paid_through_at = paid_through_at
            record.updated_at = now

            operations = self.billing.get_save_queries(record, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'billing.subscribed', 'billing', record.entity_id,
                metadata={
                    'previousPlan': previous_plan.value,
                    'newPlan': plan.value,
                    'txHash': tx_hash,
                    'paidThroughAt': paid_through_at.isoformat(),
                },
                timestamp=now,
            ))
            self.commit(operations)

        logger.info("Organization %s subscribed to %s until %s", organization_id, plan.value,
                    paid_through_at.isoformat())
        return {"billing_id": record.entity_id}

    @staticmethod
    def plan_limits() -> Dict[str, Dict[str, Any]]:
        return {
            plan.value: {
                'max_seats': limits.max_seats,
                'max_beneficiaries': limits.max_beneficiaries,
                'price': PLAN_PRICES[plan],
            }
            for plan, limits in PLAN_LIMITS.items()
        }
