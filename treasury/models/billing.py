"""
Billing record model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .versioned_model import VersionedModel, default_datetime
from .enums import BillingStatus, Plan


@dataclass
class BillingRecord(VersionedModel):
    """Subscription state of one organization."""

    organization_id: Optional[str] = None
    plan: Plan = Plan.TRIAL
    status: BillingStatus = BillingStatus.TRIAL
    trial_ends_at: Optional[datetime] = None
    paid_through_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=default_datetime)
    updated_at: datetime = field(default_factory=default_datetime)

    @property
    def expires_at(self) -> Optional[datetime]:
        """The expiry marker that applies to the current status, if any."""
        if self.status == BillingStatus.TRIAL:
            return self.trial_ends_at
        if self.status == BillingStatus.ACTIVE:
            return self.paid_through_at
        return None
