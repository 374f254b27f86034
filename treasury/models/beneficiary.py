"""
Beneficiary model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .versioned_model import VersionedModel, default_datetime
from .enums import BeneficiaryType
from ..addresses import normalize_address


@dataclass
class Beneficiary(VersionedModel):
    """A named payment recipient owned by one organization.

    Beneficiaries are never deleted. `is_active` is the business flag used to
    retire a recipient; the inherited `active` flag stays True.
    """

    organization_id: Optional[str] = None
    type: BeneficiaryType = BeneficiaryType.INDIVIDUAL
    name: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=default_datetime)
    updated_at: datetime = field(default_factory=default_datetime)

    def validate_address(self):
        if not self.address:
            return "Beneficiary address is required"
        if self.address != normalize_address(self.address):
            return f"Beneficiary address '{self.address}' is not normalized"
        return None

    def validate_name(self):
        if not (self.name or "").strip():
            return "Beneficiary name is required"
        return None
