"""
Organization model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .versioned_model import VersionedModel, default_datetime
from .enums import FeeMode, ScreeningEnforcement


@dataclass
class Organization(VersionedModel):
    """An organization model. The tenant boundary for every other record."""

    name: Optional[str] = None
    created_by: Optional[str] = None
    screening_enforcement: ScreeningEnforcement = ScreeningEnforcement.OFF
    default_fee_token: Optional[str] = None
    default_fee_mode: Optional[FeeMode] = None
    created_at: datetime = field(default_factory=default_datetime)
    # members (with accompanied roles) are maintained through `Membership`

    def validate_name(self):
        if not (self.name or "").strip():
            return "Organization name is required"
        return None
