"""
Screening result model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .versioned_model import VersionedModel, default_datetime
from .enums import ScreeningStatus

FLAGGED_STATUSES = frozenset({ScreeningStatus.POTENTIAL_MATCH, ScreeningStatus.CONFIRMED_MATCH})
REVIEWED_STATUSES = frozenset({ScreeningStatus.CONFIRMED_MATCH, ScreeningStatus.FALSE_POSITIVE})


@dataclass
class ScreeningResult(VersionedModel):
    """Sanctions screening verdict for one beneficiary, produced outside the core."""

    organization_id: Optional[str] = None
    beneficiary_id: Optional[str] = None
    status: ScreeningStatus = ScreeningStatus.CLEAR
    matches: List[Dict[str, Any]] = field(default_factory=list)
    screened_at: datetime = field(default_factory=default_datetime)
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_flagged(self) -> bool:
        return self.status in FLAGGED_STATUSES
