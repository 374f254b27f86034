"""
Safe model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .versioned_model import VersionedModel, default_datetime


@dataclass
class Safe(VersionedModel):
    """A payment-source multisig account linked to an organization."""

    organization_id: Optional[str] = None
    chain_id: Optional[int] = None
    safe_address: Optional[str] = None
    created_at: datetime = field(default_factory=default_datetime)
