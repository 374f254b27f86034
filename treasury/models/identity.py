"""
Identity model
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .versioned_model import VersionedModel, default_datetime
from .enums import Language, Theme
from ..addresses import normalize_handle


@dataclass(repr=False)
class Identity(VersionedModel):
    """An internal user identity, keyed by a normalized account handle."""

    handle: Optional[str] = None
    email: Optional[str] = None
    preferred_language: Optional[Language] = None
    preferred_theme: Optional[Theme] = None
    created_at: datetime = field(default_factory=default_datetime)

    def validate_handle(self):
        if not self.handle:
            return "Identity handle is required"
        if self.handle != normalize_handle(self.handle):
            return f"Identity handle '{self.handle}' is not normalized"
        return None
