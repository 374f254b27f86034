"""
Enumerations shared by the treasury models.
"""
from enum import Enum


class Role(str, Enum):
    """Membership roles, highest first."""
    ADMIN = "admin"
    APPROVER = "approver"
    INITIATOR = "initiator"
    CLERK = "clerk"
    VIEWER = "viewer"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    INVITED = "invited"
    REMOVED = "removed"


class Plan(str, Enum):
    """Subscription tiers, lowest first."""
    TRIAL = "trial"
    STARTER = "starter"
    TEAM = "team"
    PRO = "pro"


class BillingStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class ScreeningEnforcement(str, Enum):
    OFF = "off"
    WARN = "warn"
    BLOCK = "block"


class BeneficiaryType(str, Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"


class DisbursementType(str, Enum):
    SINGLE = "single"
    BATCH = "batch"


class DisbursementStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PROPOSED = "proposed"
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScreeningStatus(str, Enum):
    CLEAR = "clear"
    POTENTIAL_MATCH = "potential_match"
    CONFIRMED_MATCH = "confirmed_match"
    FALSE_POSITIVE = "false_positive"


class FeeMode(str, Enum):
    STABLECOIN_PREFERRED = "stablecoin_preferred"
    STABLECOIN_ONLY = "stablecoin_only"


class Language(str, Enum):
    EN = "en"
    ES = "es"
    PT_BR = "pt-BR"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"
