"""
Models for treasury
"""

from .versioned_model import VersionedModel, ModelValidationError
from .non_versioned_model import NonVersionedModel
from .enums import (
    BeneficiaryType,
    BillingStatus,
    DisbursementStatus,
    DisbursementType,
    FeeMode,
    Language,
    MembershipStatus,
    Plan,
    Role,
    ScreeningEnforcement,
    ScreeningStatus,
    Theme,
)
from .identity import Identity
from .organization import Organization
from .membership import Membership
from .billing import BillingRecord
from .safe import Safe
from .beneficiary import Beneficiary
from .disbursement import (
    BatchDisbursement,
    Disbursement,
    DisbursementRecipient,
    SingleDisbursement,
    exact_sum,
    parse_amount,
)
from .audit_log import AuditLogEntry
from .screening_result import ScreeningResult
