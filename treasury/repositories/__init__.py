from .base_repository import BaseRepository
from .identity_repository import IdentityRepository
from .organization_repository import OrganizationRepository
from .membership_repository import MembershipRepository
from .billing_repository import BillingRepository
from .safe_repository import SafeRepository
from .beneficiary_repository import BeneficiaryRepository
from .disbursement_repository import DisbursementRepository, DisbursementRecipientRepository
from .audit_log_repository import AuditLogRepository
from .screening_repository import ScreeningRepository
