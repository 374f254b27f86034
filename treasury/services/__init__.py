from .base import BaseService, Clock
from .identity import IdentityResolver, UserService
from .access import AccessControlGate, PERMISSIONS, ROLE_HIERARCHY, role_at_least
from .audit import AuditRecorder
from .billing import BillingService, PLAN_LIMITS, TierLimitEvaluator, TierLimits
from .beneficiaries import BeneficiaryRegistry
from .screening import ScreeningService
from .disbursements import DisbursementEngine
from .safes import SafeService
from .organizations import OrganizationService
