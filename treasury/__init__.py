"""
Multi-tenant treasury disbursement core.
"""
import logging
from typing import Optional

from treasury.config import OrganizationSettings, TreasuryConfig
from treasury.data import DbAdapter, MongoDBAdapter
from treasury.services import (
    AccessControlGate,
    AuditRecorder,
    BeneficiaryRegistry,
    BillingService,
    Clock,
    DisbursementEngine,
    IdentityResolver,
    OrganizationService,
    SafeService,
    ScreeningService,
    TierLimitEvaluator,
    UserService,
)

logger = logging.getLogger(__name__)


class Treasury:
    """
    Wires every service of the core to one adapter, one clock and one set of
    organization settings.

        treasury = Treasury(MemoryAdapter())
        org_id = treasury.organizations.create("Acme", "0xabc...")["organization_id"]
    """

    def __init__(
        self,
        adapter: DbAdapter,
        clock: Optional[Clock] = None,
        settings: Optional[OrganizationSettings] = None
    ):
        self.adapter = adapter
        self.identity = IdentityResolver(adapter, clock)
        self.users = UserService(adapter, self.identity, clock)
        self.access = AccessControlGate(adapter, self.identity, clock)
        self.audit = AuditRecorder(adapter, self.access, clock)
        self.limits = TierLimitEvaluator(adapter, clock)
        self.billing = BillingService(adapter, self.access, self.limits, self.audit, clock)
        self.beneficiaries = BeneficiaryRegistry(adapter, self.access, self.limits, self.audit, clock)
        self.screening = ScreeningService(adapter, self.access, self.audit, clock)
        self.disbursements = DisbursementEngine(adapter, self.access, self.audit, self.screening, clock)
        self.safes = SafeService(adapter, self.access, self.audit, clock)
        self.organizations = OrganizationService(
            adapter, self.identity, self.access, self.limits, self.audit, self.beneficiaries,
            settings=settings, clock=clock)

    @classmethod
    def from_config(cls, config: Optional[TreasuryConfig] = None, clock: Optional[Clock] = None) -> 'Treasury':
        """A treasury backed by MongoDB, configured from the environment."""
        config = config or TreasuryConfig()
        settings = config.organization_settings()
        if not config.mongo_uri or not config.mongo_database:
            raise ValueError("MONGO_URI and MONGO_DATABASE must be set")
        logger.info("Connecting treasury to MongoDB database %s", config.mongo_database)
        return cls(MongoDBAdapter(config.mongo_uri, config.mongo_database), clock=clock, settings=settings)
