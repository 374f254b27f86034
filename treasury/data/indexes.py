"""
Index layout of the treasury collections.
"""
import logging

logger = logging.getLogger(__name__)

# (collection, columns, index name, unique)
INDEXES = [
    ('identity', [('handle', 1)], 'identity_by_handle', True),
    ('membership', [('organization_id', 1), ('identity_id', 1)], 'membership_by_org_and_identity', True),
    ('membership', [('identity_id', 1)], 'membership_by_identity', False),
    ('billingrecord', [('organization_id', 1)], 'billing_by_org', True),
    ('safe', [('organization_id', 1)], 'safe_by_org', False),
    ('beneficiary', [('organization_id', 1), ('is_active', 1)], 'beneficiary_by_org_active', False),
    ('disbursement', [('organization_id', 1), ('status', 1)], 'disbursement_by_org_status', False),
    ('disbursementrecipient', [('disbursement_id', 1)], 'recipient_by_disbursement', False),
    ('auditlogentry', [('organization_id', 1), ('timestamp', -1), ('sequence', -1)], 'audit_by_org_timestamp', False),
    ('screeningresult', [('beneficiary_id', 1)], 'screening_by_beneficiary', True),
]


def ensure_indexes(adapter) -> list:
    """Create every index on an adapter that supports `create_index`."""
    created = []
    with adapter:
        for table, columns, name, unique in INDEXES:
            created.append(adapter.create_index(table, columns, name, unique=unique))
            logger.info("Ensured index %s on %s", name, table)
    return created
