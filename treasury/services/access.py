"""
Role-based access control.

Two mechanisms coexist. Operations are gated by explicit allow-lists in
`PERMISSIONS`, since the permitted roles of an operation are not always a
threshold of the hierarchy. `role_at_least` answers "X or higher" questions
against the fixed total order of roles.
"""
import logging
from typing import Iterable, Tuple

from treasury.errors import InsufficientRole, MembershipInactive, NotAMember
from treasury.models import Identity, Membership, MembershipStatus, Role
from treasury.repositories import MembershipRepository
from .base import BaseService
from .identity import IdentityResolver

logger = logging.getLogger(__name__)

# highest first
ROLE_HIERARCHY = (Role.ADMIN, Role.APPROVER, Role.INITIATOR, Role.CLERK, Role.VIEWER)

ALL_ROLES = frozenset(ROLE_HIERARCHY)
ADMIN_ONLY = frozenset({Role.ADMIN})
BENEFICIARY_WRITERS = frozenset({Role.ADMIN, Role.INITIATOR, Role.CLERK})
DISBURSEMENT_WRITERS = frozenset({Role.ADMIN, Role.APPROVER, Role.INITIATOR})

PERMISSIONS = {
    'org.view': ALL_ROLES,
    'org.update': ADMIN_ONLY,
    'member.list': ALL_ROLES,
    'member.invite': ADMIN_ONLY,
    'member.update_role': ADMIN_ONLY,
    'member.remove': ADMIN_ONLY,
    'billing.view': ALL_ROLES,
    'billing.subscribe': ADMIN_ONLY,
    'beneficiary.view': ALL_ROLES,
    'beneficiary.create': BENEFICIARY_WRITERS,
    'beneficiary.update': BENEFICIARY_WRITERS,
    'disbursement.view': ALL_ROLES,
    'disbursement.create': DISBURSEMENT_WRITERS,
    'disbursement.update_status': DISBURSEMENT_WRITERS,
    'safe.view': ALL_ROLES,
    'safe.link': ADMIN_ONLY,
    'safe.unlink': ADMIN_ONLY,
    'screening.view': ALL_ROLES,
    'screening.review': ADMIN_ONLY,
    'screening.update_enforcement': ADMIN_ONLY,
    'audit.view': ALL_ROLES,
}


def role_at_least(actual, required) -> bool:
    """True when `actual` sits at or above `required` in the role hierarchy."""
    return ROLE_HIERARCHY.index(Role(actual)) <= ROLE_HIERARCHY.index(Role(required))


def _describe_roles(roles: Iterable[Role]) -> str:
    ordered = sorted((Role(role) for role in roles), key=ROLE_HIERARCHY.index)
    return " or ".join(role.value for role in ordered)


class AccessControlGate(BaseService):
    """Checks identity, membership and role for an operation on an organization."""

    def __init__(self, adapter, identity_resolver: IdentityResolver, clock=None):
        super().__init__(adapter, clock)
        self.identity_resolver = identity_resolver
        self.memberships = MembershipRepository(adapter)

    def authorize(self, organization_id: str, handle: str, allowed_roles: Iterable[Role]) -> Tuple[Identity, Membership]:
        """
        Authorize `handle` on `organization_id`.

        Raises, in this order: Unauthenticated when the handle has no identity,
        NotAMember, MembershipInactive, and InsufficientRole when the member's
        role is not one of `allowed_roles`.
        """
        identity = self.identity_resolver.require(handle)
        membership = self.memberships.find_membership(organization_id, identity.entity_id)
        if membership is None:
            raise NotAMember("Not a member of this organization")
        if membership.status != MembershipStatus.ACTIVE:
            raise MembershipInactive("Membership is not active")
        allowed_roles = frozenset(Role(role) for role in allowed_roles)
        if membership.role not in allowed_roles:
            raise InsufficientRole(f"Insufficient permissions. Required: {_describe_roles(allowed_roles)}")
        return identity, membership

    def authorize_operation(self, organization_id: str, handle: str, operation: str) -> Tuple[Identity, Membership]:
        return self.authorize(organization_id, handle, PERMISSIONS[operation])
