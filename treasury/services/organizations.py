"""
Organizations and their memberships.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from treasury.config import OrganizationSettings
from treasury.errors import (
    AlreadyMember,
    InvalidRole,
    InvariantViolation,
    NotFound,
    TierLimitExceeded,
    ValidationError,
)
from treasury.models import (
    BillingRecord,
    BillingStatus,
    Membership,
    MembershipStatus,
    Organization,
    Plan,
    Role,
)
from treasury.repositories import IdentityRepository, MembershipRepository, OrganizationRepository
from .access import role_at_least
from .base import BaseService

logger = logging.getLogger(__name__)


def seat_limit_message(max_seats: int) -> str:
    return f"Your plan allows a maximum of {max_seats} user(s). Please upgrade to add more."


def _role(value) -> Role:
    try:
        return Role(value)
    except ValueError as e:
        raise InvalidRole(f"Unknown role: {value}") from e


def _organization_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Organization name is required")
    return name


class OrganizationService(BaseService):

    def __init__(
        self,
        adapter,
        identity_resolver,
        access_gate,
        limits,
        audit,
        beneficiary_registry,
        settings: Optional[OrganizationSettings] = None,
        clock=None
    ):
        super().__init__(adapter, clock)
        self.identity_resolver = identity_resolver
        self.access_gate = access_gate
        self.limits = limits
        self.audit = audit
        self.beneficiary_registry = beneficiary_registry
        self.settings = settings or OrganizationSettings()
        self.organizations = OrganizationRepository(adapter)
        self.memberships = MembershipRepository(adapter)
        self.identities = IdentityRepository(adapter)
        self.billing = limits.billing

    def create(self, name: str, handle: str, settings: Optional[OrganizationSettings] = None) -> Dict[str, str]:
        """
        Create an organization owned by `handle`: the organization, an admin
        membership, a trial billing record and, when the settings name one, a
        seeded beneficiary.
        """
        settings = settings or self.settings
        name = _organization_name(name)

        with self.adapter:
            operations = []
            identity = self.identity_resolver.resolve(handle, operations)
            now = self.now()

            organization = Organization(
                name=name,
                created_by=identity.entity_id,
                default_fee_token=settings.default_fee_token,
                default_fee_mode=settings.default_fee_mode,
                created_at=now,
            )
            membership = Membership(
                organization_id=organization.entity_id,
                identity_id=identity.entity_id,
                role=Role.ADMIN,
                status=MembershipStatus.ACTIVE,
                created_at=now,
            )
            billing = BillingRecord(
                organization_id=organization.entity_id,
                plan=Plan.TRIAL,
                status=BillingStatus.TRIAL,
                trial_ends_at=now + timedelta(days=settings.trial_days),
                created_at=now,
                updated_at=now,
            )
            operations.extend(self.organizations.get_save_queries(organization, changed_by_id=identity.entity_id))
            operations.extend(self.memberships.get_save_queries(membership, changed_by_id=identity.entity_id))
            operations.extend(self.billing.get_save_queries(billing, changed_by_id=identity.entity_id))
            operations.append(self.audit.entry(
                organization.entity_id, identity.entity_id, 'org.created', 'org', organization.entity_id,
                metadata={'name': name}, timestamp=now,
            ))
            if settings.seeds_beneficiary:
                seeded = self.beneficiary_registry.build(
                    organization.entity_id, settings.seed_beneficiary_name, settings.seed_beneficiary_address)
                operations.extend(self.beneficiary_registry.stage_create(seeded, identity.entity_id))
            self.commit(operations)

        logger.info("Created organization %s (%s) for identity %s", organization.entity_id, name,
                    identity.entity_id)
        return {"organization_id": organization.entity_id}

    def list_for_user(self, handle: str) -> List[Dict[str, Any]]:
        """Organizations in which `handle` has an active membership, each with the member's role."""
        with self.adapter:
            identity = self.identity_resolver.find(handle)
            if identity is None:
                return []
            memberships = self.memberships.find_organizations_by_member(identity.entity_id)
            organizations = {o.entity_id: o for o in self.organizations.get_many_by_ids(
                [m.organization_id for m in memberships])}

        result = []
        for membership in memberships:
            organization = organizations.get(membership.organization_id)
            if organization is None:
                continue
            item = organization.as_dict()
            item['role'] = membership.role.value
            result.append(item)
        return result

    def get(self, organization_id: str) -> Optional[Organization]:
        with self.adapter:
            return self.organizations.get_by_id(organization_id)

    def _require_organization(self, organization_id: str) -> Organization:
        organization = self.organizations.get_by_id(organization_id)
        if organization is None:
            raise NotFound("Organization not found")
        return organization

    def update_name(self, organization_id: str, handle: str, name: str) -> Dict[str, bool]:
        name = _organization_name(name)
        with self.adapter:
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'org.update')
            organization = self._require_organization(organization_id)
            organization.name = name
            operations = self.organizations.get_save_queries(organization, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'org.updated', 'org', organization_id,
                metadata={'name': name},
            ))
            self.commit(operations)
        return {"success": True}

    def invite_member(self, organization_id: str, handle: str, member_handle: str, role) -> Dict[str, str]:
        """
        Add `member_handle` to the organization with `role`. The member's
        identity is created when the handle is new. A removed membership is
        reactivated rather than duplicated.
        """
        role = _role(role)
        with self.adapter:
            self.lock_organization(organization_id)
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'member.invite')
            operations = []
            member = self.identity_resolver.resolve(member_handle, operations)

            membership = self.memberships.find_membership(organization_id, member.entity_id)
            if membership is not None and membership.status == MembershipStatus.ACTIVE:
                raise AlreadyMember("User is already a member of this organization")

            limits = self.limits.limits_for(organization_id)
            active_seats = self.memberships.count_active(organization_id)
            if not limits.allows_seats(active_seats + 1):
                raise TierLimitExceeded(seat_limit_message(limits.max_seats))

            now = self.now()
            if membership is None:
                membership = Membership(organization_id=organization_id, identity_id=member.entity_id, created_at=now)
            membership.role = role
            membership.status = MembershipStatus.ACTIVE
            operations.extend(self.memberships.get_save_queries(membership, changed_by_id=identity.entity_id))
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'member.invited', 'membership', membership.entity_id,
                metadata={'memberHandle': member.handle, 'role': role.value}, timestamp=now,
            ))
            self.commit(operations)

        logger.info("Identity %s joined organization %s as %s", member.entity_id, organization_id, role.value)
        return {"membership_id": membership.entity_id}

    def _require_membership(self, organization_id: str, membership_id: str) -> Membership:
        membership = self.memberships.get_by_id(membership_id)
        if membership is None or membership.organization_id != organization_id:
            raise NotFound("Membership not found")
        return membership

    def _is_last_admin(self, membership: Membership) -> bool:
        return membership.is_active_admin and self.memberships.count_active_admins(membership.organization_id) <= 1

    def update_member_role(self, organization_id: str, handle: str, membership_id: str, new_role) -> Dict[str, bool]:
        new_role = _role(new_role)
        with self.adapter:
            self.lock_organization(organization_id)
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'member.update_role')
            membership = self._require_membership(organization_id, membership_id)
            if not role_at_least(new_role, Role.ADMIN) and self._is_last_admin(membership):
                raise InvariantViolation("Cannot demote the last admin")

            old_role = membership.role
            membership.role = new_role
            operations = self.memberships.get_save_queries(membership, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'member.roleUpdated', 'membership', membership.entity_id,
                metadata={'oldRole': old_role.value, 'newRole': new_role.value},
            ))
            self.commit(operations)

        logger.info("Membership %s role changed from %s to %s", membership_id, old_role.value, new_role.value)
        return {"success": True}

    def remove_member(self, organization_id: str, handle: str, membership_id: str) -> Dict[str, bool]:
        with self.adapter:
            self.lock_organization(organization_id)
            identity, _ = self.access_gate.authorize_operation(organization_id, handle, 'member.remove')
            membership = self._require_membership(organization_id, membership_id)
            if self._is_last_admin(membership):
                raise InvariantViolation("Cannot remove the last admin")
            if membership.identity_id == identity.entity_id:
                raise InvariantViolation("Cannot remove yourself")

            membership.status = MembershipStatus.REMOVED
            operations = self.memberships.get_save_queries(membership, changed_by_id=identity.entity_id)
            operations.append(self.audit.entry(
                organization_id, identity.entity_id, 'member.removed', 'membership', membership.entity_id,
                metadata={'identityId': membership.identity_id, 'role': membership.role.value},
            ))
            self.commit(operations)

        logger.info("Membership %s removed from organization %s", membership_id, organization_id)
        return {"success": True}

    def list_members(self, organization_id: str, handle: str) -> List[Dict[str, Any]]:
        """Memberships that are not removed, each with the member's handle."""
        with self.adapter:
            self.access_gate.authorize_operation(organization_id, handle, 'member.list')
            memberships = [m for m in self.memberships.find_by_organization(organization_id)
                           if m.status != MembershipStatus.REMOVED]
            identities = {i.entity_id: i for i in self.identities.get_many(
                {'entity_id': {'$in': [m.identity_id for m in memberships]}})}

        result = []
        for membership in memberships:
            item = membership.as_dict()
            member = identities.get(membership.identity_id)
            item['handle'] = member.handle if member else None
            item['email'] = member.email if member else None
            result.append(item)
        return result
