"""
Shared fixtures for the treasury service tests.
"""
import unittest
from datetime import datetime, timedelta, timezone

from treasury import Treasury
from treasury.data import MemoryAdapter

ADMIN = "0xAdmin0000000000000000000000000000000001"
NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def address(n: int) -> str:
    """A valid payee address derived from `n`."""
    return "0x" + format(n, "040x")


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


class TreasuryTestCase(unittest.TestCase):
    """Builds a treasury over a fresh in-memory store with a frozen clock."""

    def setUp(self):
        self.clock = FrozenClock()
        self.adapter = MemoryAdapter()
        self.treasury = Treasury(self.adapter, clock=self.clock)

    def create_org(self, name="Acme", handle=ADMIN) -> str:
        return self.treasury.organizations.create(name, handle)["organization_id"]

    def add_member(self, organization_id, handle, role) -> str:
        return self.treasury.organizations.invite_member(organization_id, ADMIN, handle, role)["membership_id"]

    def subscribe(self, organization_id, plan, days=30):
        return self.treasury.billing.subscribe(
            organization_id, ADMIN, plan, "0xpaymenthash", self.clock() + timedelta(days=days))

    def add_beneficiary(self, organization_id, name="Alice", n=1, handle=ADMIN) -> str:
        return self.treasury.beneficiaries.create(organization_id, handle, name, address(n))["beneficiary_id"]

    def link_safe(self, organization_id, chain_id=1) -> str:
        return self.treasury.safes.link(organization_id, ADMIN, address(999), chain_id)["safe_id"]

    def stored(self, table):
        return self.adapter.collections.get(table, [])

    def audit_entries(self, organization_id, action=None):
        return [entry for entry in self.stored('auditlogentry')
                if entry['organization_id'] == organization_id
                and (action is None or entry['action'] == action)]

    def membership_id_of(self, organization_id, handle) -> str:
        for member in self.treasury.organizations.list_members(organization_id, ADMIN):
            if member['handle'] == handle.lower():
                return member['entity_id']
        raise AssertionError(f"{handle} is not a member")
