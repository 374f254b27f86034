"""
Tests for the beneficiary registry
"""
from treasury.addresses import normalize_address
from treasury.errors import (
    AlreadyExists,
    DuplicateInBatch,
    EmptyBatch,
    InsufficientRole,
    InvalidAddress,
    NotFound,
    TierLimitExceeded,
    TreasuryError,
    ValidationError,
)
from treasury.models import BeneficiaryType, Plan, Role

from helpers import ADMIN, TreasuryTestCase, address


def rows(start, count):
    return [{'name': f"Payee {n}", 'address': address(n)} for n in range(start, start + count)]


class TestBeneficiaryRegistry(TreasuryTestCase):

    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.registry = self.treasury.beneficiaries

    def test_create_normalizes_address_and_audits(self):
        result = self.registry.create(self.org_id, ADMIN, "Alice", "0xABCDEF0000000000000000000000000000000001",
                                      type=BeneficiaryType.BUSINESS, notes="vendor")
        beneficiary = self.registry.get(result['beneficiary_id'], ADMIN)
        self.assertEqual(beneficiary.address, "0xabcdef0000000000000000000000000000000001")
        self.assertEqual(beneficiary.type, BeneficiaryType.BUSINESS)
        self.assertTrue(beneficiary.is_active)

        [entry] = self.audit_entries(self.org_id, 'beneficiary.created')
        self.assertEqual(entry['object_id'], beneficiary.entity_id)
        self.assertEqual(entry['object_type'], 'beneficiary')

    def test_writers(self):
        self.add_member(self.org_id, "0xClerk", Role.CLERK)
        self.add_member(self.org_id, "0xApprover", Role.APPROVER)
        self.add_beneficiary(self.org_id, "By clerk", 1, handle="0xClerk")
        with self.assertRaises(InsufficientRole):
            self.add_beneficiary(self.org_id, "By approver", 2, handle="0xApprover")

    def test_tier_limit_then_upgrade(self):
        self.subscribe(self.org_id, Plan.STARTER)
        self.registry.bulk_create(self.org_id, ADMIN, rows(1, 25))

        with self.assertRaises(TierLimitExceeded) as ctx:
            self.add_beneficiary(self.org_id, "Twenty-sixth", 26)
        self.assertIn("25 beneficiaries", str(ctx.exception))
        self.assertEqual(
            str(ctx.exception), "Your plan allows a maximum of 25 beneficiaries. Please upgrade to add more.")

        self.subscribe(self.org_id, Plan.TEAM)
        self.add_beneficiary(self.org_id, "Twenty-sixth", 26)
        self.assertEqual(len(self.registry.list(self.org_id, ADMIN)), 26)

    def test_inactive_beneficiaries_still_count(self):
        self.subscribe(self.org_id, Plan.STARTER)
        created = self.registry.bulk_create(self.org_id, ADMIN, rows(1, 25))
        self.registry.update(created['beneficiary_ids'][0], ADMIN, is_active=False)
        with self.assertRaises(TierLimitExceeded):
            self.add_beneficiary(self.org_id, "Replacement", 26)

    def test_expired_plan_blocks_creation(self):
        self.clock.advance(days=31)
        with self.assertRaises(TierLimitExceeded) as ctx:
            self.add_beneficiary(self.org_id)
        self.assertIn("maximum of 0 beneficiaries", str(ctx.exception))

    def test_update_applies_partial_fields(self):
        beneficiary_id = self.add_beneficiary(self.org_id, "Alice", 1)
        self.clock.advance(hours=1)
        self.registry.update(beneficiary_id, ADMIN, name="Alice Smith", address="0X" + "AB" * 20, is_active=False)

        beneficiary = self.registry.get(beneficiary_id, ADMIN)
        self.assertEqual(beneficiary.name, "Alice Smith")
        self.assertEqual(beneficiary.address, "0x" + "ab" * 20)
        self.assertFalse(beneficiary.is_active)
        self.assertIsNone(beneficiary.notes)
        self.assertEqual(beneficiary.updated_at, self.clock())

        [entry] = self.audit_entries(self.org_id, 'beneficiary.updated')
        self.assertEqual(entry['metadata'], {'name': "Alice Smith", 'address': "0x" + "ab" * 20, 'is_active': False})

    def test_update_keeps_version_history(self):
        beneficiary_id = self.add_beneficiary(self.org_id, "Alice", 1)
        self.registry.update(beneficiary_id, ADMIN, notes="first")
        self.registry.update(beneficiary_id, ADMIN, notes="second")
        history = [d for d in self.stored('beneficiary_audit') if d['entity_id'] == beneficiary_id]
        self.assertEqual([d['notes'] for d in history], [None, "first"])

    def test_update_missing(self):
        with self.assertRaises(NotFound) as ctx:
            self.registry.update("missing", ADMIN, name="x")
        self.assertEqual(str(ctx.exception), "Beneficiary not found")

    def test_update_rejects_unknown_fields(self):
        beneficiary_id = self.add_beneficiary(self.org_id)
        with self.assertRaises(ValidationError):
            self.registry.update(beneficiary_id, ADMIN, organization_id="elsewhere")

    def test_update_rejects_blank_name(self):
        beneficiary_id = self.add_beneficiary(self.org_id)
        with self.assertRaises(ValidationError) as ctx:
            self.registry.update(beneficiary_id, ADMIN, name="   ")
        self.assertIsInstance(ctx.exception, TreasuryError)
        self.assertEqual(str(ctx.exception), "Beneficiary name is required")
        self.assertEqual(self.registry.get(beneficiary_id, ADMIN).name, "Alice")
        self.assertEqual(self.audit_entries(self.org_id, 'beneficiary.updated'), [])

    def test_update_rejects_empty_address(self):
        beneficiary_id = self.add_beneficiary(self.org_id)
        with self.assertRaises(InvalidAddress) as ctx:
            self.registry.update(beneficiary_id, ADMIN, address=" ")
        self.assertIsInstance(ctx.exception, TreasuryError)
        self.assertEqual(self.registry.get(beneficiary_id, ADMIN).address, address(1))

    def test_update_strips_name(self):
        beneficiary_id = self.add_beneficiary(self.org_id)
        self.registry.update(beneficiary_id, ADMIN, name="  Alice Smith ")
        self.assertEqual(self.registry.get(beneficiary_id, ADMIN).name, "Alice Smith")

    def test_list_active_only(self):
        first = self.add_beneficiary(self.org_id, "Alice", 1)
        self.add_beneficiary(self.org_id, "Bob", 2)
        self.registry.update(first, ADMIN, is_active=False)
        self.assertEqual([b.name for b in self.registry.list(self.org_id, ADMIN)], ["Alice", "Bob"])
        self.assertEqual([b.name for b in self.registry.list(self.org_id, ADMIN, active_only=True)], ["Bob"])

    def test_create_requires_name_and_address(self):
        with self.assertRaises(ValidationError):
            self.registry.create(self.org_id, ADMIN, "  ", address(1))
        with self.assertRaises(InvalidAddress):
            self.registry.create(self.org_id, ADMIN, "Alice", " ")
        self.assertEqual(self.stored('beneficiary'), [])

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.registry.get("missing", ADMIN))

    def test_stored_addresses_are_normalized(self):
        self.registry.create(self.org_id, ADMIN, "Upper", "  0X" + "CD" * 20 + " ")
        self.registry.bulk_create(self.org_id, ADMIN, [{'name': "Mixed", 'address': "0x" + "Ef" * 20}])
        for document in self.stored('beneficiary'):
            self.assertEqual(normalize_address(document['address']), document['address'])


class TestBulkCreate(TreasuryTestCase):

    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.registry = self.treasury.beneficiaries

    def _assert_nothing_written(self):
        self.assertEqual(self.stored('beneficiary'), [])
        self.assertEqual(self.audit_entries(self.org_id, 'beneficiary.created'), [])

    def test_creates_every_entry_with_its_own_audit(self):
        result = self.registry.bulk_create(self.org_id, ADMIN, rows(1, 3))
        self.assertEqual(len(result['beneficiary_ids']), 3)
        self.assertEqual(len(self.audit_entries(self.org_id, 'beneficiary.created')), 3)

    def test_empty(self):
        with self.assertRaises(EmptyBatch):
            self.registry.bulk_create(self.org_id, ADMIN, [])

    def test_malformed_address_rejects_all(self):
        entries = rows(1, 3) + [{'name': "Short", 'address': "0x1234"}]
        with self.assertRaises(InvalidAddress):
            self.registry.bulk_create(self.org_id, ADMIN, entries)
        self._assert_nothing_written()

    def test_missing_prefix_rejects_all(self):
        entries = rows(1, 2) + [{'name': "No prefix", 'address': "ab" * 21}]
        with self.assertRaises(InvalidAddress):
            self.registry.bulk_create(self.org_id, ADMIN, entries)
        self._assert_nothing_written()

    def test_blank_name_rejects_all(self):
        entries = rows(1, 2) + [{'name': "   ", 'address': address(9)}]
        with self.assertRaises(ValidationError):
            self.registry.bulk_create(self.org_id, ADMIN, entries)
        self._assert_nothing_written()

    def test_duplicate_in_batch_after_normalization(self):
        entries = [
            {'name': "One", 'address': "0x" + "ab" * 20},
            {'name': "Two", 'address': "0X" + "AB" * 20},
        ]
        with self.assertRaises(DuplicateInBatch):
            self.registry.bulk_create(self.org_id, ADMIN, entries)
        self._assert_nothing_written()

    def test_existing_address_rejects_all(self):
        self.add_beneficiary(self.org_id, "Existing", 2)
        with self.assertRaises(AlreadyExists):
            self.registry.bulk_create(self.org_id, ADMIN, rows(1, 3))
        self.assertEqual(len(self.stored('beneficiary')), 1)

    def test_same_address_in_another_organization_is_allowed(self):
        other_org = self.create_org("Other", handle="0xOther")
        self.add_beneficiary(other_org, "Elsewhere", 1, handle="0xOther")
        self.registry.bulk_create(self.org_id, ADMIN, rows(1, 1))

    def test_capacity_counts_new_entries(self):
        self.subscribe(self.org_id, Plan.STARTER)
        self.registry.bulk_create(self.org_id, ADMIN, rows(1, 20))
        with self.assertRaises(TierLimitExceeded):
            self.registry.bulk_create(self.org_id, ADMIN, rows(100, 6))
        self.assertEqual(len(self.stored('beneficiary')), 20)
        self.registry.bulk_create(self.org_id, ADMIN, rows(100, 5))
        self.assertEqual(len(self.stored('beneficiary')), 25)

    def test_failure_during_commit_leaves_no_trace(self):
        original = self.adapter.get_insert_query

        def failing_insert(table, data):
            if table == 'auditlogentry' and data['metadata']['name'] == "Payee 3":
                def fail():
                    raise RuntimeError("store unavailable")
                return fail
            return original(table, data)

        self.adapter.get_insert_query = failing_insert
        with self.assertRaises(RuntimeError):
            self.registry.bulk_create(self.org_id, ADMIN, rows(1, 4))
        self._assert_nothing_written()
