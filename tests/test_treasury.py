"""
End-to-end tests of the wired treasury
"""
import os
from unittest.mock import MagicMock, patch

from treasury import Treasury
from treasury.config import TreasuryConfig
from treasury.errors import InvariantViolation, TierLimitExceeded
from treasury.models import DisbursementStatus, Plan, Role

from helpers import ADMIN, TreasuryTestCase, address


class TestEveryMutationIsAudited(TreasuryTestCase):
    """
    Every mutation adds an entry named `<object>.<verb>` to its own
    organization; a failed one adds nothing.
    """

    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.subscribe(self.org_id, Plan.TEAM)
        self.link_safe(self.org_id)

    def assert_audited(self, action, mutation):
        before = len(self.audit_entries(self.org_id))
        result = mutation()
        entries = self.audit_entries(self.org_id, action)
        self.assertTrue(entries, f"no {action} entry")
        self.assertEqual(len(self.audit_entries(self.org_id)), before + 1)
        return result

    def test_walkthrough(self):
        treasury = self.treasury
        beneficiary_id = self.assert_audited('beneficiary.created', lambda: treasury.beneficiaries.create(
            self.org_id, ADMIN, "Alice", address(1)))["beneficiary_id"]
        other_id = self.add_beneficiary(self.org_id, "Bob", 2)
        self.assert_audited('beneficiary.updated', lambda: treasury.beneficiaries.update(
            beneficiary_id, ADMIN, notes="vendor"))
        disbursement_id = self.assert_audited('disbursement.created', lambda: treasury.disbursements.create_batch(
            self.org_id, ADMIN, "USDC", [
                {'beneficiary_id': beneficiary_id, 'amount': "1"},
                {'beneficiary_id': other_id, 'amount': "2"},
            ]))["disbursement_id"]
        self.assert_audited('disbursement.pending', lambda: treasury.disbursements.update_status(
            disbursement_id, ADMIN, DisbursementStatus.PENDING))
        membership_id = self.assert_audited('member.invited', lambda: treasury.organizations.invite_member(
            self.org_id, ADMIN, "0xSecond", Role.ADMIN))["membership_id"]
        self.assert_audited('member.roleUpdated', lambda: treasury.organizations.update_member_role(
            self.org_id, ADMIN, membership_id, Role.VIEWER))
        self.assert_audited('member.removed', lambda: treasury.organizations.remove_member(
            self.org_id, ADMIN, membership_id))
        self.assert_audited('billing.subscribed', lambda: self.subscribe(self.org_id, Plan.PRO))

        for entry in self.audit_entries(self.org_id):
            object_type, _, verb = entry['action'].partition('.')
            self.assertTrue(object_type and verb)

    def stored_tables(self):
        return {table: list(rows) for table, rows in self.adapter.collections.items() if rows}

    def test_failed_mutations_leave_store_unchanged(self):
        self.subscribe(self.org_id, Plan.STARTER)
        snapshot = self.stored_tables()

        with self.assertRaises(TierLimitExceeded):
            self.treasury.organizations.invite_member(self.org_id, ADMIN, "0xSecond", Role.CLERK)
        with self.assertRaises(InvariantViolation):
            self.treasury.organizations.update_member_role(
                self.org_id, ADMIN, self.membership_id_of(self.org_id, ADMIN), Role.VIEWER)

        self.assertEqual(self.stored_tables(), snapshot)


class TestTreasuryFromConfig(TreasuryTestCase):

    @patch.dict(os.environ, {
        "MONGO_URI": "mongodb://localhost:27017",
        "MONGO_DATABASE": "treasury",
        "TREASURY_TRIAL_DAYS": "7",
    })
    @patch('treasury.data.mongodb.MongoClient')
    def test_builds_mongodb_treasury(self, mock_mongo_client):
        mock_mongo_client.return_value = MagicMock()

        treasury = Treasury.from_config(clock=self.clock)

        self.assertEqual(treasury.adapter.db_name, "treasury")
        self.assertEqual(treasury.organizations.settings.trial_days, 7)
        mock_mongo_client.assert_called_once()
        self.assertEqual(mock_mongo_client.call_args[0][0], "mongodb://localhost:27017")

    def test_requires_mongo_settings(self):
        config = TreasuryConfig()
        config.env_vars.pop("MONGO_URI", None)
        with self.assertRaises(ValueError):
            Treasury.from_config(config)
