"""
Tests for tier limits and the billing service
"""
from datetime import timedelta

from treasury.errors import InsufficientRole, ValidationError
from treasury.models import BillingRecord, BillingStatus, Plan, Role
from treasury.services.billing import EXPIRED_LIMITS, PLAN_LIMITS, BillingService, TierLimits

from helpers import ADMIN, TreasuryTestCase


class TestTierLimitEvaluator(TreasuryTestCase):

    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()
        self.limits = self.treasury.limits

    def _record(self):
        return self.limits.billing.find_by_organization(self.org_id)

    def test_new_organization_gets_a_thirty_day_trial(self):
        record = self._record()
        self.assertEqual(record.plan, Plan.TRIAL)
        self.assertEqual(record.status, BillingStatus.TRIAL)
        self.assertEqual(record.trial_ends_at, self.clock() + timedelta(days=30))
        self.assertEqual(self.limits.limits_for(self.org_id), TierLimits(5, 100))
        self.assertTrue(self.limits.is_active(self.org_id))

    def test_trial_limits_equal_team_limits(self):
        self.assertEqual(PLAN_LIMITS[Plan.TRIAL], PLAN_LIMITS[Plan.TEAM])
        self.assertEqual(PLAN_LIMITS[Plan.STARTER], TierLimits(1, 25))
        self.assertEqual(PLAN_LIMITS[Plan.PRO], TierLimits(None, None))

    def test_absent_record_defaults_to_trial_limits_but_is_not_active(self):
        self.assertEqual(self.limits.limits_for("no-such-org"), PLAN_LIMITS[Plan.TRIAL])
        self.assertFalse(self.limits.is_active("no-such-org"))

    def test_expiry_is_monotonic(self):
        self.clock.advance(days=30, seconds=1)
        self.assertEqual(self.limits.limits_for(self.org_id), EXPIRED_LIMITS)
        self.assertFalse(self.limits.is_active(self.org_id))
        for days in (1, 30, 365, 3650):
            self.clock.advance(days=days)
            self.assertEqual(self.limits.limits_for(self.org_id), TierLimits(0, 0))

    def test_expiry_boundary_is_exclusive(self):
        self.clock.advance(days=30)
        self.assertEqual(self.limits.limits_for(self.org_id), PLAN_LIMITS[Plan.TRIAL])

    def test_paid_plan_expires_after_paid_through(self):
        self.subscribe(self.org_id, Plan.STARTER, days=10)
        self.assertEqual(self.limits.limits_for(self.org_id), TierLimits(1, 25))
        self.clock.advance(days=11)
        self.assertEqual(self.limits.limits_for(self.org_id), EXPIRED_LIMITS)

    def test_subscribing_lifts_expiry(self):
        self.clock.advance(days=45)
        self.assertEqual(self.limits.limits_for(self.org_id), EXPIRED_LIMITS)
        self.subscribe(self.org_id, Plan.TEAM)
        self.assertEqual(self.limits.limits_for(self.org_id), PLAN_LIMITS[Plan.TEAM])

    def test_unbounded_limits_allow_anything(self):
        unbounded = PLAN_LIMITS[Plan.PRO]
        self.assertTrue(unbounded.allows_seats(10 ** 6))
        self.assertTrue(unbounded.allows_beneficiaries(10 ** 6))
        self.assertFalse(EXPIRED_LIMITS.allows_beneficiaries(1))

    def test_cancelled_record_keeps_plan_limits(self):
        record = self._record()
        record.status = BillingStatus.CANCELLED
        self.limits.billing.save(record)
        self.assertEqual(self.limits.limits_for(self.org_id), PLAN_LIMITS[Plan.TRIAL])
        self.assertFalse(self.limits.is_active(self.org_id))


class TestBillingService(TreasuryTestCase):

    def setUp(self):
        super().setUp()
        self.org_id = self.create_org()

    def test_get_reports_days_remaining(self):
        record = self.treasury.limits.billing.find_by_organization(self.org_id)
        record.trial_ends_at = self.clock() + timedelta(days=15)
        self.treasury.limits.billing.save(record)

        result = self.treasury.billing.get(self.org_id, ADMIN)
        self.assertEqual(result['days_remaining'], 15)
        self.assertTrue(result['is_active'])
        self.assertEqual(result['limits'], {'max_seats': 5, 'max_beneficiaries': 100})

    def test_get_reports_expired_trial(self):
        record = self.treasury.limits.billing.find_by_organization(self.org_id)
        record.trial_ends_at = self.clock() - timedelta(seconds=1)
        self.treasury.limits.billing.save(record)

        result = self.treasury.billing.get(self.org_id, ADMIN)
        self.assertEqual(result['days_remaining'], 0)
        self.assertFalse(result['is_active'])
        self.assertEqual(result['limits'], {'max_seats': 0, 'max_beneficiaries': 0})

    def test_partial_days_round_up(self):
        self.clock.advance(days=29, hours=12)
        self.assertEqual(self.treasury.billing.get(self.org_id, ADMIN)['days_remaining'], 1)

    def test_get_without_record(self):
        billing = self.treasury.limits.billing
        billing.delete(billing.find_by_organization(self.org_id))
        self.assertIsNone(self.treasury.billing.get(self.org_id, ADMIN))

    def test_any_member_can_view(self):
        self.add_member(self.org_id, "0xViewer", Role.VIEWER)
        self.assertIsNotNone(self.treasury.billing.get(self.org_id, "0xViewer"))

    def test_subscribe_updates_record_and_audits(self):
        paid_through = self.clock() + timedelta(days=365)
        self.treasury.billing.subscribe(self.org_id, ADMIN, "pro", "0xabc", paid_through)

        record = self.treasury.limits.billing.find_by_organization(self.org_id)
        self.assertEqual(record.plan, Plan.PRO)
        self.assertEqual(record.status, BillingStatus.ACTIVE)
        self.assertEqual(record.paid_through_at, paid_through)

        [entry] = self.audit_entries(self.org_id, 'billing.subscribed')
        self.assertEqual(entry['metadata']['previousPlan'], 'trial')
        self.assertEqual(entry['metadata']['newPlan'], 'pro')
        self.assertEqual(entry['metadata']['txHash'], '0xabc')
        self.assertEqual(entry['metadata']['paidThroughAt'], paid_through.isoformat())

    def test_subscribe_creates_missing_record(self):
        billing = self.treasury.limits.billing
        billing.delete(billing.find_by_organization(self.org_id))
        self.subscribe(self.org_id, Plan.TEAM)
        record = billing.find_by_organization(self.org_id)
        self.assertIsInstance(record, BillingRecord)
        self.assertEqual(record.plan, Plan.TEAM)

    def test_subscribe_is_admin_only(self):
        self.add_member(self.org_id, "0xApprover", Role.APPROVER)
        with self.assertRaises(InsufficientRole):
            self.treasury.billing.subscribe(
                self.org_id, "0xApprover", Plan.PRO, "0xabc", self.clock() + timedelta(days=30))
        self.assertEqual(self.audit_entries(self.org_id, 'billing.subscribed'), [])

    def test_subscribe_rejects_unknown_plan(self):
        with self.assertRaises(ValidationError):
            self.treasury.billing.subscribe(
                self.org_id, ADMIN, "enterprise", "0xabc", self.clock() + timedelta(days=30))

    def test_plan_limits_table(self):
        table = BillingService.plan_limits()
        self.assertEqual(table['starter'], {'max_seats': 1, 'max_beneficiaries': 25, 'price': 25})
        self.assertEqual(table['team'], {'max_seats': 5, 'max_beneficiaries': 100, 'price': 50})
        self.assertEqual(table['pro'], {'max_seats': None, 'max_beneficiaries': None, 'price': 99})
        self.assertEqual(table['trial']['price'], 0)
