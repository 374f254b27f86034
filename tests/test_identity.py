"""
Tests for identity resolution and user settings
"""
from treasury.errors import Unauthenticated, ValidationError
from treasury.models import Language, Theme

from helpers import TreasuryTestCase


class TestIdentityResolver(TreasuryTestCase):

    def test_resolve_creates_once(self):
        first = self.treasury.identity.resolve("  0xABC ")
        second = self.treasury.identity.resolve("0xabc")
        self.assertEqual(first.entity_id, second.entity_id)
        self.assertEqual(first.handle, "0xabc")
        self.assertEqual(len(self.stored('identity')), 1)

    def test_resolve_stages_into_callers_operations(self):
        operations = []
        identity = self.treasury.identity.resolve("0xStaged", operations)
        self.assertEqual(self.stored('identity'), [])
        self.adapter.run_transaction(operations)
        self.assertEqual(self.treasury.identity.require("0xSTAGED").entity_id, identity.entity_id)

    def test_require_unknown(self):
        with self.assertRaises(Unauthenticated) as ctx:
            self.treasury.identity.require("0xnobody")
        self.assertEqual(str(ctx.exception), "User not found")

    def test_blank_handle(self):
        with self.assertRaises(ValidationError):
            self.treasury.identity.resolve("   ")


class TestUserService(TreasuryTestCase):

    def setUp(self):
        super().setUp()
        self.treasury.identity.resolve("0xUser")
        self.users = self.treasury.users

    def test_settings(self):
        self.assertEqual(self.users.update_email("0xUser", "user@example.com"), {"success": True})
        self.users.update_preferred_language("0xUser", "pt-BR")
        self.users.update_preferred_theme("0xUser", Theme.DARK)
        user = self.users.get_by_handle("0XUSER")
        self.assertEqual(user.email, "user@example.com")
        self.assertEqual(user.preferred_language, Language.PT_BR)
        self.assertEqual(user.preferred_theme, Theme.DARK)

    def test_invalid_settings(self):
        with self.assertRaises(ValidationError):
            self.users.update_email("0xUser", "not-an-email")
        with self.assertRaises(ValidationError):
            self.users.update_preferred_language("0xUser", "fr")
        with self.assertRaises(ValidationError):
            self.users.update_preferred_theme("0xUser", "neon")

    def test_unknown_user(self):
        self.assertIsNone(self.users.get_by_handle("0xghost"))
        with self.assertRaises(Unauthenticated):
            self.users.update_email("0xghost", "ghost@example.com")
