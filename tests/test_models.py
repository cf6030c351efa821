"""
test_models.py

Organization upserts, per-tenant user settings and dashboard statistics.
"""

import unittest
from datetime import datetime, timedelta

from models import ClientOrganization, UserSettings, database_status, db, organization_stats
from tests.support import AppTestCase


class TestClientOrganization(AppTestCase):
    def test_record_login_creates_then_counts(self):
        org = ClientOrganization.record_login("t1", "Contoso", "contoso.com")
        self.assertEqual(org.user_count, 1)
        self.assertEqual(org.subscription_tier, "free")

        again = ClientOrganization.record_login("t1", "Contoso Ltd")
        self.assertEqual(again.id, org.id)
        self.assertEqual(again.user_count, 2)
        self.assertEqual(again.organization_name, "Contoso Ltd")
        self.assertEqual(again.domain, "contoso.com")
        self.assertEqual(ClientOrganization.query.count(), 1)

    def test_name_falls_back_to_domain(self):
        org = ClientOrganization.record_login("t2", "", "fabrikam.com")
        self.assertEqual(org.organization_name, "fabrikam.com")

    def test_as_dict_keys(self):
        d = ClientOrganization.record_login("t1", "Contoso").as_dict()
        self.assertEqual(d["tenantId"], "t1")
        self.assertTrue(d["isActive"])
        self.assertIsNotNone(d["lastActiveAt"])


class TestUserSettings(AppTestCase):
    def test_scoped_by_tenant(self):
        a = UserSettings.get_or_create("sam@contoso.com", "Sam", "t1")
        b = UserSettings.get_or_create("sam@contoso.com", "Sam", "t2")
        self.assertNotEqual(a.id, b.id)

        a.update_signature({"enabled": True, "name": "Sam"})
        self.assertEqual(UserSettings.find_by_user_email("sam@contoso.com", "t1").signature["name"], "Sam")
        self.assertEqual(UserSettings.find_by_user_email("sam@contoso.com", "t2").signature, {})

    def test_get_or_create_is_idempotent(self):
        first = UserSettings.get_or_create("sam@contoso.com", "Sam", "t1")
        second = UserSettings.get_or_create("sam@contoso.com", "Samuel", "t1")
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.user_name, "Samuel")

    def test_inactive_rows_hidden(self):
        row = UserSettings.get_or_create("sam@contoso.com", "Sam", "t1")
        row.is_active = False
        db.session.commit()
        self.assertIsNone(UserSettings.find_by_user_email("sam@contoso.com", "t1"))

    def test_update_preferences_partial(self):
        row = UserSettings.get_or_create("sam@contoso.com", "Sam", "t1")
        row.update_preferences(preferences={"timezone": "Europe/Paris"})
        row.update_preferences(signature={"enabled": False})
        self.assertEqual(row.preferences, {"timezone": "Europe/Paris"})
        self.assertEqual(row.signature, {"enabled": False})


class TestStats(AppTestCase):
    def test_windows(self):
        ClientOrganization.record_login("t1", "Old")
        old = ClientOrganization.query.filter_by(tenant_id="t1").one()
        old.created_at = datetime.utcnow() - timedelta(days=60)
        ClientOrganization.record_login("t2", "New")
        db.session.commit()

        stats = organization_stats()
        self.assertEqual(stats["totalOrganizations"], 2)
        self.assertEqual(stats["newThisWeek"], 1)
        self.assertEqual(stats["totalLogins"], 2)

    def test_database_status(self):
        status = database_status()
        self.assertTrue(status["available"])
        self.assertEqual(status["mode"], "development")
        self.assertIsNone(status["error"])


if __name__ == "__main__":
    unittest.main()
