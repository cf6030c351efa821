"""Shared Flask test-client setup: in-memory DB plus signed auth cookies."""

import unittest

from app import create_app
from config import TestConfig
from guards import ACCESS_TOKEN_COOKIE, USER_DATA_COOKIE, user_serializer
from models import db

TEST_USER = {
    "id": "oid-1",
    "username": "sam@contoso.com",
    "name": "Sam Park",
    "tenantId": "tenant-1",
    "organizationId": 1,
    "organizationName": "Contoso",
}


class AppTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app(TestConfig)
        self.client = self.app.test_client()
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def sign_in(self, user=None, token="graph-token"):
        self.client.set_cookie(ACCESS_TOKEN_COOKIE, token)
        self.client.set_cookie(USER_DATA_COOKIE, user_serializer().dumps(user or TEST_USER))
