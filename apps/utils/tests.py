# apps/utils/tests.py
import json
import logging
from decimal import Decimal

from django.db import DatabaseError
from django.test import TestCase
from rest_framework import status

from .exceptions import Conflict, NotFound, ValidationFailed, custom_exception_handler
from .logging import JSONFormatter
from .utils import dict_clean, money


class MoneyTests(TestCase):
    def test_rounds_half_up_to_two_places(self):
        self.assertEqual(money("10.005"), Decimal("10.01"))
        self.assertEqual(money(3), Decimal("3.00"))
        self.assertEqual(money(Decimal("0.333")), Decimal("0.33"))

    def test_dict_clean_drops_none(self):
        self.assertEqual(dict_clean({"a": 1, "b": None}), {"a": 1})


class ExceptionHandlerTests(TestCase):
    def test_business_errors_keep_status_and_code(self):
        cases = [
            (ValidationFailed("bad", code="empty_cart"), status.HTTP_400_BAD_REQUEST, "empty_cart"),
            (NotFound("missing"), status.HTTP_404_NOT_FOUND, "not_found"),
            (Conflict("raced"), status.HTTP_409_CONFLICT, "conflict"),
        ]
        for exc, expected_status, expected_code in cases:
            response = custom_exception_handler(exc, {})
            self.assertEqual(response.status_code, expected_status)
            self.assertEqual(response.data, {"success": False, "error": exc.message, "code": expected_code})

    def test_database_error_is_opaque_500(self):
        with self.assertLogs("apps.utils.exceptions", level="ERROR"):
            response = custom_exception_handler(DatabaseError("relation orders does not exist"), {})

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data["code"], "server_error")
        self.assertNotIn("relation", response.data["error"])


class JSONFormatterTests(TestCase):
    def _record(self, msg, **extra):
        record = logging.LogRecord("apps.orders", logging.INFO, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_scrubs_sensitive_keys(self):
        output = json.loads(JSONFormatter().format(
            self._record({"sender_number": "01012345678", "nested": {"password": "x"}, "ok": 1})
        ))
        self.assertIn("REDACTED", output["msg"])
        self.assertNotIn("01012345678", output["msg"])

    def test_includes_order_context(self):
        output = json.loads(JSONFormatter().format(self._record("created", order_number="SOL-20250101-00001")))
        self.assertEqual(output["order_number"], "SOL-20250101-00001")
        self.assertEqual(output["lvl"], "INFO")


class HealthCheckTests(TestCase):
    def test_health_ok(self):
        response = self.client.get("/api/v1/utils/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"], {"db": "ok", "cache": "ok"})


class TestSettingsTests(TestCase):

    def test_test_settings_load_without_production_key(self):
        from decouple import config
        from django.conf import settings

        self.assertFalse(settings.DEBUG)
        self.assertEqual(settings.SECRET_KEY, "test-secret-key")
        self.assertTrue(config("ALLOW_INSECURE_KEY", cast=bool))
