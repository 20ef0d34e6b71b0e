from decimal import Decimal
from unittest import mock

from celery.exceptions import Retry
from django.db import DatabaseError
from django.test import TestCase

from apps.utils.testing import make_user

from .models import AuditLog
from .services import AuditEvent, AuditLogger
from .tasks import record_audit_event


class AuditLoggerTests(TestCase):

    def setUp(self):
        self.user = make_user("admin", is_staff=True)

    def test_record_event(self):
        entry = AuditLogger.record(AuditEvent(
            action="UPDATE",
            resource="Order",
            resource_id="42",
            user_id=self.user.pk,
            old_values={"order_status": "PENDING"},
            new_values={"order_status": "CONFIRMED"},
        ))

        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.action, AuditLog.Action.UPDATE)
        self.assertEqual(entry.old_values, {"order_status": "PENDING"})

    def test_payload_is_json_safe(self):
        payload = AuditEvent(action="CREATE", resource="Order", new_values={"totalAmount": Decimal("260.00")}).to_payload()
        self.assertEqual(payload["new_values"], {"totalAmount": "260.00"})

        entry = AuditLogger.record(payload)
        self.assertIsNone(entry.user)
        self.assertEqual(entry.new_values["totalAmount"], "260.00")

    def test_task_writes_entry(self):
        record_audit_event.delay(AuditEvent(action="CREATE", resource="Order", resource_id="7").to_payload())

        self.assertTrue(AuditLog.objects.filter(resource="Order", resource_id="7").exists())

    def test_task_retries_on_database_error(self):
        with mock.patch.object(AuditLogger, "record", side_effect=DatabaseError("locked")) as record:
            with self.assertRaises(Retry) as ctx:
                record_audit_event.delay({"action": "CREATE", "resource": "Order"})

        self.assertTrue(record.called)
        self.assertIsInstance(ctx.exception.exc, DatabaseError)
        self.assertEqual(ctx.exception.when, 10)
        self.assertEqual(record_audit_event.max_retries, 2)
