from smtplib import SMTPException
from unittest import mock

from celery.exceptions import Retry
from django.core import mail
from django.test import TestCase

from apps.orders.services import OrderService
from apps.orders.status import PaymentMethod
from apps.utils.testing import add_to_cart, make_address, make_location, make_product, make_user

from .services import EmailDispatcher
from .tasks import send_order_confirmation_email


class OrderConfirmationEmailTests(TestCase):

    def setUp(self):
        self.user = make_user()
        governorate, center, village = make_location()
        address = make_address(self.user, governorate, center, village)
        add_to_cart(self.user, make_product(price="150.00"), quantity=2)
        self.order = OrderService.create_order(self.user, address.id, PaymentMethod.CASH_ON_DELIVERY)

    def test_english_confirmation(self):
        self.assertTrue(EmailDispatcher.send_order_confirmation(self.order))

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.subject, f"Order Confirmation - {self.order.order_number}")
        self.assertEqual(message.to, ["customer@example.com"])
        self.assertIn("Classic Sneaker x 2 = 300.00 EGP", message.body)
        self.assertIn(f"Total: {self.order.total_amount} EGP", message.body)
        self.assertIn("Cash on Delivery", message.body)

    def test_arabic_confirmation_and_unknown_language(self):
        EmailDispatcher.send_order_confirmation(self.order, lang="ar")
        EmailDispatcher.send_order_confirmation(self.order, lang="de")

        self.assertTrue(mail.outbox[0].subject.startswith("تأكيد الطلب"))
        self.assertTrue(mail.outbox[1].subject.startswith("Order Confirmation"))

    def test_customer_without_email_is_skipped(self):
        self.user.email = ""
        self.user.save()
        self.order.refresh_from_db()

        self.assertFalse(EmailDispatcher.send_order_confirmation(self.order))
        self.assertEqual(len(mail.outbox), 0)

    def test_task_sends_and_drops_missing_orders(self):
        send_order_confirmation_email.delay(str(self.order.id))
        self.assertEqual(len(mail.outbox), 1)

        result = send_order_confirmation_email.apply(args=["00000000-0000-0000-0000-000000000000"])
        self.assertFalse(result.get())

    def test_task_retries_smtp_failures(self):
        with mock.patch.object(EmailDispatcher, "send_order_confirmation", side_effect=SMTPException("down")) as send:
            with self.assertRaises(Retry) as ctx:
                send_order_confirmation_email.delay(str(self.order.id))

        self.assertTrue(send.called)
        self.assertIsInstance(ctx.exception.exc, SMTPException)
        self.assertEqual(ctx.exception.when, 30)
        self.assertEqual(send_order_confirmation_email.max_retries, 3)
