from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.db import DatabaseError, connection, transaction
from django.test import TransactionTestCase, skipUnlessDBFeature
from rest_framework.test import APITestCase

from apps.inventory.services import InsufficientStock
from apps.shipping.models import ShippingRate
from apps.utils.testing import add_to_cart, make_address, make_location, make_product, make_user, make_variant

from .coupons import CouponEvaluator, CouponExhausted
from .models import Coupon, Order
from .numbering import OrderNumberGenerator
from .services import OrderService
from .status import OrderStatus, PaymentMethod

ORDERS_URL = "/api/v1/orders/"


class OrderFlowAPITest(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = make_user()
        self.admin = make_user("admin", is_staff=True)
        self.governorate, self.center, self.village = make_location()
        self.address = make_address(self.user, self.governorate, self.center, self.village)
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("60"), free_threshold=Decimal("500"))
        self.product = make_product(price="100.00", stock=10)
        self.client.force_authenticate(self.user)

    def checkout_payload(self, **extra):
        payload = {"addressId": str(self.address.id), "paymentMethod": PaymentMethod.CASH_ON_DELIVERY}
        payload.update(extra)
        return payload

    def place_order(self, quantity=1):
        add_to_cart(self.user, self.product, quantity=quantity)
        response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json")
        self.assertEqual(response.status_code, 201, response.data)
        return Order.objects.get(id=response.data["data"]["id"])

    # --- Checkout ---

    def test_checkout_returns_created_order(self):
        add_to_cart(self.user, self.product, quantity=2)

        response = self.client.post(ORDERS_URL, self.checkout_payload(customerNotes="Ring twice"), format="json")

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["message"], "Order created successfully")
        data = response.data["data"]
        self.assertRegex(data["orderNumber"], r"^SOL-\d{8}-\d{5}$")
        self.assertEqual(data["totalAmount"], "260.00")
        self.assertEqual(data["paymentStatus"], "PENDING")
        self.assertEqual(data["orderStatus"], "PENDING")
        self.assertEqual(Order.objects.get(id=data["id"]).customer_notes, "Ring twice")

    def test_checkout_error_codes(self):
        response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "empty_cart")

        add_to_cart(self.user, self.product, quantity=11)
        response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "insufficient_stock")
        self.assertFalse(response.data["success"])

        response = self.client.post(
            ORDERS_URL,
            {"addressId": str(make_address(self.admin, self.governorate).id), "paymentMethod": "CASH_ON_DELIVERY"},
            format="json",
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "address_not_found")

        response = self.client.post(ORDERS_URL, self.checkout_payload(couponCode="NOPE"), format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_coupon")

    def test_checkout_rejects_unknown_payment_method(self):
        add_to_cart(self.user, self.product)
        response = self.client.post(ORDERS_URL, self.checkout_payload(paymentMethod="CREDIT_CARD"), format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Order.objects.count(), 0)

    def test_checkout_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json")
        self.assertEqual(response.status_code, 401)

    def test_duplicate_idempotency_key_rejected(self):
        add_to_cart(self.user, self.product)
        headers = {"HTTP_X_IDEMPOTENCY_KEY": "abc-123"}

        first = self.client.post(ORDERS_URL, self.checkout_payload(), format="json", **headers)
        add_to_cart(self.user, self.product)
        second = self.client.post(ORDERS_URL, self.checkout_payload(), format="json", **headers)

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data["code"], "duplicate_request")
        self.assertEqual(Order.objects.count(), 1)

    def test_failed_checkout_frees_idempotency_key(self):
        headers = {"HTTP_X_IDEMPOTENCY_KEY": "retry-me"}

        response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json", **headers)
        self.assertEqual(response.data["code"], "empty_cart")

        add_to_cart(self.user, self.product)
        response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json", **headers)
        self.assertEqual(response.status_code, 201)

    def test_server_error_frees_idempotency_key(self):
        add_to_cart(self.user, self.product)
        headers = {"HTTP_X_IDEMPOTENCY_KEY": "flaky-db"}

        with mock.patch.object(OrderService, "create_order", side_effect=DatabaseError("connection lost")):
            response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json", **headers)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "server_error")

        response = self.client.post(ORDERS_URL, self.checkout_payload(), format="json", **headers)
        self.assertEqual(response.status_code, 201)

    # --- History / detail / tracking ---

    def test_list_is_paginated_and_scoped_to_user(self):
        self.place_order()
        self.place_order()
        stranger = make_user("stranger")
        Order.objects.filter(pk=self.place_order().pk).update(user=stranger)

        response = self.client.get(ORDERS_URL, {"limit": 1})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertEqual(len(response.data["data"]), 1)
        self.assertEqual(response.data["pagination"], {"page": 1, "limit": 1, "total": 2, "pages": 2})
        self.assertEqual(response.data["data"][0]["itemCount"], 1)

    def test_list_filters_by_status(self):
        self.place_order()
        cancelled = self.place_order()
        OrderService.cancel_order(self.user, cancelled.id)

        response = self.client.get(ORDERS_URL, {"order_status": "CANCELLED"})

        self.assertEqual([o["id"] for o in response.data["data"]], [str(cancelled.id)])

    def test_detail_includes_items_and_timeline(self):
        order = self.place_order(quantity=2)

        response = self.client.get(f"{ORDERS_URL}{order.id}/")

        self.assertEqual(response.status_code, 200)
        data = response.data["data"]
        self.assertEqual(data["orderNumber"], order.order_number)
        self.assertTrue(data["canCancel"])
        self.assertEqual(data["items"][0]["quantity"], 2)
        self.assertEqual(data["items"][0]["productSnapshot"]["name"], "Classic Sneaker")
        self.assertEqual([t["status"] for t in data["timeline"]], ["CREATED"])
        self.assertEqual(data["deliveryAddress"]["governorate"], "Cairo")

    def test_other_users_order_is_not_found(self):
        order = self.place_order()
        self.client.force_authenticate(make_user("stranger"))

        response = self.client.get(f"{ORDERS_URL}{order.id}/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "order_not_found")

    def test_track_by_order_number(self):
        order = self.place_order()

        response = self.client.get(f"{ORDERS_URL}track/{order.order_number.lower()}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["id"], str(order.id))

        response = self.client.get(f"{ORDERS_URL}track/SOL-20000101-00001/")
        self.assertEqual(response.status_code, 404)

    # --- Cancellation ---

    def test_cancel_endpoint(self):
        order = self.place_order(quantity=3)

        response = self.client.post(f"{ORDERS_URL}{order.id}/cancel/", {"reason": "Wrong size"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"success": True, "message": "Order cancelled successfully"})
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)

        response = self.client.post(f"{ORDERS_URL}{order.id}/cancel/", {}, format="json")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_cancellable")
        self.assertEqual(response.data["error"], "Order not found or cannot be cancelled")

    # --- Admin ---

    def test_admin_update_requires_staff(self):
        order = self.place_order()

        response = self.client.patch(f"{ORDERS_URL}admin/{order.id}/", {"orderStatus": "CONFIRMED"}, format="json")

        self.assertEqual(response.status_code, 403)
        order.refresh_from_db()
        self.assertEqual(order.order_status, OrderStatus.PENDING)

    def test_admin_update(self):
        order = self.place_order()
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            f"{ORDERS_URL}admin/{order.id}/",
            {"orderStatus": "CONFIRMED", "paymentStatus": "PAID", "trackingNumber": "BOSTA-991"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["message"], "Order updated successfully")
        data = response.data["data"]
        self.assertEqual(data["orderStatus"], "CONFIRMED")
        self.assertEqual(data["paymentStatus"], "PAID")
        self.assertEqual(data["trackingNumber"], "BOSTA-991")
        self.assertEqual([t["status"] for t in data["timeline"]], ["CREATED", "CONFIRMED"])

    def test_admin_update_errors(self):
        order = self.place_order()
        self.client.force_authenticate(self.admin)
        url = f"{ORDERS_URL}admin/{order.id}/"

        response = self.client.patch(url, {"orderStatus": "DELIVERED"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_transition")

        response = self.client.patch(url, {"orderStatus": "LOST"}, format="json")
        self.assertEqual(response.status_code, 400)

        response = self.client.patch(url, {}, format="json")
        self.assertEqual(response.status_code, 400)

        response = self.client.patch(
            f"{ORDERS_URL}admin/00000000-0000-0000-0000-000000000000/", {"orderStatus": "CONFIRMED"}, format="json"
        )
        self.assertEqual(response.status_code, 404)

    # --- Coupon preview ---

    def test_coupon_validate(self):
        Coupon.objects.create(code="SAVE10", type=Coupon.Type.PERCENTAGE, value=Decimal("10"), max_discount=Decimal("50"))

        response = self.client.post(f"{ORDERS_URL}coupons/validate/", {"code": "save10", "subtotal": "1000"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["code"], "SAVE10")
        self.assertEqual(response.data["data"]["discountAmount"], Decimal("50.00"))
        self.assertEqual(Coupon.objects.get(code="SAVE10").usage_count, 0)

        response = self.client.post(f"{ORDERS_URL}coupons/validate/", {"code": "NOPE", "subtotal": "10"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_coupon")


def _run_concurrently(fn, count):
    """
    Runs fn(i) on `count` threads, each with its own DB connection.
    Returns the result or raised exception of every call.
    """
    def worker(i):
        try:
            return fn(i)
        except Exception as exc:
            return exc
        finally:
            connection.close()

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(worker, range(count)))


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentCheckoutTest(TransactionTestCase):
    """
    Needs a database with real row locking (PostgreSQL). Run with
    TEST_DATABASE_URL set.
    """

    def setUp(self):
        self.governorate, _, _ = make_location()
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("60"))
        self.product = make_product(name="Last Pairs", stock=100)
        self.variant = make_variant(self.product, stock=5)
        self.customers = []
        for i in range(10):
            user = make_user(f"buyer{i}")
            address = make_address(user, self.governorate)
            add_to_cart(user, self.product, quantity=1, variant=self.variant)
            self.customers.append((user, address))

    def test_stock_never_oversold(self):
        def buy(i):
            user, address = self.customers[i]
            return OrderService.create_order(user, address.id, PaymentMethod.CASH_ON_DELIVERY)

        results = _run_concurrently(buy, 10)

        orders = [r for r in results if isinstance(r, Order)]
        failures = [r for r in results if isinstance(r, InsufficientStock)]
        self.assertEqual(len(orders), 5)
        self.assertEqual(len(failures), 5)

        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock_quantity, 0)
        self.assertEqual(Order.objects.count(), 5)
        self.assertEqual(len({o.order_number for o in orders}), 5)

    def test_coupon_never_over_redeemed(self):
        Coupon.objects.create(code="FIRST3", type=Coupon.Type.FIXED_AMOUNT, value=Decimal("20"), usage_limit=3)

        def redeem(i):
            with transaction.atomic():
                return CouponEvaluator.redeem("FIRST3", Decimal("100"))

        results = _run_concurrently(redeem, 5)

        self.assertEqual(sum(1 for r in results if isinstance(r, CouponExhausted)), 2)
        self.assertEqual(Coupon.objects.get(code="FIRST3").usage_count, 3)

    def test_order_numbers_unique_under_load(self):
        numbers = _run_concurrently(lambda i: OrderNumberGenerator.generate(), 10)

        self.assertTrue(all(isinstance(n, str) for n in numbers), numbers)
        self.assertEqual(len(set(numbers)), 10)
