from django.db import transaction
from django.test import TestCase
from rest_framework.test import APITestCase

from apps.utils.testing import make_product, make_user, make_variant

from .models import InventoryMovement
from .services import InsufficientStock, InventoryLedger, StockConflict


def _line(product, quantity, variant=None, **extra):
    return {
        "product_id": product.id,
        "variant_id": variant.id if variant else None,
        "quantity": quantity,
        "product_name": product.name,
        **extra,
    }


class InventoryLedgerTests(TestCase):

    def setUp(self):
        self.product = make_product(stock=10)
        self.other = make_product(name="Desert Boot", stock=1)
        self.variant = make_variant(self.product, stock=3)

    def test_reserve_decrements_and_writes_sale_movements(self):
        InventoryLedger.reserve([_line(self.product, 4), _line(self.product, 2, self.variant)], reference="order-1")

        self.product.refresh_from_db()
        self.variant.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 6)
        # Variant stock is authoritative for variant lines
        self.assertEqual(self.variant.stock_quantity, 1)

        movements = InventoryLedger.movements_for("order-1")
        self.assertEqual(sorted(m.quantity for m in movements), [-4, -2])
        self.assertTrue(all(m.type == InventoryMovement.MovementType.SALE for m in movements))
        self.assertEqual(InventoryLedger.net_quantity("order-1"), -6)

    def test_insufficient_item_rolls_back_whole_batch(self):
        with self.assertRaises(InsufficientStock) as ctx:
            with transaction.atomic():
                InventoryLedger.reserve([_line(self.product, 5), _line(self.other, 2)], reference="order-2")

        self.assertEqual(ctx.exception.product_name, "Desert Boot")
        self.assertEqual(ctx.exception.code, "insufficient_stock")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)
        self.assertFalse(InventoryMovement.objects.filter(reference="order-2").exists())

    def test_lost_race_is_reported_as_conflict(self):
        # Looked like 1 unit was available when priced, but it is gone now
        InventoryLedger.reserve([_line(self.other, 1)], reference="winner")

        with self.assertRaises(StockConflict) as ctx, transaction.atomic():
            InventoryLedger.reserve([_line(self.other, 1, seen_stock=1)], reference="loser")

        self.assertIsInstance(ctx.exception, InsufficientStock)
        self.assertEqual(ctx.exception.status_code, 409)

    def test_lines_on_same_row_are_checked_together(self):
        # 2 + 2 against 3: each line alone looked fine, together they never fit
        product = make_product(name="Suede Loafer", stock=3)

        with self.assertRaises(InsufficientStock) as ctx, transaction.atomic():
            InventoryLedger.reserve(
                [_line(product, 2, seen_stock=3), _line(product, 2, seen_stock=3)], reference="order-5"
            )

        self.assertNotIsInstance(ctx.exception, StockConflict)
        self.assertEqual(ctx.exception.status_code, 400)
        product.refresh_from_db()
        self.assertEqual(product.stock_quantity, 3)

    def test_lines_on_same_row_write_one_movement(self):
        InventoryLedger.reserve([_line(self.product, 2), _line(self.product, 3)], reference="order-6")

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 5)
        self.assertEqual([m.quantity for m in InventoryLedger.movements_for("order-6")], [-5])

    def test_release_restores_stock_and_nets_to_zero(self):
        lines = [_line(self.product, 3), _line(self.product, 1, self.variant)]
        InventoryLedger.reserve(lines, reference="order-3")
        InventoryLedger.release(lines, reference="order-3", reason="cancelled")

        self.product.refresh_from_db()
        self.variant.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 10)
        self.assertEqual(self.variant.stock_quantity, 3)
        self.assertEqual(InventoryLedger.net_quantity("order-3"), 0)
        self.assertEqual(
            InventoryLedger.movements_for("order-3").filter(type=InventoryMovement.MovementType.RETURN).count(), 2
        )

    def test_movements_are_append_only(self):
        InventoryLedger.reserve([_line(self.product, 1)], reference="order-4")
        movement = InventoryMovement.objects.get(reference="order-4")

        movement.quantity = -100
        with self.assertRaises(ValueError):
            movement.save()
        with self.assertRaises(ValueError):
            movement.delete()


class InventoryMovementAPITests(APITestCase):

    def setUp(self):
        self.product = make_product(stock=5)
        InventoryLedger.reserve([_line(self.product, 2)], reference="order-9")

    def test_staff_can_read_ledger_for_order(self):
        self.client.force_authenticate(make_user("staff", is_staff=True))
        response = self.client.get("/api/v1/inventory/movements/", {"reference": "order-9"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data["results"]), 1)
        self.assertEqual(response.data["net_quantity"], -2)

    def test_customers_are_forbidden(self):
        self.client.force_authenticate(make_user())
        response = self.client.get("/api/v1/inventory/movements/")
        self.assertEqual(response.status_code, 403)
