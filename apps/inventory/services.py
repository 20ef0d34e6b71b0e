import logging
from typing import Dict, List

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from apps.catalog.models import Product, ProductVariant
from apps.utils.exceptions import Conflict, ValidationFailed

from .models import InventoryMovement

logger = logging.getLogger(__name__)


class InsufficientStock(ValidationFailed):
    default_code = "insufficient_stock"

    def __init__(self, product_name, message=None):
        self.product_name = product_name
        super().__init__(message or f"Insufficient stock for {product_name}")


class StockConflict(InsufficientStock, Conflict):
    """
    Stock looked sufficient when the cart was priced but another checkout
    took it first. Same family as InsufficientStock, surfaced as 409.
    """
    status_code = Conflict.status_code
    default_code = "stock_conflict"

    def __init__(self, product_name):
        super().__init__(
            product_name,
            message=f"Stock for {product_name} was just taken by another order. Please retry.",
        )


def _stock_row(item):
    if item.get("variant_id"):
        return ProductVariant, item["variant_id"]
    return Product, item["product_id"]


def _lock_key(item):
    model, pk = _stock_row(item)
    return (model.__name__, str(pk))


def _merge_by_row(items):
    """
    One entry per stock row, sorted by row key. Lines hitting the same row
    are summed so the conditional update sees the whole demand.
    """
    merged = {}
    for item in items:
        key = _lock_key(item)
        if key in merged:
            merged[key]["quantity"] += int(item["quantity"])
        else:
            merged[key] = {**item, "quantity": int(item["quantity"])}
    return [merged[key] for key in sorted(merged)]


class InventoryLedger:
    """
    ALL order-driven stock changes must pass through here.

    Items are dicts: {product_id, variant_id?, quantity, product_name?, seen_stock?}
    `seen_stock` is the stock level observed when the cart was priced; it only
    decides which error is raised when a conditional update loses.
    """

    @staticmethod
    @transaction.atomic
    def reserve(items: List[Dict], reference: str, reason: str = "") -> List[InventoryMovement]:
        """
        Conditional decrement per stock row (stock >= n). Any miss raises and the
        enclosing transaction discards every decrement already made.
        """
        # Deterministic row order prevents deadlocks between concurrent checkouts
        sorted_items = _merge_by_row(items)
        movements = []

        for item in sorted_items:
            qty = int(item["quantity"])
            model, pk = _stock_row(item)

            updated = model.objects.filter(pk=pk, stock_quantity__gte=qty).update(
                stock_quantity=F("stock_quantity") - qty,
                updated_at=timezone.now(),
            )

            if not updated:
                name = item.get("product_name") or str(item["product_id"])
                seen = item.get("seen_stock")
                if seen is not None and seen >= qty:
                    logger.warning(
                        "Stock race lost for %s (%s=%s), reference=%s",
                        name, model.__name__, pk, reference,
                    )
                    raise StockConflict(name)
                raise InsufficientStock(name)

            movements.append(InventoryMovement(
                product_id=item["product_id"],
                variant_id=item.get("variant_id"),
                type=InventoryMovement.MovementType.SALE,
                quantity=-qty,
                reference=reference,
                reason=reason,
            ))

        return InventoryMovement.objects.bulk_create(movements)

    @staticmethod
    @transaction.atomic
    def release(items: List[Dict], reference: str, reason: str = "") -> List[InventoryMovement]:
        """
        Reverses a reservation (e.g. Order Cancellation).
        """
        sorted_items = _merge_by_row(items)
        movements = []

        for item in sorted_items:
            qty = int(item["quantity"])
            model, pk = _stock_row(item)

            updated = model.objects.filter(pk=pk).update(
                stock_quantity=F("stock_quantity") + qty,
                updated_at=timezone.now(),
            )
            if not updated:
                # Rows are PROTECTed by order items; reaching this is a data bug
                raise RuntimeError(f"Stock row {model.__name__}={pk} missing during release")

            movements.append(InventoryMovement(
                product_id=item["product_id"],
                variant_id=item.get("variant_id"),
                type=InventoryMovement.MovementType.RETURN,
                quantity=qty,
                reference=reference,
                reason=reason,
            ))

        return InventoryMovement.objects.bulk_create(movements)

    @staticmethod
    def movements_for(reference: str):
        return InventoryMovement.objects.filter(reference=reference).order_by("created_at")

    @staticmethod
    def net_quantity(reference: str) -> int:
        """
        Sum of signed movements for one order. Zero once a sale has been
        fully released.
        """
        total = InventoryMovement.objects.filter(reference=reference).aggregate(total=Sum("quantity"))["total"]
        return total or 0
