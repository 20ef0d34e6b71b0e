import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from apps.customers.services import AddressService
from apps.inventory.services import InventoryLedger
from apps.shipping.services import ShippingRateResolver
from apps.utils.exceptions import NotFound, ValidationFailed
from apps.utils.utils import dict_clean, money

from .coupons import CouponEvaluator
from .models import CartItem, Order, OrderCancellation, OrderItem, OrderTimeline
from .numbering import OrderNumberGenerator
from .status import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingStatus,
    TimelineEvent,
    can_transition,
)

logger = logging.getLogger(__name__)


class EmptyCart(ValidationFailed):
    default_code = "empty_cart"

    def __init__(self, message="Cart is empty"):
        super().__init__(message)


class ProductUnavailable(ValidationFailed):
    default_code = "product_unavailable"

    def __init__(self, product_name):
        self.product_name = product_name
        super().__init__(f"{product_name} is currently unavailable")


class OrderNotFound(NotFound):
    default_code = "order_not_found"

    def __init__(self, message="Order not found"):
        super().__init__(message)


class NotCancellable(NotFound):
    default_code = "not_cancellable"

    def __init__(self, message="Order not found or cannot be cancelled"):
        super().__init__(message)


class InvalidStatusTransition(ValidationFailed):
    default_code = "invalid_transition"

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}")


class CartService:

    @staticmethod
    def list_for_user(user):
        # Product + variant + brand/category in one query for the snapshot
        return list(
            CartItem.objects
            .filter(user=user)
            .select_related("product", "product__brand", "product__category", "variant")
            .order_by("added_at")
        )


def _dispatch(task, *args, **kwargs):
    """
    Best-effort hand-off to Celery. The order is already committed, so a
    broker outage is logged and swallowed.
    """
    try:
        task.apply_async(
            args=args,
            kwargs=kwargs,
            retry=True,
            retry_policy=getattr(settings, "CELERY_TASK_PUBLISH_RETRY_POLICY", None),
        )
    except Exception:
        logger.exception("Failed to dispatch %s", getattr(task, "name", task))


def _audit_after_commit(action, resource, resource_id, user=None, old_values=None, new_values=None):
    from apps.audit.services import AuditEvent
    from apps.audit.tasks import record_audit_event

    payload = AuditEvent(
        action=action,
        resource=resource,
        resource_id=str(resource_id),
        user_id=getattr(user, "pk", None),
        old_values=old_values,
        new_values=new_values,
    ).to_payload()
    transaction.on_commit(lambda: _dispatch(record_audit_event, payload))


def _initial_payment_status(payment_method):
    if payment_method == PaymentMethod.CASH_ON_DELIVERY:
        return PaymentStatus.PENDING
    # Wallet transfers wait for the customer's payment proof
    return PaymentStatus.AWAITING_PROOF


def _tax_for(subtotal) -> Decimal:
    rate = Decimal(str(getattr(settings, "ORDER_TAX_RATE", 0)))
    return money(subtotal * rate)


class OrderService:

    @staticmethod
    def _draft_items(cart_items):
        """
        Prices every cart line from the catalog (never from the client) and
        captures the product snapshot the customer is buying.
        """
        drafts = []
        for line in cart_items:
            product, variant = line.product, line.variant

            if not product.is_active or (variant is not None and not variant.is_active):
                raise ProductUnavailable(product.name)

            unit_price = money(product.unit_price(variant))
            drafts.append({
                "product": product,
                "variant": variant,
                "quantity": line.quantity,
                "unit_price": unit_price,
                "total_price": money(unit_price * line.quantity),
                "product_snapshot": product.snapshot(variant),
                "seen_stock": (variant or product).stock_quantity,
            })
        return drafts

    @staticmethod
    @transaction.atomic
    def create_order(user, address_id, payment_method, sender_number=None, coupon_code=None, customer_notes=None):
        """
        Checkout. Everything below commits together or not at all:
        coupon use, stock decrements, the order, its items, the emptied
        cart and the first timeline entry.
        """
        if payment_method not in PaymentMethod.values:
            raise ValidationFailed(f"Unsupported payment method: {payment_method}", code="invalid_payment_method")

        # 1. Cart
        cart_items = CartService.list_for_user(user)
        if not cart_items:
            raise EmptyCart()

        # 2. Address
        address = AddressService.find_active_owned(user, address_id)

        # 3. Trusted pricing + snapshots
        drafts = OrderService._draft_items(cart_items)
        subtotal = money(sum((d["total_price"] for d in drafts), Decimal("0")))

        # 4. Coupon (consumes one use; rolled back with everything else)
        discount_amount = money(0)
        applied_code = None
        if coupon_code:
            discount = CouponEvaluator.redeem(coupon_code, subtotal)
            discount_amount = discount.amount
            applied_code = discount.code

        # 5-6. Shipping on the discounted value, then totals
        shipping_cost = ShippingRateResolver.resolve(address.location_path(), subtotal - discount_amount)
        tax_amount = _tax_for(subtotal)
        total_amount = money(Order.compute_total(subtotal, discount_amount, shipping_cost, tax_amount))

        # 7-8. Number + persist
        order = Order.objects.create(
            order_number=OrderNumberGenerator.generate(),
            user=user,
            address=address,
            delivery_address=address.as_dict(),
            subtotal=subtotal,
            discount_amount=discount_amount,
            shipping_cost=shipping_cost,
            tax_amount=tax_amount,
            total_amount=total_amount,
            payment_method=payment_method,
            payment_status=_initial_payment_status(payment_method),
            order_status=OrderStatus.PENDING,
            shipping_status=ShippingStatus.PENDING,
            sender_number=sender_number or None,
            coupon_code=applied_code,
            customer_notes=customer_notes or None,
        )

        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product=d["product"],
                variant=d["variant"],
                quantity=d["quantity"],
                unit_price=d["unit_price"],
                total_price=d["total_price"],
                product_snapshot=d["product_snapshot"],
            ) for d in drafts
        ])

        # 9. Stock. Any shortfall raises and undoes every write above.
        InventoryLedger.reserve(
            items=[
                {
                    "product_id": d["product"].id,
                    "variant_id": d["variant"].id if d["variant"] else None,
                    "quantity": d["quantity"],
                    "product_name": d["product"].name,
                    "seen_stock": d["seen_stock"],
                } for d in drafts
            ],
            reference=str(order.id),
            reason=f"Order {order.order_number}",
        )

        # 10-11. Cart + timeline
        CartItem.objects.filter(user=user).delete()
        OrderTimeline.append(order, TimelineEvent.CREATED, created_by=user)

        logger.info(
            "Order %s created: total=%s items=%s",
            order.order_number,
            total_amount,
            len(drafts),
            extra={"order_id": str(order.id), "order_number": order.order_number, "user_id": user.pk},
        )

        # 13. After commit only
        from apps.notifications.tasks import send_order_confirmation_email

        order_id = str(order.id)
        transaction.on_commit(lambda: _dispatch(send_order_confirmation_email, order_id))
        _audit_after_commit(
            "CREATE", "Order", order.id, user=user,
            new_values={"orderNumber": order.order_number, "totalAmount": total_amount},
        )

        return order

    @staticmethod
    def _locked_order(order_id, **filters):
        try:
            return Order.objects.select_for_update().get(id=order_id, **filters)
        except (Order.DoesNotExist, ValidationError):
            raise OrderNotFound()

    @staticmethod
    def _release_stock(order, reason):
        InventoryLedger.release(
            items=[item.as_stock_line() for item in order.items.all()],
            reference=str(order.id),
            reason=reason,
        )

    @staticmethod
    @transaction.atomic
    def cancel_order(user, order_id, reason=None):
        try:
            order = OrderService._locked_order(order_id, user=user)
        except OrderNotFound:
            raise NotCancellable()

        if not order.can_cancel:
            raise NotCancellable()

        order.order_status = OrderStatus.CANCELLED
        note = f"Cancelled by customer: {reason or 'No reason provided'}"
        order.admin_notes = f"{order.admin_notes}\n{note}" if order.admin_notes else note
        order.save(update_fields=["order_status", "admin_notes", "updated_at"])

        OrderCancellation.objects.create(
            order=order,
            reason=reason or "",
            cancelled_by=OrderCancellation.CancelledBy.CUSTOMER,
            cancelled_by_user=user,
        )
        OrderService._release_stock(order, reason=f"Order {order.order_number} cancelled")
        OrderTimeline.append(order, OrderStatus.CANCELLED, created_by=user)

        logger.info(
            "Order %s cancelled by customer",
            order.order_number,
            extra={"order_id": str(order.id), "user_id": user.pk},
        )
        _audit_after_commit(
            "UPDATE", "Order", order.id, user=user,
            new_values={"orderStatus": OrderStatus.CANCELLED, "reason": reason},
        )

        return {"success": True, "message": "Order cancelled successfully"}

    EDITABLE_FIELDS = ("order_status", "payment_status", "shipping_status", "tracking_number", "admin_notes")

    @staticmethod
    @transaction.atomic
    def update_status(admin_user, order_id, **changes):
        """
        Partial admin update. Only supplied fields are touched; an order
        status change must follow ALLOWED_TRANSITIONS and adds one timeline
        entry.
        """
        unknown = set(changes) - set(OrderService.EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}", code="invalid_field")

        changes = dict_clean(changes)
        order = OrderService._locked_order(order_id)

        for field, choices in (("payment_status", PaymentStatus), ("shipping_status", ShippingStatus)):
            value = changes.get(field)
            if value is not None and value not in choices.values:
                raise ValidationFailed(f"Invalid {field}: {value}", code="invalid_status")

        new_status = changes.get("order_status")
        status_changed = new_status is not None and new_status != order.order_status
        if status_changed and not can_transition(order.order_status, new_status):
            raise InvalidStatusTransition(order.order_status, new_status)

        old_values, new_values = {}, {}
        for field in OrderService.EDITABLE_FIELDS:
            if field not in changes:
                continue
            old_values[field] = getattr(order, field)
            new_values[field] = changes[field]
            setattr(order, field, changes[field])

        if not new_values:
            return order

        order.save(update_fields=[*new_values, "updated_at"])

        if status_changed:
            if new_status == OrderStatus.CANCELLED:
                OrderCancellation.objects.create(
                    order=order,
                    reason=changes.get("admin_notes") or "",
                    cancelled_by=OrderCancellation.CancelledBy.ADMIN,
                    cancelled_by_user=admin_user,
                )
                OrderService._release_stock(order, reason=f"Order {order.order_number} cancelled by admin")
            OrderTimeline.append(order, new_status, created_by=admin_user)

        logger.info(
            "Order %s updated by admin: %s",
            order.order_number,
            ", ".join(sorted(new_values)),
            extra={"order_id": str(order.id), "user_id": getattr(admin_user, "pk", None)},
        )
        _audit_after_commit("UPDATE", "Order", order.id, user=admin_user, old_values=old_values, new_values=new_values)

        return order
