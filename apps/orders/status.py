"""
Status types for orders and the one place their display texts live.

Timeline descriptions are stored as {"en": ..., "ar": ...} so a historical
entry keeps the wording it was written with.
"""
from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"
    RETURNED = "RETURNED", "Returned"
    REFUNDED = "REFUNDED", "Refunded"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    AWAITING_PROOF = "AWAITING_PROOF", "Awaiting Payment Proof"
    UNDER_REVIEW = "UNDER_REVIEW", "Under Review"
    PAID = "PAID", "Paid"
    FAILED = "FAILED", "Payment Failed"
    REFUNDED = "REFUNDED", "Refunded"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED", "Partially Refunded"


class ShippingStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY", "Out for Delivery"
    DELIVERED = "DELIVERED", "Delivered"
    FAILED_DELIVERY = "FAILED_DELIVERY", "Delivery Failed"
    RETURNED = "RETURNED", "Returned"


class PaymentMethod(models.TextChoices):
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY", "Cash on Delivery"
    BANK_WALLET = "BANK_WALLET", "Bank Wallet"
    DIGITAL_WALLET = "DIGITAL_WALLET", "Digital Wallet"


class TimelineEvent(models.TextChoices):
    CREATED = "CREATED", "Order created"
    CONFIRMED = "CONFIRMED", "Confirmed"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Order cancelled"
    RETURNED = "RETURNED", "Returned"
    REFUNDED = "REFUNDED", "Refunded"
    PENDING = "PENDING", "Pending"


# Which order statuses an admin may move to from each status.
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED, OrderStatus.REFUNDED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}

CUSTOMER_CANCELLABLE = (OrderStatus.PENDING, OrderStatus.CONFIRMED)


def can_transition(current, new) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


_TEXTS = {
    "order": {
        OrderStatus.PENDING: {"en": "Pending", "ar": "في الانتظار"},
        OrderStatus.CONFIRMED: {"en": "Confirmed", "ar": "تم التأكيد"},
        OrderStatus.PROCESSING: {"en": "Processing", "ar": "جاري التحضير"},
        OrderStatus.SHIPPED: {"en": "Shipped", "ar": "تم الشحن"},
        OrderStatus.DELIVERED: {"en": "Delivered", "ar": "تم التسليم"},
        OrderStatus.CANCELLED: {"en": "Cancelled", "ar": "تم الإلغاء"},
        OrderStatus.RETURNED: {"en": "Returned", "ar": "تم الإرجاع"},
        OrderStatus.REFUNDED: {"en": "Refunded", "ar": "تم الاسترداد"},
    },
    "payment": {
        PaymentStatus.PENDING: {"en": "Pending", "ar": "في الانتظار"},
        PaymentStatus.AWAITING_PROOF: {"en": "Awaiting Payment Proof", "ar": "في انتظار إثبات الدفع"},
        PaymentStatus.UNDER_REVIEW: {"en": "Under Review", "ar": "قيد المراجعة"},
        PaymentStatus.PAID: {"en": "Paid", "ar": "تم الدفع"},
        PaymentStatus.FAILED: {"en": "Payment Failed", "ar": "فشل الدفع"},
        PaymentStatus.REFUNDED: {"en": "Refunded", "ar": "تم الاسترداد"},
        PaymentStatus.PARTIALLY_REFUNDED: {"en": "Partially Refunded", "ar": "استرداد جزئي"},
    },
    "shipping": {
        ShippingStatus.PENDING: {"en": "Pending", "ar": "في الانتظار"},
        ShippingStatus.PROCESSING: {"en": "Processing", "ar": "جاري التحضير"},
        ShippingStatus.SHIPPED: {"en": "Shipped", "ar": "تم الشحن"},
        ShippingStatus.OUT_FOR_DELIVERY: {"en": "Out for Delivery", "ar": "في الطريق للتسليم"},
        ShippingStatus.DELIVERED: {"en": "Delivered", "ar": "تم التسليم"},
        ShippingStatus.FAILED_DELIVERY: {"en": "Delivery Failed", "ar": "فشل التسليم"},
        ShippingStatus.RETURNED: {"en": "Returned", "ar": "تم الإرجاع"},
    },
    "timeline": {
        TimelineEvent.CREATED: {"en": "Order created", "ar": "تم إنشاء الطلب"},
        TimelineEvent.CANCELLED: {"en": "Order cancelled", "ar": "تم إلغاء الطلب"},
    },
}

DEFAULT_LANGUAGE = "en"


def localized(kind: str, value) -> dict:
    """
    All translations for one status value. Timeline events without a
    dedicated wording reuse the order status texts.
    """
    texts = _TEXTS.get(kind, {}).get(value)
    if texts is None and kind == "timeline":
        texts = _TEXTS["order"].get(value)
    if texts is None:
        return {DEFAULT_LANGUAGE: str(value)}
    return dict(texts)


def status_text(kind: str, value, lang: str = DEFAULT_LANGUAGE) -> str:
    texts = localized(kind, value)
    return texts.get(lang) or texts.get(DEFAULT_LANGUAGE) or str(value)
