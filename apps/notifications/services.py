# apps/notifications/services.py
import logging
from string import Template

from django.conf import settings
from django.core.mail import EmailMessage, get_connection

from apps.orders.status import status_text

logger = logging.getLogger(__name__)


ORDER_CONFIRMATION_SUBJECT = {
    "en": Template("Order Confirmation - ${order_number}"),
    "ar": Template("تأكيد الطلب - ${order_number}"),
}

ORDER_CONFIRMATION_BODY = {
    "en": Template(
        "Hello ${name},\n\n"
        "Thank you for shopping with Soleva. Your order ${order_number} has been received.\n\n"
        "${lines}\n\n"
        "Subtotal: ${subtotal} EGP\n"
        "Discount: ${discount} EGP\n"
        "Shipping: ${shipping} EGP\n"
        "Total: ${total} EGP\n\n"
        "Payment method: ${payment_method}\n"
        "Deliver to: ${address}\n"
    ),
    "ar": Template(
        "مرحباً ${name}،\n\n"
        "شكراً لتسوقك من سوليفا. تم استلام طلبك ${order_number}.\n\n"
        "${lines}\n\n"
        "المجموع الفرعي: ${subtotal} ج.م\n"
        "الخصم: ${discount} ج.م\n"
        "الشحن: ${shipping} ج.م\n"
        "الإجمالي: ${total} ج.م\n\n"
        "طريقة الدفع: ${payment_method}\n"
        "العنوان: ${address}\n"
    ),
}


def _render(template: Template, context: dict) -> str:
    """
    Safely render ${var} placeholders; missing keys stay as-is.
    """
    return template.safe_substitute(**context)


def _order_context(order, lang: str) -> dict:
    address = order.delivery_address or {}
    lines = "\n".join(
        f"- {item.product_snapshot.get('name', '')} x {item.quantity} = {item.total_price} EGP"
        for item in order.items.all()
    )
    return {
        "name": address.get("recipient_name") or order.user.get_username(),
        "order_number": order.order_number,
        "lines": lines,
        "subtotal": order.subtotal,
        "discount": order.discount_amount,
        "shipping": order.shipping_cost,
        "total": order.total_amount,
        "payment_method": order.get_payment_method_display(),
        "status": status_text("order", order.order_status, lang),
        "address": ", ".join(
            str(part) for part in (
                address.get("street"),
                address.get("village"),
                address.get("center"),
                address.get("governorate"),
            ) if part
        ),
    }


class EmailDispatcher:
    """
    Transactional customer emails. Every send uses a connection bounded by
    EMAIL_TIMEOUT so a slow SMTP server cannot hold a worker forever.
    """

    @staticmethod
    def _connection():
        return get_connection(timeout=getattr(settings, "EMAIL_TIMEOUT", 10))

    @classmethod
    def send_order_confirmation(cls, order, lang: str = "en") -> bool:
        recipient = getattr(order.user, "email", "")
        if not recipient:
            logger.warning(
                "Order %s has no customer email, confirmation skipped",
                order.order_number,
                extra={"order_id": str(order.id)},
            )
            return False

        lang = lang if lang in ORDER_CONFIRMATION_BODY else "en"
        context = _order_context(order, lang)

        message = EmailMessage(
            subject=_render(ORDER_CONFIRMATION_SUBJECT[lang], context),
            body=_render(ORDER_CONFIRMATION_BODY[lang], context),
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[recipient],
            connection=cls._connection(),
        )
        message.send(fail_silently=False)

        logger.info(
            "Order confirmation sent for %s",
            order.order_number,
            extra={"order_id": str(order.id), "order_number": order.order_number},
        )
        return True
