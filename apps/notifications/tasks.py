import logging
from smtplib import SMTPException

from celery import shared_task

from .services import EmailDispatcher

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    soft_time_limit=30,
    time_limit=45,
    ignore_result=True,
)
def send_order_confirmation_email(self, order_id: str, lang: str = "en"):
    from apps.orders.models import Order

    try:
        order = (
            Order.objects
            .select_related("user")
            .prefetch_related("items")
            .get(id=order_id)
        )
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found. Confirmation email dropped.")
        return False

    try:
        return EmailDispatcher.send_order_confirmation(order, lang=lang)
    except (SMTPException, OSError) as exc:
        logger.warning(
            "Confirmation email for %s failed, retrying: %s",
            order.order_number,
            exc,
            extra={"order_id": order_id},
        )
        raise self.retry(exc=exc)
