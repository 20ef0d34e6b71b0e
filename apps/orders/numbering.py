import re
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from rest_framework import status

from apps.utils.exceptions import BusinessLogicException

from .models import OrderSequence

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 5
MAX_DAILY_SEQUENCE = 10 ** SEQUENCE_WIDTH - 1
_ORDER_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<date>\d{8})-(?P<seq>\d{5})$")


class OrderNumbersExhausted(BusinessLogicException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "order_numbers_exhausted"

    def __init__(self, day):
        self.day = day
        super().__init__(f"No order numbers left for {day:%Y-%m-%d}")


def _prefix():
    return getattr(settings, "ORDER_NUMBER_PREFIX", "SOL")


class OrderNumberGenerator:
    """
    Human-readable order numbers: SOL-YYYYMMDD-NNNNN.

    The per-day counter lives in its own row and is advanced with one
    UPDATE; the row stays locked until the surrounding order transaction
    ends, so two checkouts can never read the same value.
    """

    @staticmethod
    @transaction.atomic
    def next_sequence(day) -> int:
        OrderSequence.objects.get_or_create(day=day)
        OrderSequence.objects.filter(day=day).update(last_value=F("last_value") + 1)
        value = OrderSequence.objects.filter(day=day).values_list("last_value", flat=True).get()
        if value > MAX_DAILY_SEQUENCE:
            # Raising here rolls the increment back with this savepoint
            logger.error("Daily order number sequence exhausted for %s", day)
            raise OrderNumbersExhausted(day)
        return value

    @classmethod
    def generate(cls, today=None) -> str:
        day = today or timezone.localdate()
        seq = cls.next_sequence(day)
        number = f"{_prefix()}-{day:%Y%m%d}-{seq:0{SEQUENCE_WIDTH}d}"
        logger.debug("Issued order number %s", number)
        return number


def parse_order_number(value):
    """
    Returns (date_str, sequence) for a well-formed number, else None.
    """
    match = _ORDER_NUMBER_RE.match((value or "").strip().upper())
    if not match or match.group("prefix") != _prefix():
        return None
    return match.group("date"), int(match.group("seq"))


def format_order_number(value):
    # Display form used in printed invoices
    return (value or "").replace("-", " ")
