import logging

from django.core.exceptions import ValidationError

from apps.utils.exceptions import NotFound, ValidationFailed

from .models import Address

logger = logging.getLogger(__name__)


class AddressNotFound(NotFound):
    default_code = "address_not_found"

    def __init__(self, message="Address not found"):
        super().__init__(message)


class InvalidAddressLocation(ValidationFailed):
    default_code = "invalid_address_location"

    def __init__(self, message="Address location is inconsistent. Please update the address."):
        super().__init__(message)


class AddressService:

    @staticmethod
    def find_active_owned(user, address_id) -> Address:
        """
        Address must belong to the user, still be active and sit in a
        consistent governorate > center > village path.
        """
        try:
            address = (
                Address.objects
                .select_related("governorate", "center", "village")
                .get(id=address_id, user=user, is_active=True)
            )
        except (Address.DoesNotExist, ValidationError):
            raise AddressNotFound()

        errors = address.location_errors()
        if errors:
            logger.warning("Address %s has an inconsistent location: %s", address.id, errors)
            raise InvalidAddressLocation()
        return address
