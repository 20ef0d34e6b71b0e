from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.utils.testing import make_address, make_location, make_user

from .services import AddressNotFound, AddressService, InvalidAddressLocation


class AddressLocationTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.cairo, self.cairo_center, self.cairo_village = make_location()
        self.giza, self.giza_center, self.giza_village = make_location("Giza", "GIZ")

    def test_consistent_path_is_valid(self):
        address = make_address(self.user, self.cairo, self.cairo_center, self.cairo_village)

        self.assertEqual(address.location_errors(), {})
        address.full_clean()
        self.assertEqual(AddressService.find_active_owned(self.user, address.id), address)

    def test_center_from_another_governorate(self):
        address = make_address(self.user, self.cairo, self.giza_center)

        with self.assertRaises(ValidationError) as ctx:
            address.full_clean()
        self.assertIn("center", ctx.exception.message_dict)

        with self.assertRaises(InvalidAddressLocation):
            AddressService.find_active_owned(self.user, address.id)

    def test_village_outside_center_or_without_center(self):
        mismatched = make_address(self.user, self.cairo, self.cairo_center, self.giza_village)
        orphan = make_address(self.user, self.cairo, village=self.cairo_village)

        self.assertIn("village", mismatched.location_errors())
        self.assertIn("village", orphan.location_errors())

    def test_foreign_address_not_found(self):
        address = make_address(make_user("other"), self.cairo)

        with self.assertRaises(AddressNotFound):
            AddressService.find_active_owned(self.user, address.id)
