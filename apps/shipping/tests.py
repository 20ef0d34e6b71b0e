from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.utils.testing import make_location

from .models import ShippingRate
from .services import LocationPath, ShippingRateResolver


class ShippingRateResolverTests(TestCase):

    def setUp(self):
        self.governorate, self.center, self.village = make_location()
        self.full_path = LocationPath(self.governorate.id, self.center.id, self.village.id)

    def test_governorate_rate_below_and_above_threshold(self):
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("60"), free_threshold=Decimal("500"))
        path = LocationPath(self.governorate.id)

        self.assertEqual(ShippingRateResolver.resolve(path, Decimal("450")), Decimal("60.00"))
        self.assertEqual(ShippingRateResolver.resolve(path, Decimal("520")), Decimal("0.00"))

    @override_settings(SHIPPING_FREE_THRESHOLD=Decimal("10000"))
    def test_rate_threshold_applies_below_global_threshold(self):
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("45"), free_threshold=Decimal("300"))

        self.assertEqual(ShippingRateResolver.resolve(self.full_path, Decimal("299.99")), Decimal("45.00"))
        self.assertEqual(ShippingRateResolver.resolve(self.full_path, Decimal("300")), Decimal("0.00"))

    def test_global_threshold_wins_without_lookup(self):
        with self.assertNumQueries(0):
            cost = ShippingRateResolver.resolve(self.full_path, Decimal("500"))
        self.assertEqual(cost, Decimal("0.00"))

    def test_most_specific_scope_wins(self):
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("60"))
        ShippingRate.objects.create(center=self.center, cost=Decimal("50"))
        ShippingRate.objects.create(village=self.village, cost=Decimal("40"))

        self.assertEqual(ShippingRateResolver.resolve(self.full_path, Decimal("100")), Decimal("40.00"))
        self.assertEqual(
            ShippingRateResolver.resolve(LocationPath(self.governorate.id, self.center.id), Decimal("100")),
            Decimal("50.00"),
        )
        self.assertEqual(
            ShippingRateResolver.resolve(LocationPath(self.governorate.id), Decimal("100")),
            Decimal("60.00"),
        )

    def test_falls_back_to_default_cost(self):
        self.assertEqual(ShippingRateResolver.resolve(self.full_path, Decimal("100")), Decimal("60.00"))

        with override_settings(DEFAULT_SHIPPING_COST=Decimal("75")):
            self.assertEqual(ShippingRateResolver.resolve(self.full_path, Decimal("100")), Decimal("75.00"))

    def test_expired_inactive_and_future_rates_ignored(self):
        now = timezone.now()
        ShippingRate.objects.create(village=self.village, cost=Decimal("10"), effective_to=now - timedelta(days=1))
        ShippingRate.objects.create(village=self.village, cost=Decimal("11"), is_active=False)
        ShippingRate.objects.create(village=self.village, cost=Decimal("12"), effective_from=now + timedelta(days=1))
        ShippingRate.objects.create(center=self.center, cost=Decimal("35"), effective_from=now - timedelta(days=1))

        self.assertEqual(ShippingRateResolver.resolve(self.full_path, Decimal("100"), now=now), Decimal("35.00"))

    def test_newest_effective_rate_wins_within_level(self):
        now = timezone.now()
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("60"), effective_from=now - timedelta(days=30))
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("55"), effective_from=now - timedelta(days=1))

        self.assertEqual(
            ShippingRateResolver.resolve(LocationPath(self.governorate.id), Decimal("100"), now=now),
            Decimal("55.00"),
        )

    def test_resolve_is_repeatable_and_read_only(self):
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("60"))
        before = list(ShippingRate.objects.values("id", "cost", "updated_at"))

        first = ShippingRateResolver.resolve(self.full_path, Decimal("200"))
        second = ShippingRateResolver.resolve(self.full_path, Decimal("200"))

        self.assertEqual(first, second)
        self.assertEqual(list(ShippingRate.objects.values("id", "cost", "updated_at")), before)

    def test_rate_must_have_exactly_one_scope(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            ShippingRate.objects.create(governorate=self.governorate, center=self.center, cost=Decimal("60"))


class ShippingAPITests(APITestCase):

    def setUp(self):
        self.governorate, self.center, self.village = make_location()
        ShippingRate.objects.create(governorate=self.governorate, cost=Decimal("60"), free_threshold=Decimal("500"))

    def test_location_lists(self):
        response = self.client.get("/api/v1/shipping/governorates/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([g["code"] for g in response.data], ["CAI"])

        response = self.client.get(f"/api/v1/shipping/governorates/{self.governorate.id}/centers/")
        self.assertEqual([c["name"] for c in response.data], ["Cairo Center"])

        response = self.client.get(f"/api/v1/shipping/centers/{self.center.id}/villages/")
        self.assertEqual([v["name"] for v in response.data], ["Cairo Village"])

    def test_quote(self):
        response = self.client.post(
            "/api/v1/shipping/quote/",
            {"governorateId": str(self.governorate.id), "orderTotal": "450.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["cost"], Decimal("60.00"))
        self.assertFalse(response.data["data"]["isFree"])
        self.assertEqual(response.data["data"]["threshold"], Decimal("500.00"))

    def test_quote_validates_input(self):
        response = self.client.post("/api/v1/shipping/quote/", {"orderTotal": "-1"}, format="json")
        self.assertEqual(response.status_code, 400)
