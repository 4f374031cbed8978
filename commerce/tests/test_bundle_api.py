from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from commerce.models import Bundle, BundleItem, Cart
from commerce.services.bundle_cart_service import BundleCartService
from commerce.tests.factories import add_slot, make_configurable_bundle, make_fixed_bundle, make_product


class PublicBundleApiTests(APITestCase):
    def setUp(self):
        self.kettle = make_product("Kettle", "2000")
        self.toaster = make_product("Toaster", "1500")
        self.fixed = make_fixed_bundle(
            "Breakfast set", [(self.kettle, 1), (self.toaster, 2)], "percentage", "20",
            show_on_homepage=True, homepage_position=Bundle.HomepagePosition.CAROUSEL,
        )
        self.configurable = make_configurable_bundle("Build your breakfast", "percentage", "10")
        self.main_slot = add_slot(self.configurable, "Main", [self.kettle, self.toaster])
        self.extra_slot = add_slot(self.configurable, "Extra", [self.toaster], is_required=False, order=1)
        self.hidden = make_fixed_bundle("Hidden", [(self.kettle, 1)], is_active=False)

    def test_list_returns_only_available_bundles(self):
        response = self.client.get(reverse("public-bundle-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        slugs = [bundle["slug"] for bundle in response.data["results"]]
        self.assertIn(self.fixed.slug, slugs)
        self.assertIn(self.configurable.slug, slugs)
        self.assertNotIn(self.hidden.slug, slugs)

    def test_list_filters_by_bundle_type(self):
        response = self.client.get(reverse("public-bundle-list"), {"bundle_type": "configurable"})

        slugs = [bundle["slug"] for bundle in response.data["results"]]
        self.assertEqual(slugs, [self.configurable.slug])

    def test_list_includes_pricing_for_fixed_bundles(self):
        response = self.client.get(reverse("public-bundle-list"), {"bundle_type": "fixed"})

        pricing = response.data["results"][0]["pricing"]
        self.assertEqual(pricing["original_price"], "5000.00")
        self.assertEqual(pricing["discounted_price"], "4000.00")
        self.assertEqual(pricing["savings_percentage"], "20.00")

    def test_detail_increments_view_count(self):
        response = self.client.get(reverse("public-bundle-detail", args=[self.fixed.slug]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["items"]), 2)
        self.fixed.refresh_from_db()
        self.assertEqual(self.fixed.view_count, 1)

    def test_detail_of_unavailable_bundle_is_404(self):
        response = self.client.get(reverse("public-bundle-detail", args=[self.hidden.slug]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_detail_shows_slots_with_allows_multiple(self):
        response = self.client.get(reverse("public-bundle-detail", args=[self.configurable.slug]))

        slots = response.data["slots"]
        self.assertEqual([slot["name"] for slot in slots], ["Main", "Extra"])
        self.assertFalse(slots[0]["allows_multiple"])
        self.assertEqual(len(slots[0]["products"]), 2)

    def test_homepage_groups_by_position(self):
        response = self.client.get(reverse("public-bundle-homepage"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([bundle["slug"] for bundle in response.data["carousel"]], [self.fixed.slug])
        self.assertEqual(response.data["grid"], [])

    def test_calculate_complete_selection(self):
        url = reverse("public-bundle-calculate", args=[self.configurable.slug])
        payload = {"selections": [{"slot_id": self.main_slot.id, "product_id": self.kettle.id}]}

        response = self.client.post(url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["is_complete"])
        self.assertEqual(response.data["original_price"], "2000.00")
        self.assertEqual(response.data["discounted_price"], "1800.00")

    def test_calculate_incomplete_selection_reports_missing_slots(self):
        url = reverse("public-bundle-calculate", args=[self.configurable.slug])

        response = self.client.post(url, {"selections": []}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["is_complete"])
        self.assertEqual(response.data["missing_required_slots"], [self.main_slot.id])
        self.assertEqual(response.data["original_price"], "0.00")
        self.assertEqual(response.data["savings_percentage"], "0.00")

    def test_calculate_with_product_outside_slot_is_422(self):
        url = reverse("public-bundle-calculate", args=[self.configurable.slug])
        payload = {"selections": [
            {"slot_id": self.main_slot.id, "product_ids": [self.kettle.id]},
            {"slot_id": self.extra_slot.id, "product_ids": [self.kettle.id]},
        ]}

        response = self.client.post(url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn("Invalid product selection for slot: Extra", response.data["errors"])

    def test_calculate_with_unknown_slot_and_missing_slot_is_422(self):
        url = reverse("public-bundle-calculate", args=[self.configurable.slug])

        response = self.client.post(url, {"selections": [{"slot_id": 999999, "product_id": self.kettle.id}]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertFalse(response.data["is_complete"])
        self.assertEqual(response.data["missing_required_slots"], [self.main_slot.id])
        self.assertIn("Invalid slot ID: 999999", response.data["errors"])

    def test_related_excludes_current_bundle(self):
        response = self.client.get(reverse("public-bundle-related", args=[self.fixed.slug]))

        slugs = [bundle["slug"] for bundle in response.data]
        self.assertNotIn(self.fixed.slug, slugs)
        self.assertIn(self.configurable.slug, slugs)
        self.assertNotIn(self.hidden.slug, slugs)


class AdminBundleApiTests(APITestCase):
    def setUp(self):
        User = get_user_model()
        self.staff = User.objects.create_user(username="bundle_admin", password="test-pass-123", is_staff=True)
        self.customer = User.objects.create_user(username="customer", password="test-pass-123")
        self.fridge = make_product("Fridge", "80000")
        self.guard = make_product("Voltage guard", "5000")

    def test_customer_cannot_manage_bundles(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.get(reverse("bundle-list"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_fixed_bundle_with_items(self):
        self.client.force_authenticate(user=self.staff)
        payload = {
            "name": "Fridge combo",
            "bundle_type": "fixed",
            "discount_type": "fixed_price",
            "discount_value": "80000.00",
            "cart_display": "individual",
            "items": [
                {"product": self.fridge.id, "quantity": 1},
                {"product": self.guard.id, "quantity": 1},
            ],
        }

        response = self.client.post(reverse("bundle-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        bundle = Bundle.objects.get(slug="fridge-combo")
        self.assertEqual(bundle.items.count(), 2)

    def test_create_configurable_bundle_with_slots(self):
        self.client.force_authenticate(user=self.staff)
        payload = {
            "name": "Cold builder",
            "bundle_type": "configurable",
            "discount_value": "5",
            "slots": [
                {"name": "Main", "min_selections": 1, "max_selections": 1, "products": [{"product": self.fridge.id}]},
                {"name": "Extras", "is_required": False, "max_selections": 2, "products": [{"product": self.guard.id}]},
            ],
        }

        response = self.client.post(reverse("bundle-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        bundle = Bundle.objects.get(slug="cold-builder")
        self.assertEqual([slot.name for slot in bundle.slots.all()], ["Main", "Extras"])
        self.assertEqual(bundle.slots.get(name="Extras").products.count(), 1)

    def test_percentage_above_100_is_rejected(self):
        self.client.force_authenticate(user=self.staff)
        payload = {"name": "Too good", "discount_type": "percentage", "discount_value": "150"}

        response = self.client.post(reverse("bundle-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("discount_value", response.data)

    def test_slot_min_above_max_is_rejected(self):
        self.client.force_authenticate(user=self.staff)
        payload = {
            "name": "Broken slots",
            "bundle_type": "configurable",
            "slots": [{"name": "Main", "min_selections": 3, "max_selections": 1}],
        }

        response = self.client.post(reverse("bundle-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_creates_inactive_copy(self):
        self.client.force_authenticate(user=self.staff)
        bundle = make_fixed_bundle("Fridge combo", [(self.fridge, 1), (self.guard, 1)], "percentage", "10")

        response = self.client.post(reverse("bundle-duplicate", args=[bundle.id]))

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        clone = Bundle.objects.get(pk=response.data["id"])
        self.assertEqual(clone.name, "Fridge combo (Copy)")
        self.assertFalse(clone.is_active)
        self.assertEqual(clone.items.count(), 2)
        self.assertEqual(clone.add_to_cart_count, 0)

    def test_toggle_flips_active_flag(self):
        self.client.force_authenticate(user=self.staff)
        bundle = make_fixed_bundle("Fridge combo", [(self.fridge, 1)])

        response = self.client.post(reverse("bundle-toggle", args=[bundle.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["is_active"])

    def test_product_in_bundle_cannot_be_deleted(self):
        self.client.force_authenticate(user=self.staff)
        bundle = make_fixed_bundle("Fridge combo", [(self.fridge, 1)])

        response = self.client.delete(reverse("product-detail", args=[self.fridge.id]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(BundleItem.objects.filter(bundle=bundle, product=self.fridge).exists())

    def test_product_dropped_from_bundle_but_held_in_a_cart_cannot_be_deleted(self):
        self.client.force_authenticate(user=self.staff)
        bundle = make_fixed_bundle(
            "Fridge combo", [(self.fridge, 1), (self.guard, 1)], "percentage", "10",
            cart_display=Bundle.CartDisplay.INDIVIDUAL,
        )
        cart = Cart.objects.create(session_id="held-in-cart")
        rows = BundleCartService.add_bundle_to_cart(cart, bundle)
        BundleItem.objects.filter(bundle=bundle, product=self.guard).delete()

        response = self.client.delete(reverse("product-detail", args=[self.guard.id]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(cart.items.count(), len(rows))


class BundleAvailabilityTests(APITestCase):
    def test_bundle_outside_sale_window_is_hidden(self):
        kettle = make_product("Kettle", "2000")
        make_fixed_bundle("Expired", [(kettle, 1)], ends_at=timezone.now() - timedelta(hours=1))
        make_fixed_bundle("Upcoming", [(kettle, 1)], starts_at=timezone.now() + timedelta(hours=1))
        make_fixed_bundle("Sold out", [(kettle, 1)], stock_limit=3, stock_sold=3)

        response = self.client.get(reverse("public-bundle-list"))

        self.assertEqual(response.data["results"], [])

    def test_countdown_is_exposed_when_enabled(self):
        kettle = make_product("Kettle", "2000")
        bundle = make_fixed_bundle(
            "Flash sale", [(kettle, 1)], show_countdown=True, ends_at=timezone.now() + timedelta(days=2, hours=1)
        )

        response = self.client.get(reverse("public-bundle-detail", args=[bundle.slug]))

        self.assertEqual(response.data["time_remaining"]["days"], 2)
        self.assertEqual(response.data["stock_remaining"], None)
        self.assertEqual(Decimal(response.data["discount_value"]), Decimal("0"))
