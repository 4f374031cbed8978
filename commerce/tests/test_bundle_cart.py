from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from commerce.models import Bundle, Cart, CartItem, Product
from commerce.services.bundle_cart_service import BundleCartService, allocate_discount
from commerce.services.bundle_pricing_service import BundlePricingService, PricedLine
from commerce.services.cart_service import CartService
from commerce.services.exceptions import (
    BundleUnavailableError, CartItemError, OutOfStockError, SelectionValidationError
)
from commerce.services.selection_service import SlotSelections
from commerce.tests.factories import add_slot, make_configurable_bundle, make_fixed_bundle, make_product


def rows_total(items):
    return sum((item.total_price for item in items), Decimal("0.00"))


class AllocateDiscountTests(TestCase):
    def _line(self, price, quantity=1):
        return PricedLine(product_id=1, product_name="x", product_image="", quantity=quantity, unit_price=Decimal(price))

    def test_shares_add_up_and_remainder_goes_to_largest_line(self):
        lines = [self._line("100.00"), self._line("100.00"), self._line("100.00")]

        shares = allocate_discount(lines, Decimal("10.00"))

        self.assertEqual(sum(shares), Decimal("10.00"))
        self.assertEqual(shares, [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")])

    def test_no_savings_gives_zero_shares(self):
        shares = allocate_discount([self._line("50.00")], Decimal("0.00"))

        self.assertEqual(shares, [Decimal("0.00")])


class AddBundleToCartTests(TestCase):
    def setUp(self):
        self.cart = Cart.objects.create(session_id="test-session")
        self.cooker = make_product("Cooker", "33333.33")
        self.hood = make_product("Hood", "12345.67", stock=3)
        self.gas = make_product("Gas regulator", "999.99")

    def _bundle(self, cart_display, discount_type="percentage", discount_value="17"):
        return make_fixed_bundle(
            f"Kitchen {cart_display} {discount_type}",
            [(self.cooker, 1), (self.hood, 2), (self.gas, 3)],
            discount_type,
            discount_value,
            cart_display=cart_display,
        )

    def test_rows_total_equals_discounted_price_for_every_display_mode(self):
        for cart_display in Bundle.CartDisplay.values:
            for discount_type, value in (("percentage", "17"), ("fixed_price", "50000")):
                with self.subTest(cart_display=cart_display, discount_type=discount_type):
                    bundle = self._bundle(cart_display, discount_type, value)
                    breakdown = BundlePricingService.calculate(bundle)

                    items = BundleCartService.add_bundle_to_cart(self.cart, bundle)

                    self.assertEqual(rows_total(items), breakdown.discounted_price)

    def test_single_item_mode_creates_one_row_with_primary_product(self):
        bundle = self._bundle(Bundle.CartDisplay.SINGLE_ITEM)

        items = BundleCartService.add_bundle_to_cart(self.cart, bundle)

        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].product, self.cooker)
        self.assertEqual(items[0].bundle, bundle)
        self.assertEqual(len(items[0].bundle_slot_selections), 3)

    def test_grouped_mode_creates_header_without_product(self):
        bundle = self._bundle(Bundle.CartDisplay.GROUPED)

        items = BundleCartService.add_bundle_to_cart(self.cart, bundle)

        self.assertEqual(len(items), 1)
        self.assertIsNone(items[0].product)
        self.assertTrue(items[0].is_bundle_header)

    def test_individual_mode_creates_header_and_children(self):
        bundle = self._bundle(Bundle.CartDisplay.INDIVIDUAL)

        header, *children = BundleCartService.add_bundle_to_cart(self.cart, bundle)

        self.assertEqual(header.unit_price, Decimal("0.00"))
        self.assertEqual(len(children), 3)
        self.assertTrue(all(child.is_bundle_item and child.parent_cart_item_id == header.id for child in children))
        self.assertEqual([child.quantity for child in children], [1, 2, 3])

    def test_removing_individual_header_removes_children(self):
        bundle = self._bundle(Bundle.CartDisplay.INDIVIDUAL)
        header, *_ = BundleCartService.add_bundle_to_cart(self.cart, bundle)

        CartService.remove_item(self.cart, header.id)

        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())

    def test_removing_individual_child_removes_whole_group(self):
        bundle = self._bundle(Bundle.CartDisplay.INDIVIDUAL)
        _, child, *_ = BundleCartService.add_bundle_to_cart(self.cart, bundle)

        CartService.remove_item(self.cart, child.id)

        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())

    def test_remove_bundle_deletes_every_row_of_that_bundle(self):
        bundle = self._bundle(Bundle.CartDisplay.INDIVIDUAL)
        BundleCartService.add_bundle_to_cart(self.cart, bundle)
        plain = CartService.add_item(self.cart, make_product("Spare filter", "300"), 1)

        deleted = BundleCartService.remove_bundle_from_cart(self.cart, bundle.id)

        self.assertEqual(deleted, 4)
        self.assertEqual(list(self.cart.items.values_list("id", flat=True)), [plain.id])

    def test_adding_the_same_bundle_twice_keeps_one_group(self):
        for cart_display in Bundle.CartDisplay.values:
            with self.subTest(cart_display=cart_display):
                bundle = self._bundle(cart_display)
                first = BundleCartService.add_bundle_to_cart(self.cart, bundle)

                second = BundleCartService.add_bundle_to_cart(self.cart, bundle)

                self.assertEqual([item.id for item in second], [item.id for item in first])
                self.assertEqual(CartItem.objects.filter(cart=self.cart, bundle=bundle).count(), len(first))
                bundle.refresh_from_db()
                self.assertEqual(bundle.add_to_cart_count, 1)

    def test_same_bundle_at_a_new_price_gets_its_own_group(self):
        bundle = self._bundle(Bundle.CartDisplay.GROUPED)
        BundleCartService.add_bundle_to_cart(self.cart, bundle)
        Product.objects.filter(pk=self.gas.pk).update(price=Decimal("899.99"))
        bundle = Bundle.objects.get(pk=bundle.pk)

        BundleCartService.add_bundle_to_cart(self.cart, bundle)

        self.assertEqual(CartItem.objects.filter(cart=self.cart, bundle=bundle).count(), 2)

    def test_add_increments_add_to_cart_count(self):
        bundle = self._bundle(Bundle.CartDisplay.GROUPED)

        BundleCartService.add_bundle_to_cart(self.cart, bundle)

        bundle.refresh_from_db()
        self.assertEqual(bundle.add_to_cart_count, 1)

    def test_prices_are_locked_at_add_time(self):
        bundle = self._bundle(Bundle.CartDisplay.GROUPED)
        items = BundleCartService.add_bundle_to_cart(self.cart, bundle)
        total_before = rows_total(items)

        self.cooker.price = Decimal("1.00")
        self.cooker.save()

        self.assertEqual(rows_total(CartItem.objects.filter(cart=self.cart)), total_before)

    def test_unavailable_bundles_are_rejected_without_rows(self):
        now = timezone.now()
        cases = {
            "inactive": {"is_active": False},
            "not started": {"starts_at": now + timedelta(days=1)},
            "ended": {"ends_at": now - timedelta(days=1)},
            "sold out": {"stock_limit": 5, "stock_sold": 5},
        }
        for label, changes in cases.items():
            with self.subTest(label):
                bundle = self._bundle(Bundle.CartDisplay.INDIVIDUAL)
                Bundle.objects.filter(pk=bundle.pk).update(**changes)
                bundle.refresh_from_db()

                with self.assertRaises(BundleUnavailableError):
                    BundleCartService.add_bundle_to_cart(self.cart, bundle)

                self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())

    def test_out_of_stock_product_is_named_and_nothing_is_written(self):
        self.hood.stock_quantity = 1
        self.hood.save()
        bundle = self._bundle(Bundle.CartDisplay.INDIVIDUAL)

        with self.assertRaises(BundleUnavailableError) as ctx:
            BundleCartService.add_bundle_to_cart(self.cart, bundle)

        self.assertIn("Hood", ctx.exception.message)
        self.assertEqual(ctx.exception.errors, ["Hood"])
        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())


class AddConfigurableBundleTests(TestCase):
    def setUp(self):
        self.cart = Cart.objects.create(session_id="configurable-session")
        self.tv = make_product("TV", "70000")
        self.soundbar = make_product("Soundbar", "20000")
        self.mount = make_product("Wall mount", "4000")
        self.bundle = make_configurable_bundle(
            "Home theatre", "percentage", "12.5", cart_display=Bundle.CartDisplay.INDIVIDUAL
        )
        self.screen_slot = add_slot(self.bundle, "Screen", [self.tv])
        self.audio_slot = add_slot(self.bundle, "Audio", [self.soundbar], order=1)
        self.extra_slot = add_slot(self.bundle, "Extras", [self.mount], is_required=False, order=2)

    def test_incomplete_selections_are_rejected(self):
        selections = SlotSelections({self.screen_slot.id: [self.tv.id]})

        with self.assertRaises(SelectionValidationError) as ctx:
            BundleCartService.add_bundle_to_cart(self.cart, self.bundle, selections)

        self.assertIn("Selection required for slot: Audio", ctx.exception.errors)
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertFalse(CartItem.objects.filter(cart=self.cart).exists())

    def test_missing_selections_are_rejected(self):
        with self.assertRaises(SelectionValidationError):
            BundleCartService.add_bundle_to_cart(self.cart, self.bundle)

    def test_complete_selections_are_added_with_slot_snapshot(self):
        selections = SlotSelections({
            self.screen_slot.id: [self.tv.id],
            self.audio_slot.id: [self.soundbar.id],
            self.extra_slot.id: [self.mount.id],
        })
        breakdown = BundlePricingService.calculate(self.bundle, selections)

        header, *children = BundleCartService.add_bundle_to_cart(self.cart, self.bundle, selections)

        self.assertEqual(len(children), 3)
        self.assertEqual(rows_total([header, *children]), breakdown.discounted_price)
        self.assertEqual(
            [entry["slot_name"] for entry in header.bundle_slot_selections],
            ["Screen", "Audio", "Extras"],
        )


class BundleGroupQuantityTests(TestCase):
    def setUp(self):
        self.cart = Cart.objects.create(session_id="rescale-session")
        self.washer = make_product("Washer", "40000")
        self.detergent = make_product("Detergent", "1000")
        self.bundle = make_fixed_bundle(
            "Laundry day",
            [(self.washer, 1), (self.detergent, 2)],
            "percentage",
            "10",
            cart_display=Bundle.CartDisplay.INDIVIDUAL,
        )

    def test_rescaling_header_scales_the_whole_group(self):
        header, *children = BundleCartService.add_bundle_to_cart(self.cart, self.bundle)
        total_for_one = rows_total([header, *children])

        CartService.update_quantity(self.cart, header.id, 3)

        rows = list(CartItem.objects.filter(cart=self.cart))
        self.assertEqual(rows_total(rows), total_for_one * 3)
        quantities = {row.product_id: row.quantity for row in rows if row.is_bundle_item}
        self.assertEqual(quantities, {self.washer.id: 3, self.detergent.id: 6})

    def test_child_quantity_cannot_be_changed_directly(self):
        _, child, *_ = BundleCartService.add_bundle_to_cart(self.cart, self.bundle)

        with self.assertRaises(CartItemError):
            CartService.update_quantity(self.cart, child.id, 5)

    def test_rescaling_beyond_bundle_stock_is_rejected(self):
        Bundle.objects.filter(pk=self.bundle.pk).update(stock_limit=2)
        self.bundle.refresh_from_db()
        header, *_ = BundleCartService.add_bundle_to_cart(self.cart, self.bundle)

        with self.assertRaises(BundleUnavailableError):
            CartService.update_quantity(self.cart, header.id, 3)

    def test_rescaling_beyond_product_stock_is_rejected(self):
        Product.objects.filter(pk=self.washer.pk).update(stock_quantity=1)
        header, *_ = BundleCartService.add_bundle_to_cart(self.cart, self.bundle)

        with self.assertRaises(OutOfStockError) as raised:
            CartService.update_quantity(self.cart, header.id, 2)

        self.assertEqual(raised.exception.errors, ["Washer"])
        quantities = {row.product_id: row.quantity for row in CartItem.objects.filter(cart=self.cart, is_bundle_item=True)}
        self.assertEqual(quantities, {self.washer.id: 1, self.detergent.id: 2})

    def test_grouped_row_rescale_checks_every_product_in_the_snapshot(self):
        grouped = make_fixed_bundle(
            "Laundry grouped", [(self.washer, 1), (self.detergent, 2)], cart_display=Bundle.CartDisplay.GROUPED
        )
        Product.objects.filter(pk=self.detergent.pk).update(stock_quantity=5)
        header, = BundleCartService.add_bundle_to_cart(self.cart, grouped)

        CartService.update_quantity(self.cart, header.id, 2)
        with self.assertRaises(OutOfStockError):
            CartService.update_quantity(self.cart, header.id, 3)

        header.refresh_from_db()
        self.assertEqual(header.quantity, 2)
