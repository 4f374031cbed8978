"""Turns an add-bundle request into cart rows according to the bundle's cart display mode."""
import logging
from collections import Counter
from decimal import ROUND_DOWN

from django.db import transaction
from django.db.models import F

from commerce.models import Bundle, Cart, CartItem, Product
from commerce.services.bundle_pricing_service import BundlePricingService, CENT, ZERO
from commerce.services.exceptions import BundleUnavailableError, SelectionValidationError
from commerce.services.selection_service import SlotSelections, validate_selections

logger = logging.getLogger(__name__)


def allocate_discount(lines, savings):
    """
    Split `savings` across priced lines.

    Each line gets a share proportional to its line total, rounded down to the
    cent; the leftover cents go to the line with the largest total (the first
    one on ties). The shares always add up to `savings` exactly.
    """
    totals = [line.line_total for line in lines]
    original = sum(totals, ZERO)
    if savings <= 0 or original <= 0:
        return [ZERO for _ in lines]

    shares = [(savings * total / original).quantize(CENT, rounding=ROUND_DOWN) for total in totals]
    largest = max(range(len(totals)), key=lambda index: totals[index])
    shares[largest] += savings - sum(shares, ZERO)
    return shares


class BundleCartService:
    _DISPLAY_HANDLERS = {
        Bundle.CartDisplay.SINGLE_ITEM: '_add_as_single_item',
        Bundle.CartDisplay.GROUPED: '_add_as_grouped',
        Bundle.CartDisplay.INDIVIDUAL: '_add_as_individual',
    }

    @classmethod
    def add_bundle_to_cart(cls, cart, bundle, selections=None):
        """
        Add one bundle to `cart` and return the created rows.

        Adding a bundle whose group is already in the cart with the same
        contents and prices returns that group unchanged; use the quantity
        update to buy more than one.

        Everything is checked before a row is written: availability, slot
        selections for configurable bundles and stock of every product. The
        rows of one add always total the bundle's discounted price at this
        moment; later catalog changes do not touch them.
        """
        selections = selections if selections is not None else SlotSelections()

        if not bundle.is_available:
            raise BundleUnavailableError('This bundle is not currently available.')

        if bundle.is_configurable:
            if not selections:
                raise SelectionValidationError('Selections are required for this bundle.')
            result = validate_selections(bundle, selections)
            if not result.is_valid:
                raise SelectionValidationError('Invalid selections.', errors=result.errors)

        breakdown = BundlePricingService.calculate(bundle, selections)
        if not breakdown.lines:
            raise BundleUnavailableError('This bundle has no products.')
        cls._check_products_stock(breakdown.lines)

        handler = getattr(cls, cls._DISPLAY_HANDLERS.get(bundle.cart_display, '_add_as_grouped'))
        with transaction.atomic():
            Cart.objects.select_for_update().filter(pk=cart.pk).first()
            existing = cls._find_bundle_group(cart, bundle, cls._snapshot(breakdown))
            if existing:
                logger.info(f"Bundle {bundle.slug} already in cart {cart.id}, keeping row {existing[0].id}")
                return existing
            items = handler(cart, bundle, breakdown)
            Bundle.objects.filter(pk=bundle.pk).update(add_to_cart_count=F('add_to_cart_count') + 1)

        logger.info(
            f"Bundle {bundle.slug} added to cart {cart.id} as {bundle.cart_display}: "
            f"{len(items)} row(s), total {breakdown.discounted_price}"
        )
        return items

    @staticmethod
    def _check_products_stock(lines):
        wanted = Counter()
        for line in lines:
            wanted[line.product_id] += line.quantity

        products = Product.objects.in_bulk(list(wanted))
        out_of_stock = []
        for product_id, quantity in wanted.items():
            product = products.get(product_id)
            if product is None or not product.is_active or not product.is_in_stock(quantity):
                out_of_stock.append(product.name if product else f"#{product_id}")

        if out_of_stock:
            verb = 'is' if len(out_of_stock) == 1 else 'are'
            raise BundleUnavailableError(
                f"Cannot add bundle to cart: [{', '.join(out_of_stock)}] {verb} out of stock",
                errors=out_of_stock,
            )

    @staticmethod
    def _snapshot(breakdown):
        return [line.as_snapshot() for line in breakdown.lines]

    @staticmethod
    def _find_bundle_group(cart, bundle, snapshot):
        """Rows of the group already holding `bundle` with this exact snapshot, header first."""
        headers = cart.items.filter(
            bundle=bundle,
            parent_cart_item__isnull=True,
            is_bundle_item=False,
            bundle_slot_selections__isnull=False,
        )
        for header in headers:
            if header.bundle_slot_selections == snapshot:
                return [header, *header.children.all()]
        return None

    @classmethod
    def _add_as_single_item(cls, cart, bundle, breakdown):
        item = CartItem.objects.create(
            cart=cart,
            product_id=breakdown.lines[0].product_id,
            bundle=bundle,
            bundle_slot_selections=cls._snapshot(breakdown),
            quantity=1,
            unit_price=breakdown.original_price,
            bundle_discount=breakdown.savings,
        )
        return [item]

    @classmethod
    def _add_as_grouped(cls, cart, bundle, breakdown):
        header = CartItem.objects.create(
            cart=cart,
            product=None,
            bundle=bundle,
            bundle_slot_selections=cls._snapshot(breakdown),
            quantity=1,
            unit_price=breakdown.original_price,
            bundle_discount=breakdown.savings,
        )
        return [header]

    @classmethod
    def _add_as_individual(cls, cart, bundle, breakdown):
        # Header row carries no price; the children carry prices and the discount
        header = CartItem.objects.create(
            cart=cart,
            product=None,
            bundle=bundle,
            bundle_slot_selections=cls._snapshot(breakdown),
            quantity=1,
            unit_price=ZERO,
            bundle_discount=ZERO,
        )
        items = [header]
        shares = allocate_discount(breakdown.lines, breakdown.savings)
        for line, share in zip(breakdown.lines, shares):
            items.append(CartItem.objects.create(
                cart=cart,
                product_id=line.product_id,
                bundle=bundle,
                is_bundle_item=True,
                parent_cart_item=header,
                quantity=line.quantity,
                unit_price=line.unit_price,
                bundle_discount=share,
            ))
        return items

    @staticmethod
    def remove_bundle_from_cart(cart, bundle_id):
        """Remove every row added from `bundle_id`. Returns the number of rows deleted."""
        with transaction.atomic():
            Cart.objects.select_for_update().filter(pk=cart.pk).first()
            deleted, _ = cart.items.filter(bundle_id=bundle_id).delete()
        logger.info(f"Removed bundle {bundle_id} from cart {cart.id} ({deleted} row(s))")
        return deleted
