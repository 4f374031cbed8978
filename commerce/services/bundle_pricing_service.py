"""Bundle price calculation."""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from django.db.models import Prefetch

from commerce.models import Bundle, BundleItem, BundleSlot, BundleSlotProduct
from commerce.services.selection_service import SlotSelections

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
HUNDRED = Decimal('100')
ZERO = Decimal('0.00')


def to_money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    """One priced product of a bundle (a fixed item or a selected slot product)."""
    product_id: int
    product_name: str
    product_image: str
    quantity: int
    unit_price: Decimal
    slot_id: Optional[int] = None
    slot_name: Optional[str] = None

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    def as_snapshot(self):
        """JSON-safe form stored on cart rows."""
        return {
            'slot_id': self.slot_id,
            'slot_name': self.slot_name,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'product_image': self.product_image,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
        }


@dataclass(frozen=True)
class PricingBreakdown:
    original_price: Decimal
    discounted_price: Decimal
    savings: Decimal
    savings_percentage: Decimal
    discount_type: str
    discount_value: Decimal
    lines: Tuple[PricedLine, ...] = ()


def with_pricing_relations(queryset):
    """Prefetch everything BundlePricingService touches, so pricing a bundle costs no extra queries."""
    return queryset.prefetch_related(
        Prefetch('items', queryset=BundleItem.objects.select_related('product')),
        Prefetch(
            'slots',
            queryset=BundleSlot.objects.prefetch_related(
                Prefetch('products', queryset=BundleSlotProduct.objects.select_related('product'))
            ),
        ),
    )


class BundlePricingService:
    """
    Pure price calculation for bundles.

    The result depends only on the bundle definition and the selections passed
    in; nothing is cached or persisted here.
    """

    @classmethod
    def calculate(cls, bundle, selections=None):
        """Return the PricingBreakdown for a fixed bundle or a configurable bundle's selections."""
        lines = cls.price_lines(bundle, selections)
        original = to_money(sum((line.line_total for line in lines), ZERO))
        discounted = cls.apply_discount(bundle, original)
        savings = original - discounted
        if original > 0:
            savings_percentage = savings / original * HUNDRED
        else:
            savings_percentage = Decimal('0')

        return PricingBreakdown(
            original_price=original,
            discounted_price=discounted,
            savings=savings,
            savings_percentage=savings_percentage,
            discount_type=bundle.discount_type,
            discount_value=bundle.discount_value,
            lines=tuple(lines),
        )

    @staticmethod
    def apply_discount(bundle, original_price):
        """
        Discounted price for an items total.

        A zero discount_value means no discount for either discount type.
        fixed_price sells the bundle at discount_value, never above the items
        total; percentage takes discount_value percent off, never below zero.
        """
        value = bundle.discount_value or ZERO
        if value <= 0 or original_price <= 0:
            return original_price

        if bundle.discount_type == Bundle.DiscountType.FIXED_PRICE:
            return min(to_money(value), original_price)

        discount = to_money(original_price * value / HUNDRED)
        return max(ZERO, original_price - discount)

    @classmethod
    def price_lines(cls, bundle, selections=None):
        if bundle.is_fixed:
            return cls._fixed_lines(bundle)
        return cls._selected_lines(bundle, selections or SlotSelections())

    @staticmethod
    def _fixed_lines(bundle):
        lines = []
        for item in bundle.items.all():
            lines.append(PricedLine(
                product_id=item.product_id,
                product_name=item.product.name,
                product_image=item.product.primary_image,
                quantity=item.quantity,
                unit_price=to_money(item.effective_price),
            ))
        return lines

    @staticmethod
    def _selected_lines(bundle, selections):
        lines = []
        slots = list(bundle.slots.all())
        known_slot_ids = {slot.id for slot in slots}
        ignored = [slot_id for slot_id in selections if slot_id not in known_slot_ids]
        if ignored:
            logger.warning(f"Ignoring selections for unknown slots {ignored} on bundle {bundle.id}")

        for slot in slots:
            offered = {slot_product.product_id: slot_product for slot_product in slot.products.all()}
            for product_id in selections.get(slot.id, ()):
                slot_product = offered.get(product_id)
                if slot_product is None:
                    logger.warning(f"Ignoring product {product_id} not offered in slot {slot.id} of bundle {bundle.id}")
                    continue
                lines.append(PricedLine(
                    product_id=product_id,
                    product_name=slot_product.product.name,
                    product_image=slot_product.product.primary_image,
                    quantity=1,
                    unit_price=to_money(slot_product.effective_price),
                    slot_id=slot.id,
                    slot_name=slot.name,
                ))
        return lines
