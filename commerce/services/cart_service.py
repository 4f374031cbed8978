"""Cart service for managing shopping carts."""
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction

from commerce.models import Cart, CartItem, Coupon, Product
from commerce.services.bundle_pricing_service import to_money
from commerce.services.exceptions import (
    BundleUnavailableError, CartItemError, CouponError, OutOfStockError
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartOwner:
    """Who a cart belongs to: an authenticated user, a guest session id, or both right after login."""
    user: Optional[object] = None
    session_id: str = ''

    @property
    def is_identified(self):
        return self.user is not None or bool(self.session_id)


@dataclass(frozen=True)
class CartSummary:
    subtotal: Decimal
    bundle_discount: Decimal
    coupon_discount: Decimal
    total: Decimal
    items_count: int
    coupon_code: Optional[str] = None

    @classmethod
    def empty(cls):
        zero = Decimal('0.00')
        return cls(subtotal=zero, bundle_discount=zero, coupon_discount=zero, total=zero, items_count=0)


class CartService:
    @staticmethod
    def get_cart(owner):
        """Return the owner's cart, or None if there is none yet."""
        if owner.user is not None:
            return Cart.objects.filter(user=owner.user).first()
        if owner.session_id:
            return Cart.objects.filter(session_id=owner.session_id, user__isnull=True).first()
        return None

    @classmethod
    def get_or_create_cart(cls, owner):
        """
        Get existing cart or create new one.

        Authenticated users get their own cart, with any guest cart from the
        same session merged into it. Guests without a session id get a fresh
        one, readable from `cart.session_id`.
        """
        if owner.user is not None:
            with transaction.atomic():
                cart, created = Cart.objects.get_or_create(user=owner.user)
                if owner.session_id:
                    cls._merge_session_cart(cart, owner.session_id)
            if created:
                logger.info(f"Created cart {cart.id} for user {owner.user.pk}")
            return cart

        session_id = owner.session_id or f"cart_{uuid.uuid4().hex}"
        cart, created = Cart.objects.get_or_create(session_id=session_id, user=None)
        if created:
            logger.info(f"Created guest cart {cart.id} for session {session_id}")
        return cart

    @staticmethod
    def _merge_session_cart(cart, session_id):
        session_cart = (
            Cart.objects.filter(session_id=session_id, user__isnull=True)
            .exclude(pk=cart.pk)
            .first()
        )
        if session_cart is None:
            return

        for item in session_cart.items.filter(parent_cart_item__isnull=True):
            if item.bundle_slot_selections is None and item.product_id:
                existing = cart.items.filter(
                    product_id=item.product_id,
                    bundle_slot_selections__isnull=True,
                    parent_cart_item__isnull=True,
                    is_bundle_item=False,
                ).first()
                if existing:
                    existing.quantity += item.quantity
                    existing.save(update_fields=['quantity'])
                    continue
            # Bundle groups move as a whole
            CartItem.objects.filter(pk=item.pk).update(cart=cart)
            item.children.update(cart=cart)

        if not cart.coupon_code and session_cart.coupon_code:
            cart.coupon_code = session_cart.coupon_code
            cart.save(update_fields=['coupon_code', 'updated_at'])

        logger.info(f"Merged guest cart {session_cart.id} into cart {cart.id}")
        session_cart.delete()

    @staticmethod
    def _lock(cart):
        return Cart.objects.select_for_update().get(pk=cart.pk)

    @classmethod
    def add_item(cls, cart, product, quantity=1):
        """Add a plain product row, or increase the quantity of the existing one."""
        with transaction.atomic():
            cls._lock(cart)
            product = Product.objects.select_for_update().get(pk=product.pk)
            if not product.is_active:
                raise CartItemError('This product is not available')

            existing = cart.items.filter(
                product=product,
                bundle_slot_selections__isnull=True,
                parent_cart_item__isnull=True,
                is_bundle_item=False,
            ).first()
            existing_quantity = existing.quantity if existing else 0
            if not product.is_in_stock(existing_quantity + quantity):
                raise OutOfStockError(
                    f"Only {product.stock_quantity} items available in stock (you have {existing_quantity} in cart)"
                )

            if existing:
                existing.quantity += quantity
                existing.unit_price = product.price  # Refresh in case the price changed
                existing.save(update_fields=['quantity', 'unit_price'])
                item = existing
            else:
                item = CartItem.objects.create(
                    cart=cart,
                    product=product,
                    quantity=quantity,
                    unit_price=product.price,
                )

        logger.info(f"Added {quantity} x product {product.id} to cart {cart.id}")
        return item

    @classmethod
    def update_quantity(cls, cart, item_id, quantity):
        """
        Set a row's quantity; 0 removes the row.

        Bundle rows scale as a whole: every row of the bundle group has its
        quantity and discount multiplied by new/old bundle count.
        """
        with transaction.atomic():
            cls._lock(cart)
            item = cart.items.select_related('product', 'bundle').get(pk=item_id)

            if quantity <= 0:
                cls._delete(item)
                return None

            if item.parent_cart_item_id is not None or item.is_bundle_item:
                raise CartItemError('Change the quantity of the bundle instead of its items')

            if item.is_bundle_header:
                cls._rescale_bundle_group(item, quantity)
            else:
                product = Product.objects.select_for_update().get(pk=item.product_id)
                if not product.is_in_stock(quantity):
                    raise OutOfStockError(f"Only {product.stock_quantity} items available in stock")
                item.quantity = quantity
                item.save(update_fields=['quantity'])

        logger.info(f"Set quantity of item {item_id} in cart {cart.id} to {quantity}")
        return item

    @classmethod
    def _rescale_bundle_group(cls, header, bundle_count):
        previous_count = header.quantity
        if bundle_count == previous_count:
            return
        bundle = header.bundle
        if bundle is not None and bundle.stock_remaining is not None and bundle_count > bundle.stock_remaining:
            raise BundleUnavailableError(f"Only {bundle.stock_remaining} of this bundle left")
        cls._check_bundle_group_stock(header, bundle_count)

        for row in [header, *header.children.all()]:
            per_bundle_quantity = row.quantity // previous_count
            per_bundle_discount = row.bundle_discount / previous_count
            row.quantity = per_bundle_quantity * bundle_count
            row.bundle_discount = to_money(per_bundle_discount * bundle_count)
            row.save(update_fields=['quantity', 'bundle_discount'])

    @staticmethod
    def _check_bundle_group_stock(header, bundle_count):
        """Every product of the group must cover `bundle_count` bundles; the snapshot holds per-bundle quantities."""
        wanted = Counter()
        for line in header.bundle_slot_selections or []:
            wanted[line['product_id']] += line['quantity'] * bundle_count

        products = Product.objects.select_for_update().in_bulk(list(wanted))
        out_of_stock = []
        for product_id, quantity in wanted.items():
            product = products.get(product_id)
            if product is None or not product.is_active or not product.is_in_stock(quantity):
                out_of_stock.append(product.name if product else f"#{product_id}")

        if out_of_stock:
            raise OutOfStockError(
                f"Not enough stock for {bundle_count} of this bundle: {', '.join(out_of_stock)}",
                errors=out_of_stock,
            )

    @classmethod
    def remove_item(cls, cart, item_id):
        """Remove a row. Removing any row of a bundle group removes the whole group."""
        with transaction.atomic():
            cls._lock(cart)
            item = cart.items.get(pk=item_id)
            cls._delete(item)
        logger.info(f"Removed item {item_id} from cart {cart.id}")

    @staticmethod
    def _delete(item):
        target = item.parent_cart_item if item.parent_cart_item_id else item
        # Children go with their header (on_delete=CASCADE)
        target.delete()

    @classmethod
    def clear(cls, cart):
        with transaction.atomic():
            cls._lock(cart)
            cart.items.all().delete()
            cart.coupon_code = None
            cart.save(update_fields=['coupon_code', 'updated_at'])
        logger.info(f"Cleared cart {cart.id}")

    @classmethod
    def apply_coupon(cls, cart, code):
        code = (code or '').strip().upper()
        with transaction.atomic():
            cls._lock(cart)
            if not cart.items.exists():
                raise CouponError('Your cart is empty')

            coupon = Coupon.objects.filter(code=code).first()
            if coupon is None:
                raise CouponError('Invalid coupon code')

            summary = cls.summarize(cart)
            valid, message = coupon.validate_for_amount(summary.subtotal - summary.bundle_discount)
            if not valid:
                raise CouponError(message)

            cart.coupon_code = code
            cart.save(update_fields=['coupon_code', 'updated_at'])
        logger.info(f"Applied coupon {code} to cart {cart.id}")
        return coupon

    @staticmethod
    def remove_coupon(cart):
        cart.coupon_code = None
        cart.save(update_fields=['coupon_code', 'updated_at'])

    @staticmethod
    def _coupon_eligible(item):
        # Rows of bundles that do not stack with coupons are excluded from the coupon base
        if item.bundle_id is None:
            return True
        return item.bundle is not None and item.bundle.allow_coupon_stacking

    @classmethod
    def summarize(cls, cart):
        items = list(cart.items.select_related('bundle'))
        subtotal = sum((item.unit_price * item.quantity for item in items), Decimal('0.00'))
        bundle_discount = sum((item.bundle_discount for item in items), Decimal('0.00'))
        merchandise_total = subtotal - bundle_discount

        coupon_discount = Decimal('0.00')
        if cart.coupon_code:
            coupon = Coupon.objects.filter(code=cart.coupon_code).first()
            if coupon is not None and coupon.validate_for_amount(merchandise_total)[0]:
                eligible = sum((item.total_price for item in items if cls._coupon_eligible(item)), Decimal('0.00'))
                coupon_discount = coupon.calculate_discount(eligible)

        return CartSummary(
            subtotal=to_money(subtotal),
            bundle_discount=to_money(bundle_discount),
            coupon_discount=to_money(coupon_discount),
            total=to_money(merchandise_total - coupon_discount),
            items_count=sum(item.quantity for item in items if item.parent_cart_item_id is None),
            coupon_code=cart.coupon_code,
        )
