from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.conf import settings
from django.utils import timezone
from django.utils.text import slugify
from django.utils.translation import gettext_lazy as _
from decimal import Decimal


# -------------------------------------------------------------------------
# 1. CATALOG MODELS (read-only to the storefront)
# -------------------------------------------------------------------------

class Product(models.Model):
    """Sellable catalog product. Owned by the catalog; the cart only reads it."""
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    sku = models.CharField(max_length=100, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.00'))])
    stock_quantity = models.PositiveIntegerField(default=0)
    track_inventory = models.BooleanField(default=True)
    allow_backorders = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    primary_image = models.URLField(max_length=500, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = _unique_slug(Product, self.name, self.pk)
        super().save(*args, **kwargs)

    def is_in_stock(self, quantity=1):
        """True when `quantity` units can be sold right now."""
        if not self.track_inventory or self.allow_backorders:
            return True
        return self.stock_quantity >= quantity

    def __str__(self):
        return self.name


def _unique_slug(model, value, instance_pk=None):
    base = slugify(value)[:240] or 'item'
    slug = base
    counter = 2
    while model.objects.filter(slug=slug).exclude(pk=instance_pk).exists():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


# -------------------------------------------------------------------------
# 2. BUNDLE MODELS
# -------------------------------------------------------------------------

class Bundle(models.Model):
    """
    A purchasable grouping of products sold together, optionally at a discount.

    Fixed bundles list their products in `items`; configurable bundles expose
    `slots` the customer fills in. Prices are never stored on the bundle, they
    are computed by BundlePricingService from the current items/selections.
    """
    class BundleType(models.TextChoices):
        FIXED = 'fixed', _('Fixed')
        CONFIGURABLE = 'configurable', _('Configurable')

    class DiscountType(models.TextChoices):
        FIXED_PRICE = 'fixed_price', _('Fixed Bundle Price')
        PERCENTAGE = 'percentage', _('Percentage Off Items Total')

    class CartDisplay(models.TextChoices):
        SINGLE_ITEM = 'single_item', _('Single Cart Line')
        GROUPED = 'grouped', _('Grouped Under Bundle')
        INDIVIDUAL = 'individual', _('Individual Product Lines')

    class HomepagePosition(models.TextChoices):
        CAROUSEL = 'carousel', _('Carousel')
        GRID = 'grid', _('Grid')
        BANNER = 'banner', _('Banner')

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    sku = models.CharField(max_length=100, unique=True, null=True, blank=True)
    description = models.TextField(blank=True)
    short_description = models.CharField(max_length=500, blank=True)

    bundle_type = models.CharField(max_length=20, choices=BundleType.choices, default=BundleType.FIXED)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    discount_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Bundle price for fixed_price bundles, percent off (0-100) for percentage bundles"
    )
    cart_display = models.CharField(max_length=20, choices=CartDisplay.choices, default=CartDisplay.GROUPED)
    allow_coupon_stacking = models.BooleanField(default=False, help_text="Allow cart coupons on top of the bundle discount")

    # Availability
    is_active = models.BooleanField(default=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    stock_limit = models.PositiveIntegerField(null=True, blank=True, help_text="Leave empty for unlimited")
    stock_sold = models.PositiveIntegerField(default=0)

    # Display / marketing
    badge_label = models.CharField(max_length=50, blank=True)
    badge_color = models.CharField(max_length=20, blank=True)
    featured_image = models.URLField(max_length=500, blank=True)
    cta_text = models.CharField(max_length=100, blank=True, default='Add Bundle to Cart')
    show_countdown = models.BooleanField(default=False)
    show_savings = models.BooleanField(default=True)
    show_on_homepage = models.BooleanField(default=False)
    homepage_position = models.CharField(max_length=20, choices=HomepagePosition.choices, blank=True)
    display_order = models.PositiveIntegerField(default=0)

    # Analytics
    view_count = models.PositiveIntegerField(default=0)
    add_to_cart_count = models.PositiveIntegerField(default=0)
    purchase_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', '-created_at']
        indexes = [
            models.Index(fields=['is_active', 'bundle_type'], name='bundle_active_type_idx'),
            models.Index(fields=['show_on_homepage', 'homepage_position'], name='bundle_homepage_idx'),
        ]

    def clean(self):
        if self.discount_type == self.DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValidationError({'discount_value': 'Percentage discount cannot exceed 100.'})
        if self.starts_at and self.ends_at and self.ends_at < self.starts_at:
            raise ValidationError({'ends_at': 'End date must be after the start date.'})

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = _unique_slug(Bundle, self.name, self.pk)
        super().save(*args, **kwargs)

    @property
    def is_fixed(self):
        return self.bundle_type == self.BundleType.FIXED

    @property
    def is_configurable(self):
        return self.bundle_type == self.BundleType.CONFIGURABLE

    @property
    def is_available(self):
        """Active, inside the sale window and not sold out."""
        now = timezone.now()
        if not self.is_active:
            return False
        if self.starts_at and self.starts_at > now:
            return False
        if self.ends_at and self.ends_at < now:
            return False
        if self.stock_limit is not None and self.stock_sold >= self.stock_limit:
            return False
        return True

    @property
    def stock_remaining(self):
        if self.stock_limit is None:
            return None
        return max(0, self.stock_limit - self.stock_sold)

    @property
    def time_remaining(self):
        """Countdown until ends_at, or None when no countdown is shown."""
        if not self.ends_at or not self.show_countdown:
            return None
        now = timezone.now()
        if self.ends_at < now:
            return None
        delta = self.ends_at - now
        total_seconds = int(delta.total_seconds())
        return {
            'days': delta.days,
            'hours': delta.seconds // 3600,
            'minutes': (delta.seconds % 3600) // 60,
            'seconds': delta.seconds % 60,
            'total_seconds': total_seconds,
        }

    def duplicate(self):
        """Clone this bundle (items, slots and slot products) as an inactive copy."""
        clone = Bundle.objects.create(
            name=f"{self.name} (Copy)",
            description=self.description,
            short_description=self.short_description,
            bundle_type=self.bundle_type,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
            cart_display=self.cart_display,
            allow_coupon_stacking=self.allow_coupon_stacking,
            is_active=False,
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            stock_limit=self.stock_limit,
            badge_label=self.badge_label,
            badge_color=self.badge_color,
            featured_image=self.featured_image,
            cta_text=self.cta_text,
            show_countdown=self.show_countdown,
            show_savings=self.show_savings,
            show_on_homepage=self.show_on_homepage,
            homepage_position=self.homepage_position,
            display_order=self.display_order,
        )
        for item in self.items.all():
            BundleItem.objects.create(
                bundle=clone,
                product_id=item.product_id,
                quantity=item.quantity,
                price_override=item.price_override,
                sort_order=item.sort_order,
            )
        for slot in self.slots.all():
            new_slot = BundleSlot.objects.create(
                bundle=clone,
                name=slot.name,
                description=slot.description,
                slot_order=slot.slot_order,
                is_required=slot.is_required,
                min_selections=slot.min_selections,
                max_selections=slot.max_selections,
            )
            for slot_product in slot.products.all():
                BundleSlotProduct.objects.create(
                    slot=new_slot,
                    product_id=slot_product.product_id,
                    price_override=slot_product.price_override,
                    sort_order=slot_product.sort_order,
                )
        return clone

    def __str__(self):
        return f"{self.name} ({self.get_bundle_type_display()})"


class BundleItem(models.Model):
    """A product (and quantity) that is part of a fixed bundle."""
    bundle = models.ForeignKey(Bundle, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='bundle_items')
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    price_override = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Optional price for this product inside the bundle"
    )
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ['sort_order', 'id']
        unique_together = ['bundle', 'product']

    @property
    def effective_price(self):
        if self.price_override is not None:
            return self.price_override
        return self.product.price if self.product_id else Decimal('0.00')

    @property
    def line_total(self):
        return self.effective_price * self.quantity

    def __str__(self):
        return f"{self.quantity} x {self.product.name} in {self.bundle.name}"


class BundleSlot(models.Model):
    """A named selection point of a configurable bundle."""
    bundle = models.ForeignKey(Bundle, on_delete=models.CASCADE, related_name='slots')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    slot_order = models.IntegerField(default=0)
    is_required = models.BooleanField(default=True)
    min_selections = models.PositiveIntegerField(default=1)
    max_selections = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        ordering = ['slot_order', 'id']

    def clean(self):
        if self.max_selections < 1:
            raise ValidationError({'max_selections': 'A slot must allow at least one selection.'})
        if self.min_selections > self.max_selections:
            raise ValidationError({'min_selections': 'Minimum selections cannot exceed maximum selections.'})

    @property
    def allows_multiple(self):
        return self.max_selections > 1

    def __str__(self):
        return f"{self.name} ({self.bundle.name})"


class BundleSlotProduct(models.Model):
    """A product offered in a bundle slot."""
    slot = models.ForeignKey(BundleSlot, on_delete=models.CASCADE, related_name='products')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='bundle_slot_entries')
    price_override = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
    )
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ['sort_order', 'id']
        unique_together = ['slot', 'product']

    @property
    def effective_price(self):
        if self.price_override is not None:
            return self.price_override
        return self.product.price if self.product_id else Decimal('0.00')

    def __str__(self):
        return f"{self.product.name} in slot {self.slot.name}"


# -------------------------------------------------------------------------
# 3. CART MODELS
# -------------------------------------------------------------------------

class Coupon(models.Model):
    """Cart-level discount code."""
    class CouponType(models.TextChoices):
        PERCENTAGE = 'percentage', _('Percentage')
        FIXED = 'fixed', _('Fixed Amount')
        FREE_SHIPPING = 'free_shipping', _('Free Shipping')

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=255, blank=True)
    coupon_type = models.CharField(max_length=20, choices=CouponType.choices, default=CouponType.PERCENTAGE)
    value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    minimum_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    maximum_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    times_used = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def validate_for_amount(self, amount):
        """Return (valid, message) for applying this coupon to `amount`."""
        now = timezone.now()
        if not self.is_active:
            return False, 'This coupon is not active'
        if self.starts_at and self.starts_at > now:
            return False, 'This coupon is not yet active'
        if self.expires_at and self.expires_at < now:
            return False, 'This coupon has expired'
        if self.usage_limit is not None and self.times_used >= self.usage_limit:
            return False, 'This coupon has reached its usage limit'
        if self.minimum_order_amount and amount < self.minimum_order_amount:
            return False, f'Minimum order amount is Rs. {self.minimum_order_amount}'
        return True, 'Coupon is valid'

    def calculate_discount(self, amount):
        if self.coupon_type == self.CouponType.PERCENTAGE:
            discount = (amount * self.value / Decimal('100')).quantize(Decimal('0.01'))
        elif self.coupon_type == self.CouponType.FIXED:
            discount = self.value
        else:
            # Free shipping is settled at checkout, not on the cart
            discount = Decimal('0.00')

        if self.maximum_discount is not None and discount > self.maximum_discount:
            discount = self.maximum_discount
        return max(Decimal('0.00'), min(discount, amount))

    def __str__(self):
        return self.code


class Cart(models.Model):
    """Shopping cart owned by an authenticated user or a guest session."""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='cart'
    )
    session_id = models.CharField(max_length=100, db_index=True, blank=True)
    coupon_code = models.CharField(max_length=50, blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        owner = self.user.get_username() if self.user_id else self.session_id
        return f"Cart {self.id} ({owner})"


class CartItem(models.Model):
    """
    A cart line. Plain product rows have only `product`; bundle rows carry the
    bundle, a snapshot of the chosen products and the price locked at add time.
    """
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, null=True, blank=True)
    bundle = models.ForeignKey(
        Bundle,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cart_items',
        help_text="Bundle this row was added from (if any)"
    )
    is_bundle_item = models.BooleanField(default=False, help_text="Row is a product line inside a bundle group")
    parent_cart_item = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='children'
    )
    bundle_slot_selections = models.JSONField(null=True, blank=True, help_text="Snapshot of the bundle contents")
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1), MaxValueValidator(100)])
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Price at time of adding to cart"
    )
    bundle_discount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Bundle discount applied to this row at its current quantity"
    )
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['added_at', 'id']
        indexes = [
            models.Index(fields=['cart', 'bundle'], name='cartitem_cart_bundle_idx'),
        ]

    @property
    def is_bundle_header(self):
        """Bundle-level row (single_item, grouped or individual header). Only these carry the snapshot."""
        return self.parent_cart_item_id is None and not self.is_bundle_item and self.bundle_slot_selections is not None

    @property
    def total_price(self):
        return self.unit_price * self.quantity - self.bundle_discount

    @property
    def is_available(self):
        if self.is_bundle_header:
            return self.bundle is not None and self.bundle.is_available
        if self.product is None:
            return False
        return self.product.is_active and self.product.is_in_stock(self.quantity)

    def __str__(self):
        label = self.product.name if self.product_id else (self.bundle.name if self.bundle_id else 'item')
        return f"{label} in Cart {self.cart_id}"

