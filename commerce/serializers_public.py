"""Public API serializers for the storefront (bundles, cart)."""
from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field, OpenApiTypes
from decimal import Decimal
from commerce.models import Product, Bundle, BundleItem, BundleSlot, BundleSlotProduct, Cart, CartItem
from commerce.services.bundle_pricing_service import BundlePricingService
from commerce.services.cart_service import CartService
import logging

logger = logging.getLogger(__name__)


def _round_percentage(value):
    return value.quantize(Decimal('0.01'))


class PublicProductSerializer(serializers.ModelSerializer):
    """Catalog product as shown inside bundles and cart rows."""
    in_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'sku', 'price', 'primary_image', 'in_stock']

    @extend_schema_field(OpenApiTypes.BOOL)
    def get_in_stock(self, obj):
        return obj.is_active and obj.is_in_stock()


class PricedLineSerializer(serializers.Serializer):
    slot_id = serializers.IntegerField(allow_null=True)
    slot_name = serializers.CharField(allow_null=True)
    product_id = serializers.IntegerField()
    product_name = serializers.CharField()
    product_image = serializers.CharField(allow_blank=True)
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2)


class PricingBreakdownSerializer(serializers.Serializer):
    """Serializes a PricingBreakdown; savings_percentage is rounded for display."""
    original_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    discounted_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    savings = serializers.DecimalField(max_digits=12, decimal_places=2)
    savings_percentage = serializers.SerializerMethodField()
    discount_type = serializers.CharField()
    discount_value = serializers.DecimalField(max_digits=12, decimal_places=2)
    lines = PricedLineSerializer(many=True)

    @extend_schema_field(OpenApiTypes.DECIMAL)
    def get_savings_percentage(self, obj):
        return str(_round_percentage(obj.savings_percentage))


class PublicBundleItemSerializer(serializers.ModelSerializer):
    product = PublicProductSerializer(read_only=True)
    effective_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = BundleItem
        fields = ['id', 'product', 'quantity', 'effective_price', 'line_total']


class PublicBundleSlotProductSerializer(serializers.ModelSerializer):
    product = PublicProductSerializer(read_only=True)
    effective_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = BundleSlotProduct
        fields = ['id', 'product', 'effective_price']


class PublicBundleSlotSerializer(serializers.ModelSerializer):
    products = PublicBundleSlotProductSerializer(many=True, read_only=True)
    allows_multiple = serializers.BooleanField(read_only=True)

    class Meta:
        model = BundleSlot
        fields = [
            'id', 'name', 'description', 'slot_order', 'is_required',
            'min_selections', 'max_selections', 'allows_multiple', 'products'
        ]


class PublicBundleListSerializer(serializers.ModelSerializer):
    """Bundle card for listings. Pricing is only known up front for fixed bundles."""
    is_available = serializers.BooleanField(read_only=True)
    stock_remaining = serializers.IntegerField(read_only=True, allow_null=True)
    time_remaining = serializers.JSONField(read_only=True)
    pricing = serializers.SerializerMethodField()

    class Meta:
        model = Bundle
        fields = [
            'id', 'name', 'slug', 'short_description', 'bundle_type', 'cart_display',
            'badge_label', 'badge_color', 'featured_image', 'cta_text',
            'show_savings', 'show_countdown', 'homepage_position',
            'is_available', 'stock_remaining', 'time_remaining', 'pricing'
        ]

    @extend_schema_field(PricingBreakdownSerializer(allow_null=True))
    def get_pricing(self, obj):
        if not obj.is_fixed:
            return None
        return PricingBreakdownSerializer(BundlePricingService.calculate(obj)).data


class PublicBundleDetailSerializer(PublicBundleListSerializer):
    """Bundle detail: adds the description, fixed items and configurable slots."""
    items = PublicBundleItemSerializer(many=True, read_only=True)
    slots = PublicBundleSlotSerializer(many=True, read_only=True)

    class Meta(PublicBundleListSerializer.Meta):
        fields = PublicBundleListSerializer.Meta.fields + [
            'description', 'sku', 'discount_type', 'discount_value', 'allow_coupon_stacking',
            'starts_at', 'ends_at', 'items', 'slots'
        ]


class SelectionEntrySerializer(serializers.Serializer):
    """One slot's choice: `product_ids`, or a single `product_id`."""
    slot_id = serializers.IntegerField()
    product_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    product_id = serializers.IntegerField(required=False)

    def validate(self, data):
        if 'product_ids' not in data and 'product_id' not in data:
            raise serializers.ValidationError('Provide product_ids or product_id.')
        return data


class BundleCalculateRequestSerializer(serializers.Serializer):
    selections = SelectionEntrySerializer(many=True, required=False, default=list)


class BundleCalculateResponseSerializer(PricingBreakdownSerializer):
    is_complete = serializers.BooleanField()
    missing_required_slots = serializers.ListField(child=serializers.IntegerField())
    errors = serializers.ListField(child=serializers.CharField())


# --- CART ---

class CartItemSerializer(serializers.ModelSerializer):
    """Cart row. Individual-mode bundle headers carry their product rows in `children`."""
    product = PublicProductSerializer(read_only=True)
    bundle_name = serializers.CharField(source='bundle.name', read_only=True, allow_null=True)
    bundle_slug = serializers.CharField(source='bundle.slug', read_only=True, allow_null=True)
    is_bundle_header = serializers.BooleanField(read_only=True)
    is_available = serializers.BooleanField(read_only=True)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    children = serializers.SerializerMethodField()

    class Meta:
        model = CartItem
        fields = [
            'id', 'product', 'bundle', 'bundle_name', 'bundle_slug', 'is_bundle_item',
            'is_bundle_header', 'parent_cart_item', 'bundle_slot_selections', 'quantity',
            'unit_price', 'bundle_discount', 'total_price', 'is_available', 'added_at', 'children'
        ]

    @extend_schema_field(OpenApiTypes.OBJECT)
    def get_children(self, obj):
        return CartItemSerializer(obj.children.all(), many=True, context=self.context).data


class CartSummarySerializer(serializers.Serializer):
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    bundle_discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    coupon_discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    items_count = serializers.IntegerField()
    coupon_code = serializers.CharField(allow_null=True)


class CartSerializer(serializers.ModelSerializer):
    """Cart with top-level rows and its summary (passed in the context)."""
    items = serializers.SerializerMethodField()
    summary = serializers.SerializerMethodField()

    class Meta:
        model = Cart
        fields = ['id', 'session_id', 'coupon_code', 'items', 'summary', 'updated_at']

    @extend_schema_field(CartItemSerializer(many=True))
    def get_items(self, obj):
        rows = (
            obj.items.filter(parent_cart_item__isnull=True)
            .select_related('product', 'bundle')
            .prefetch_related('children__product', 'children__bundle')
        )
        return CartItemSerializer(rows, many=True, context=self.context).data

    @extend_schema_field(CartSummarySerializer)
    def get_summary(self, obj):
        summary = self.context.get('summary')
        if summary is None:
            summary = CartService.summarize(obj)
        return CartSummarySerializer(summary).data


class CartItemCreateSerializer(serializers.Serializer):
    """Serializer for adding a product to the cart."""
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(required=False, default=1, min_value=1, max_value=100)


class CartItemUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0, max_value=100)


class CouponApplySerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)


class CartBundleCreateSerializer(serializers.Serializer):
    """Serializer for adding a bundle to the cart."""
    bundle_slug = serializers.SlugField(max_length=255)
    selections = SelectionEntrySerializer(many=True, required=False, default=list)
