from rest_framework import serializers
from .models import Product, Bundle, BundleItem, BundleSlot, BundleSlotProduct, Coupon
from decimal import Decimal
from django.db import transaction
import logging

logger = logging.getLogger(__name__)

# --- CATALOG SERIALIZERS ---

class ProductSerializer(serializers.ModelSerializer):
    """Serializes the Product model for the admin API."""
    class Meta:
        model = Product
        fields = (
            'id', 'name', 'slug', 'sku', 'price', 'stock_quantity', 'track_inventory',
            'allow_backorders', 'is_active', 'primary_image', 'created_at', 'updated_at'
        )
        read_only_fields = ('id', 'created_at', 'updated_at')
        extra_kwargs = {'slug': {'required': False}}


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = (
            'id', 'code', 'name', 'coupon_type', 'value', 'minimum_order_amount', 'maximum_discount',
            'usage_limit', 'times_used', 'is_active', 'starts_at', 'expires_at', 'created_at'
        )
        read_only_fields = ('id', 'times_used', 'created_at')

    def validate_code(self, value):
        return value.strip().upper()

    def validate(self, data):
        coupon_type = data.get('coupon_type', getattr(self.instance, 'coupon_type', None))
        value = data.get('value', getattr(self.instance, 'value', Decimal('0.00')))
        if coupon_type == Coupon.CouponType.PERCENTAGE and value > 100:
            raise serializers.ValidationError({'value': 'Percentage coupons cannot exceed 100.'})
        return data


# --- BUNDLE SERIALIZERS ---

class BundleItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    effective_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = BundleItem
        fields = ('id', 'product', 'product_name', 'quantity', 'price_override', 'effective_price', 'sort_order')
        read_only_fields = ('id',)


class BundleSlotProductSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    effective_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = BundleSlotProduct
        fields = ('id', 'product', 'product_name', 'price_override', 'effective_price', 'sort_order')
        read_only_fields = ('id',)


class BundleSlotSerializer(serializers.ModelSerializer):
    products = BundleSlotProductSerializer(many=True, required=False)

    class Meta:
        model = BundleSlot
        fields = (
            'id', 'name', 'description', 'slot_order', 'is_required',
            'min_selections', 'max_selections', 'products'
        )
        read_only_fields = ('id',)

    def validate(self, data):
        min_selections = data.get('min_selections', 1)
        max_selections = data.get('max_selections', 1)
        if max_selections < 1:
            raise serializers.ValidationError({'max_selections': 'A slot must allow at least one selection.'})
        if min_selections > max_selections:
            raise serializers.ValidationError({'min_selections': 'Minimum selections cannot exceed maximum selections.'})

        product_ids = [entry['product'].id for entry in data.get('products', [])]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError({'products': 'A product can only be offered once per slot.'})
        return data


class BundleSerializer(serializers.ModelSerializer):
    """
    Bundle with its fixed items and configurable slots.

    Nested `items` and `slots` are writable; when present on update they
    replace the existing ones.
    """
    items = BundleItemSerializer(many=True, required=False)
    slots = BundleSlotSerializer(many=True, required=False)
    is_available = serializers.BooleanField(read_only=True)
    stock_remaining = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Bundle
        fields = (
            'id', 'name', 'slug', 'sku', 'description', 'short_description',
            'bundle_type', 'discount_type', 'discount_value', 'cart_display', 'allow_coupon_stacking',
            'is_active', 'starts_at', 'ends_at', 'stock_limit', 'stock_sold',
            'badge_label', 'badge_color', 'featured_image', 'cta_text', 'show_countdown', 'show_savings',
            'show_on_homepage', 'homepage_position', 'display_order',
            'view_count', 'add_to_cart_count', 'purchase_count',
            'is_available', 'stock_remaining', 'items', 'slots', 'created_at', 'updated_at'
        )
        read_only_fields = (
            'id', 'stock_sold', 'view_count', 'add_to_cart_count', 'purchase_count', 'created_at', 'updated_at'
        )
        extra_kwargs = {'slug': {'required': False}}

    def _current(self, data, name, default=None):
        if name in data:
            return data[name]
        return getattr(self.instance, name, default)

    def validate(self, data):
        discount_type = self._current(data, 'discount_type', Bundle.DiscountType.PERCENTAGE)
        discount_value = self._current(data, 'discount_value', Decimal('0.00'))
        if discount_type == Bundle.DiscountType.PERCENTAGE and discount_value > 100:
            raise serializers.ValidationError({'discount_value': 'Percentage discount cannot exceed 100.'})

        starts_at = self._current(data, 'starts_at')
        ends_at = self._current(data, 'ends_at')
        if starts_at and ends_at and ends_at < starts_at:
            raise serializers.ValidationError({'ends_at': 'End date must be after the start date.'})

        product_ids = [entry['product'].id for entry in data.get('items', [])]
        if len(product_ids) != len(set(product_ids)):
            raise serializers.ValidationError({'items': 'A product can only appear once in a bundle.'})
        return data

    def _write_children(self, bundle, items, slots):
        if items is not None:
            bundle.items.all().delete()
            for item in items:
                BundleItem.objects.create(bundle=bundle, **item)
        if slots is not None:
            bundle.slots.all().delete()
            for slot_data in slots:
                slot_products = slot_data.pop('products', [])
                slot = BundleSlot.objects.create(bundle=bundle, **slot_data)
                for slot_product in slot_products:
                    BundleSlotProduct.objects.create(slot=slot, **slot_product)

    @transaction.atomic
    def create(self, validated_data):
        items = validated_data.pop('items', None)
        slots = validated_data.pop('slots', None)
        bundle = super().create(validated_data)
        self._write_children(bundle, items, slots)
        logger.info(f"Bundle {bundle.slug} created")
        return bundle

    @transaction.atomic
    def update(self, instance, validated_data):
        items = validated_data.pop('items', None)
        slots = validated_data.pop('slots', None)
        instance = super().update(instance, validated_data)
        self._write_children(instance, items, slots)
        logger.info(f"Bundle {instance.slug} updated")
        return instance
