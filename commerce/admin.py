from django.contrib import admin
from .models import (
    Product, Bundle, BundleItem, BundleSlot, BundleSlotProduct, Coupon, Cart, CartItem
)

# --- INLINE CLASSES ---

class BundleItemInline(admin.TabularInline):
    """Products of a fixed bundle."""
    model = BundleItem
    extra = 1
    fields = ['product', 'quantity', 'price_override', 'sort_order']
    autocomplete_fields = ['product']


class BundleSlotInline(admin.TabularInline):
    """Slots of a configurable bundle. Slot products are edited on the slot itself."""
    model = BundleSlot
    extra = 0
    fields = ['name', 'slot_order', 'is_required', 'min_selections', 'max_selections']
    show_change_link = True


class BundleSlotProductInline(admin.TabularInline):
    model = BundleSlotProduct
    extra = 1
    fields = ['product', 'price_override', 'sort_order']
    autocomplete_fields = ['product']


class CartItemInline(admin.TabularInline):
    """Read-only view of the rows in a cart."""
    model = CartItem
    extra = 0
    fk_name = 'cart'
    readonly_fields = (
        'product', 'bundle', 'is_bundle_item', 'parent_cart_item', 'quantity', 'unit_price', 'bundle_discount'
    )
    exclude = ('bundle_slot_selections',)
    can_delete = False


# --- CATALOG ---

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'sku', 'price', 'stock_quantity', 'is_active')
    list_filter = ('is_active', 'track_inventory', 'allow_backorders')
    search_fields = ('name', 'sku')
    prepopulated_fields = {'slug': ('name',)}


@admin.register(Bundle)
class BundleAdmin(admin.ModelAdmin):
    """Bundle authoring: items for fixed bundles, slots for configurable ones."""
    list_display = (
        'name', 'bundle_type', 'discount_type', 'discount_value', 'cart_display',
        'is_active', 'show_on_homepage', 'add_to_cart_count'
    )
    list_filter = ('bundle_type', 'discount_type', 'cart_display', 'is_active', 'show_on_homepage')
    search_fields = ('name', 'sku', 'slug')
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ('stock_sold', 'view_count', 'add_to_cart_count', 'purchase_count', 'created_at', 'updated_at')
    actions = ['duplicate_bundles']

    fieldsets = (
        ('Core Details', {
            'fields': ('name', 'slug', 'sku', 'short_description', 'description', 'bundle_type')
        }),
        ('Pricing & Cart', {
            'fields': ('discount_type', 'discount_value', 'cart_display', 'allow_coupon_stacking')
        }),
        ('Availability', {
            'fields': ('is_active', 'starts_at', 'ends_at', 'stock_limit', 'stock_sold')
        }),
        ('Display', {
            'fields': (
                'badge_label', 'badge_color', 'featured_image', 'cta_text', 'show_countdown',
                'show_savings', 'show_on_homepage', 'homepage_position', 'display_order'
            ),
        }),
        ('Analytics', {
            'fields': ('view_count', 'add_to_cart_count', 'purchase_count', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    inlines = [BundleItemInline, BundleSlotInline]

    @admin.action(description='Duplicate selected bundles (inactive copies)')
    def duplicate_bundles(self, request, queryset):
        for bundle in queryset:
            bundle.duplicate()
        self.message_user(request, f"Duplicated {queryset.count()} bundle(s).")


@admin.register(BundleSlot)
class BundleSlotAdmin(admin.ModelAdmin):
    list_display = ('name', 'bundle', 'slot_order', 'is_required', 'min_selections', 'max_selections')
    list_select_related = ('bundle',)
    search_fields = ('name', 'bundle__name')
    inlines = [BundleSlotProductInline]


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ('code', 'coupon_type', 'value', 'is_active', 'times_used', 'usage_limit', 'expires_at')
    list_filter = ('coupon_type', 'is_active')
    search_fields = ('code', 'name')
    readonly_fields = ('times_used', 'created_at')


# --- CARTS ---

@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'session_id', 'coupon_code', 'updated_at')
    search_fields = ('session_id', 'user__username', 'user__email')
    inlines = [CartItemInline]
