from decimal import Decimal

from commerce.models import Bundle, BundleItem, BundleSlot, BundleSlotProduct, Product


def make_product(name, price, stock=10, **kwargs):
    return Product.objects.create(name=name, price=Decimal(price), stock_quantity=stock, **kwargs)


def make_fixed_bundle(name, products, discount_type="percentage", discount_value="0", **kwargs):
    """`products` is a list of (product, quantity) pairs."""
    bundle = Bundle.objects.create(
        name=name,
        bundle_type=Bundle.BundleType.FIXED,
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        **kwargs,
    )
    for order, (product, quantity) in enumerate(products):
        BundleItem.objects.create(bundle=bundle, product=product, quantity=quantity, sort_order=order)
    return bundle


def make_configurable_bundle(name, discount_type="percentage", discount_value="0", **kwargs):
    return Bundle.objects.create(
        name=name,
        bundle_type=Bundle.BundleType.CONFIGURABLE,
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        **kwargs,
    )


def add_slot(bundle, name, products, is_required=True, min_selections=1, max_selections=1, order=0):
    slot = BundleSlot.objects.create(
        bundle=bundle,
        name=name,
        is_required=is_required,
        min_selections=min_selections,
        max_selections=max_selections,
        slot_order=order,
    )
    for index, product in enumerate(products):
        BundleSlotProduct.objects.create(slot=slot, product=product, sort_order=index)
    return slot
