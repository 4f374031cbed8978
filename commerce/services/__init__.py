# Services package
from .bundle_pricing_service import BundlePricingService
from .bundle_cart_service import BundleCartService
from .cart_service import CartService, CartOwner, CartSummary
from .selection_service import SlotSelections, SelectionResult, validate_selections

__all__ = [
    'BundlePricingService', 'BundleCartService', 'CartService', 'CartOwner', 'CartSummary',
    'SlotSelections', 'SelectionResult', 'validate_selections',
]
