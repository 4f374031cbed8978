"""Middleware for cart ownership."""
from django.conf import settings
from commerce.services.cart_service import CartOwner
import logging

logger = logging.getLogger(__name__)


class CartOwnerMiddleware:
    """Attach `request.cart_owner` from the authenticated user and the guest session header."""
    def __init__(self, get_response):
        self.get_response = get_response
        self.header_name = getattr(settings, 'CART_SESSION_HEADER', 'X-Session-ID')

    def __call__(self, request):
        session_id = request.headers.get(self.header_name, '').strip()
        user = getattr(request, 'user', None)
        if user is not None and not user.is_authenticated:
            user = None

        request.cart_owner = CartOwner(user=user, session_id=session_id[:100])
        if session_id:
            logger.debug(f'Cart session from header: {session_id}')

        return self.get_response(request)
