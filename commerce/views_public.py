"""Public API ViewSets for the storefront frontend."""
from rest_framework import viewsets, permissions, status, filters
from rest_framework.pagination import PageNumberPagination
from rest_framework.decorators import action
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiTypes, OpenApiParameter
from django_filters.rest_framework import DjangoFilterBackend
from django.conf import settings
from django.db.models import F, Q
from django.utils import timezone
from commerce.models import Bundle, Product, CartItem
from commerce.serializers_public import (
    PublicBundleListSerializer, PublicBundleDetailSerializer, PricingBreakdownSerializer,
    BundleCalculateRequestSerializer, BundleCalculateResponseSerializer,
    CartSerializer, CartSummarySerializer, CartItemCreateSerializer, CartItemUpdateSerializer,
    CouponApplySerializer, CartBundleCreateSerializer
)
from commerce.services.bundle_cart_service import BundleCartService
from commerce.services.bundle_pricing_service import BundlePricingService, with_pricing_relations
from commerce.services.cart_service import CartOwner, CartService, CartSummary
from commerce.services.exceptions import CommerceError, CouponError
from commerce.services.selection_service import SlotSelections, validate_selections
import logging

logger = logging.getLogger(__name__)


def available_bundles():
    """Bundles that can be sold right now: active, inside their sale window and not sold out."""
    now = timezone.now()
    return Bundle.objects.filter(
        Q(starts_at__isnull=True) | Q(starts_at__lte=now),
        Q(ends_at__isnull=True) | Q(ends_at__gte=now),
        Q(stock_limit__isnull=True) | Q(stock_sold__lt=F('stock_limit')),
        is_active=True,
    )


def get_cart_owner(request):
    """Owner for this request; DRF authenticates the user after Django middleware has run."""
    owner = getattr(request, 'cart_owner', None)
    session_id = owner.session_id if owner else ''
    user = request.user if request.user and request.user.is_authenticated else None
    return CartOwner(user=user, session_id=session_id)


def error_response(exc):
    return Response(exc.as_response_data(), status=exc.status_code)


class PublicBundlePagination(PageNumberPagination):
    page_size = getattr(settings, 'BUNDLES_PAGE_SIZE', 12)
    page_size_query_param = 'page_size'
    max_page_size = getattr(settings, 'BUNDLES_MAX_PAGE_SIZE', 50)


@extend_schema_view(
    list=extend_schema(
        parameters=[
            OpenApiParameter('page', OpenApiTypes.INT, OpenApiParameter.QUERY),
            OpenApiParameter('page_size', OpenApiTypes.INT, OpenApiParameter.QUERY),
            OpenApiParameter('bundle_type', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('search', OpenApiTypes.STR, OpenApiParameter.QUERY),
            OpenApiParameter('ordering', OpenApiTypes.STR, OpenApiParameter.QUERY),
        ]
    )
)
class PublicBundleViewSet(viewsets.ReadOnlyModelViewSet):
    """Public bundle browsing, pricing and related bundles."""
    serializer_class = PublicBundleListSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = PublicBundlePagination
    lookup_field = 'slug'
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['bundle_type']
    search_fields = ['name', 'short_description', 'description']
    ordering_fields = ['display_order', 'created_at', 'name', 'view_count']
    ordering = ['display_order', '-created_at']

    def get_queryset(self):
        return with_pricing_relations(available_bundles())

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return PublicBundleDetailSerializer
        return PublicBundleListSerializer

    def retrieve(self, request, *args, **kwargs):
        bundle = self.get_object()
        Bundle.objects.filter(pk=bundle.pk).update(view_count=F('view_count') + 1)
        serializer = self.get_serializer(bundle)
        return Response(serializer.data)

    @extend_schema(responses=OpenApiTypes.OBJECT)
    @action(detail=False, methods=['get'])
    def homepage(self, request):
        """Homepage bundles grouped by position."""
        queryset = self.get_queryset().filter(show_on_homepage=True).order_by('display_order', '-created_at')
        grouped = {position: [] for position in Bundle.HomepagePosition.values}
        for bundle in queryset:
            position = bundle.homepage_position or Bundle.HomepagePosition.GRID
            grouped[position].append(PublicBundleListSerializer(bundle, context=self.get_serializer_context()).data)
        return Response(grouped)

    @extend_schema(request=BundleCalculateRequestSerializer, responses=BundleCalculateResponseSerializer)
    @action(detail=True, methods=['post'])
    def calculate(self, request, slug=None):
        """Price the bundle for a selection payload and report whether the selection is complete."""
        bundle = self.get_object()
        serializer = BundleCalculateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            selections = SlotSelections.from_payload(serializer.validated_data['selections'])
            result = validate_selections(bundle, selections)
            breakdown = BundlePricingService.calculate(bundle, selections)
        except CommerceError as exc:
            return error_response(exc)

        data = PricingBreakdownSerializer(breakdown).data
        data['is_complete'] = result.is_complete
        data['missing_required_slots'] = result.missing_required_slots
        data['errors'] = result.errors
        # Unknown slots/products or too many picks are client errors; an unfinished selection is not
        response_status = status.HTTP_422_UNPROCESSABLE_ENTITY if result.structural_errors else status.HTTP_200_OK
        return Response(data, status=response_status)

    @extend_schema(responses=PublicBundleListSerializer(many=True))
    @action(detail=True, methods=['get'])
    def related(self, request, slug=None):
        """Other available bundles, same type first."""
        bundle = self.get_object()
        limit = getattr(settings, 'BUNDLES_RELATED_LIMIT', 4)
        others = list(
            self.get_queryset()
            .exclude(pk=bundle.pk)
            .filter(bundle_type=bundle.bundle_type)
            .order_by('display_order', '-created_at')[:limit]
        )
        if len(others) < limit:
            others += list(
                self.get_queryset()
                .exclude(pk__in=[bundle.pk] + [other.pk for other in others])
                .order_by('display_order', '-created_at')[:limit - len(others)]
            )
        serializer = PublicBundleListSerializer(others, many=True, context=self.get_serializer_context())
        return Response(serializer.data)


class CartViewSet(viewsets.GenericViewSet):
    """Cart management for the current owner (user or X-Session-ID guest session)."""
    serializer_class = CartSerializer
    permission_classes = [permissions.AllowAny]

    def _cart(self, create=True):
        """
        Cart of the current owner. Read and clear paths pass `create=False` so a
        guest without a cart gets None instead of a new row; a user always has
        one, merged with the guest cart of the same session.
        """
        owner = get_cart_owner(self.request)
        if create or owner.user is not None:
            return CartService.get_or_create_cart(owner)
        return CartService.get_cart(owner)

    def _empty_cart_response(self):
        owner = get_cart_owner(self.request)
        return Response({
            'id': None,
            'session_id': owner.session_id or None,
            'coupon_code': None,
            'items': [],
            'summary': CartSummarySerializer(CartSummary.empty()).data,
            'updated_at': None,
        })

    def _cart_response(self, cart, response_status=status.HTTP_200_OK):
        cart.refresh_from_db()
        context = self.get_serializer_context()
        context['summary'] = CartService.summarize(cart)
        return Response(CartSerializer(cart, context=context).data, status=response_status)

    @extend_schema(responses=CartSerializer)
    def list(self, request):
        """Current cart with summary."""
        cart = self._cart(create=False)
        if cart is None:
            return self._empty_cart_response()
        return self._cart_response(cart)

    @extend_schema(request=CartItemCreateSerializer, responses=CartSerializer)
    @action(detail=False, methods=['post'])
    def add(self, request):
        """Add a product to the cart."""
        serializer = CartItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = self._cart()

        try:
            product = Product.objects.get(id=serializer.validated_data['product_id'], is_active=True)
            CartService.add_item(cart, product, serializer.validated_data['quantity'])
        except Product.DoesNotExist:
            return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)
        except CommerceError as exc:
            logger.warning(f"Rejected add of product {serializer.validated_data['product_id']} to cart {cart.id}: {exc.message}")
            return error_response(exc)
        return self._cart_response(cart, status.HTTP_201_CREATED)

    @extend_schema(
        methods=['PUT'],
        parameters=[OpenApiParameter('item_id', OpenApiTypes.INT, OpenApiParameter.PATH)],
        request=CartItemUpdateSerializer,
        responses=CartSerializer,
    )
    @extend_schema(
        methods=['DELETE'],
        parameters=[OpenApiParameter('item_id', OpenApiTypes.INT, OpenApiParameter.PATH)],
        responses=CartSerializer,
    )
    @action(detail=False, methods=['put', 'delete'], url_path=r'items/(?P<item_id>\d+)')
    def item(self, request, item_id=None):
        """Update the quantity of (PUT) or remove (DELETE) one cart row."""
        cart = self._cart(create=False)
        if cart is None:
            return Response({'error': 'Cart item not found', 'item_id': item_id}, status=status.HTTP_404_NOT_FOUND)
        try:
            if request.method == 'DELETE':
                CartService.remove_item(cart, int(item_id))
            else:
                serializer = CartItemUpdateSerializer(data=request.data)
                serializer.is_valid(raise_exception=True)
                CartService.update_quantity(cart, int(item_id), serializer.validated_data['quantity'])
        except CartItem.DoesNotExist:
            return Response({'error': 'Cart item not found', 'item_id': item_id}, status=status.HTTP_404_NOT_FOUND)
        except CommerceError as exc:
            return error_response(exc)
        return self._cart_response(cart)

    @extend_schema(request=None, responses=CartSerializer)
    @action(detail=False, methods=['delete'])
    def clear(self, request):
        cart = self._cart(create=False)
        if cart is None:
            return self._empty_cart_response()
        CartService.clear(cart)
        return self._cart_response(cart)

    @extend_schema(methods=['POST'], request=CouponApplySerializer, responses=CartSerializer)
    @extend_schema(methods=['DELETE'], request=None, responses=CartSerializer)
    @action(detail=False, methods=['post', 'delete'])
    def coupon(self, request):
        """Apply (POST) or remove (DELETE) the cart coupon."""
        if request.method == 'DELETE':
            cart = self._cart(create=False)
            if cart is None:
                return self._empty_cart_response()
            CartService.remove_coupon(cart)
            return self._cart_response(cart)

        serializer = CouponApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = self._cart(create=False)
        if cart is None:
            return error_response(CouponError('Your cart is empty'))
        try:
            CartService.apply_coupon(cart, serializer.validated_data['code'])
        except CommerceError as exc:
            return error_response(exc)
        return self._cart_response(cart)

    @extend_schema(request=CartBundleCreateSerializer, responses=CartSerializer)
    @action(detail=False, methods=['post'])
    def bundle(self, request):
        """Add a bundle to the cart."""
        serializer = CartBundleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        slug = serializer.validated_data['bundle_slug']
        cart = self._cart()

        try:
            bundle = with_pricing_relations(Bundle.objects.all()).get(slug=slug)
            selections = SlotSelections.from_payload(serializer.validated_data['selections'])
            items = BundleCartService.add_bundle_to_cart(cart, bundle, selections)
        except Bundle.DoesNotExist:
            return Response({'error': 'Bundle not found'}, status=status.HTTP_404_NOT_FOUND)
        except CommerceError as exc:
            logger.warning(f"Rejected add of bundle {slug} to cart {cart.id}: {exc.message}")
            return error_response(exc)

        response = self._cart_response(cart, status.HTTP_201_CREATED)
        response.data['bundle_item_ids'] = [item.id for item in items]
        return response
