from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from django.db.models import ProtectedError
from django_filters.rest_framework import DjangoFilterBackend
from .models import Product, Bundle, Coupon
from .serializers import ProductSerializer, BundleSerializer, CouponSerializer
from .permissions import IsAdminOrReadOnly, IsAdminUser
from .services.bundle_pricing_service import with_pricing_relations
import logging

logger = logging.getLogger(__name__)


class ProductViewSet(viewsets.ModelViewSet):
    """Catalog products (public read, staff write)."""
    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    permission_classes = [IsAdminOrReadOnly]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active']
    search_fields = ['name', 'sku']
    ordering_fields = ['name', 'price', 'stock_quantity', 'created_at']

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        try:
            product.delete()
        except ProtectedError:
            return Response(
                {'error': 'Product is in a bundle or a cart and cannot be deleted; deactivate it instead'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


class BundleViewSet(viewsets.ModelViewSet):
    """Bundle management ViewSet (staff only)."""
    queryset = with_pricing_relations(Bundle.objects.all())
    serializer_class = BundleSerializer
    permission_classes = [IsAdminUser]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['bundle_type', 'cart_display', 'show_on_homepage']
    search_fields = ['name', 'sku', 'slug']
    ordering_fields = ['display_order', 'created_at', 'name', 'view_count', 'add_to_cart_count']

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by status
        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')

        return queryset

    @extend_schema(request=None, responses=BundleSerializer)
    @action(detail=True, methods=['post'])
    def duplicate(self, request, pk=None):
        """Clone the bundle as an inactive copy."""
        bundle = self.get_object()
        clone = bundle.duplicate()
        logger.info(f"Bundle {bundle.slug} duplicated as {clone.slug} by {request.user}")
        serializer = self.get_serializer(clone)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses=BundleSerializer)
    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        """Flip is_active."""
        bundle = self.get_object()
        bundle.is_active = not bundle.is_active
        bundle.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Bundle {bundle.slug} is_active set to {bundle.is_active} by {request.user}")
        serializer = self.get_serializer(bundle)
        return Response(serializer.data)


class CouponViewSet(viewsets.ModelViewSet):
    queryset = Coupon.objects.all().order_by('-created_at')
    serializer_class = CouponSerializer
    permission_classes = [IsAdminUser]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['is_active', 'coupon_type']
    search_fields = ['code', 'name']
