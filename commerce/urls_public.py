"""Public API URLs for the storefront frontend."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views_public

router = DefaultRouter()
router.register(r'bundles', views_public.PublicBundleViewSet, basename='public-bundle')
router.register(r'cart', views_public.CartViewSet, basename='public-cart')

urlpatterns = [
    path('', include(router.urls)),
]
