from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

# Admin API: bundle authoring and the catalog it depends on
router = DefaultRouter()
router.register(r'products', views.ProductViewSet, basename='product')
router.register(r'bundles', views.BundleViewSet, basename='bundle')
router.register(r'coupons', views.CouponViewSet, basename='coupon')

urlpatterns = [
    path('', include(router.urls)),
]
