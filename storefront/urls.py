from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView


def api_root(request):
    """Root endpoint providing API information."""
    return JsonResponse({
        'name': 'Appliance Storefront API',
        'version': '1.0.0',
        'description': 'Django REST API for bundles, pricing and cart',
        'endpoints': {
            'admin': '/admin/',
            'public_api': '/api/v1/public/',
            'admin_api': '/api/admin/',
            'api_schema': '/api/schema/',
        },
        'documentation': {
            'swagger_ui': '/api/schema/swagger-ui/',
            'redoc': '/api/schema/redoc/',
            'openapi_schema': '/api/schema/',
        }
    })


urlpatterns = [
    # 0. Root endpoint
    path('', api_root, name='api-root'),

    # 1. Django Admin Interface
    path('admin/', admin.site.urls),
    path('api/auth/', include('rest_framework.urls')),

    # 2. Public storefront API (bundles, cart)
    path('api/v1/public/', include('commerce.urls_public')),

    # 3. Admin API (bundle authoring, products, coupons)
    path('api/admin/', include('commerce.urls')),

    # 4. API Documentation (drf-spectacular generated)
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
