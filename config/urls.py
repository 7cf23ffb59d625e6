"""
SupplyTrack — Root URL Configuration

All API endpoints are namespaced under /api/v1/.
The DRF browsable API is available for route inspection in development.

@file config/urls.py
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse

admin.site.site_header = 'SupplyTrack Administration'
admin.site.site_title = 'SupplyTrack'
admin.site.index_title = 'Medical Supply Usage & Reconciliation'


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request, format=None):
    """SupplyTrack API v1 — endpoint directory."""
    return Response({
        'catalog': reverse('api-v1:catalog:supply-list', request=request, format=format),
        'usage': {
            'records': reverse('api-v1:usage:record-list', request=request, format=format),
            'statistics': reverse('api-v1:usage:record-statistics', request=request, format=format),
        },
        'returns': {
            'history': reverse('api-v1:returns:return-list', request=request, format=format),
            'statistics': reverse('api-v1:returns:return-statistics', request=request, format=format),
        },
        'reconciliation': {
            'compare': reverse('api-v1:reconciliation:compare', request=request, format=format),
            'usage_by_supply': reverse('api-v1:reconciliation:usage-by-supply', request=request, format=format),
        },
    })


api_v1_patterns = [
    path('', api_root, name='api-root'),
    path('catalog/', include('catalog.urls', namespace='catalog')),
    path('usage/', include('usage.urls', namespace='usage')),
    path('returns/', include('returns.urls', namespace='returns')),
    path('reconciliation/', include('reconciliation.urls', namespace='reconciliation')),
]

urlpatterns = [
    path('admin/', admin.site.urls),

    # DRF session auth (powers the "Log in" button on the browsable API)
    path('api/auth/', include('rest_framework.urls', namespace='rest_framework')),

    # Versioned API
    path('api/v1/', include((api_v1_patterns, 'api-v1'))),
]
