"""
Catalog — Views

Read-only catalog browsing and bulk supply-code validation.

@file catalog/views.py
"""

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import SupplyCatalogEntry
from .serializers import SupplyCatalogEntrySerializer, ValidateCodesSerializer
from .services import SupplyCatalogService


class SupplyCatalogViewSet(viewsets.ReadOnlyModelViewSet):
    """Supply catalog: list, retrieve, validate codes."""

    permission_classes = [IsAuthenticated]
    serializer_class = SupplyCatalogEntrySerializer
    filterset_fields = ['category', 'unit', 'is_active']
    search_fields = ['code', 'name']
    ordering_fields = ['code', 'name', 'unit_price']
    ordering = ['code']

    def get_queryset(self):
        return SupplyCatalogEntry.objects.filter(is_deleted=False)

    @action(detail=False, methods=['post'], url_path='validate')
    def validate(self, request):
        ser = ValidateCodesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        return Response(SupplyCatalogService.validate_codes(ser.validated_data['codes']))
