"""
Catalog — Serializers

@file catalog/serializers.py
"""

from rest_framework import serializers

from .models import SupplyCatalogEntry


class SupplyCatalogEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = SupplyCatalogEntry
        fields = ['id', 'code', 'name', 'category', 'unit', 'unit_price', 'is_active']
        read_only_fields = fields


class ValidateCodesSerializer(serializers.Serializer):
    codes = serializers.ListField(
        child=serializers.CharField(max_length=50),
        allow_empty=False,
        max_length=500,
    )
