"""
Catalog — Django Admin Configuration

@file catalog/admin.py
"""

from django.contrib import admin

from .models import SupplyCatalogEntry


@admin.register(SupplyCatalogEntry)
class SupplyCatalogEntryAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'category', 'unit', 'unit_price', 'is_active')
    list_filter = ('category', 'is_active', 'is_deleted')
    search_fields = ('code', 'name')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    show_full_result_count = False
    list_per_page = 50
    ordering = ('code',)
