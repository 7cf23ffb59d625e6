"""
Returns — Django Admin Configuration

Read-only list of ReturnEvent (insert-only log).

@file returns/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import ReturnEvent


@admin.register(ReturnEvent)
class ReturnEventAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'usage_record', 'supply_code', 'qty_returned', 'reason',
        'returned_by', 'returned_at',
    )
    list_filter = ('reason', 'returned_at')
    search_fields = ('supply_code', 'usage_record__patient_hn')
    readonly_fields = (
        'id', 'usage_record', 'supply_code', 'qty_returned', 'reason', 'note',
        'returned_by', 'returned_at',
    )
    list_select_related = ('usage_record', 'returned_by')
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'returned_at'
    ordering = ('-returned_at',)

    fieldsets = (
        (_('Return'), {
            'fields': ('id', 'usage_record', 'supply_code', 'qty_returned', 'reason', 'note'),
        }),
        (_('Audit'), {
            'fields': ('returned_by', 'returned_at'),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
