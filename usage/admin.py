"""
Usage — Django Admin Configuration

Read-mostly admin for usage records with their line entries inline.
Writes go through the API so billing and versions stay consistent.

@file usage/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import UsageLineEntry, UsageRecord


class UsageLineEntryInline(admin.TabularInline):
    model = UsageLineEntry
    extra = 0
    can_delete = False
    fields = (
        'position', 'supply_code', 'supply_name', 'quantity_used', 'quantity_returned',
        'unit_price', 'price_source', 'total_price', 'is_deleted',
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(UsageRecord)
class UsageRecordAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'patient_hn', 'department_code', 'usage_datetime',
        'status_badge', 'billing_total', 'version', 'created_at',
    )
    list_filter = ('billing_status', 'department_code', 'usage_type', 'is_deleted')
    search_fields = ('id', 'patient_hn', 'episode_number', 'patient_name_th', 'patient_name_en')
    readonly_fields = (
        'id', 'billing_subtotal', 'billing_tax_rate', 'billing_tax', 'billing_total',
        'billing_currency', 'billing_status', 'version',
        'created_at', 'updated_at', 'created_by', 'updated_by',
        'is_deleted', 'deleted_at', 'deleted_by',
    )
    show_full_result_count = False
    list_per_page = 30
    date_hierarchy = 'usage_datetime'
    ordering = ('-created_at',)
    inlines = [UsageLineEntryInline]

    fieldsets = (
        (_('Patient'), {'fields': (
            'id', 'hospital_code', 'patient_hn', 'patient_name_th', 'patient_name_en', 'episode_number',
        )}),
        (_('Usage'), {'fields': (
            'usage_datetime', 'usage_type', 'purpose', 'department_code', 'recorded_by_user_id',
        )}),
        (_('Billing'), {'fields': (
            'billing_status', 'billing_subtotal', 'billing_tax_rate', 'billing_tax',
            'billing_total', 'billing_currency', 'version',
        )}),
        (_('Audit'), {'fields': ('created_at', 'updated_at', 'created_by', 'updated_by'), 'classes': ('collapse',)}),
        (_('Soft Delete'), {'fields': ('is_deleted', 'deleted_at', 'deleted_by'), 'classes': ('collapse',)}),
    )

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if not request.GET.get('is_deleted__exact'):
            qs = qs.filter(is_deleted=False)
        return qs

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description=_('Billing'))
    def status_badge(self, obj):
        colors = {
            'DRAFT': '#6b7280',
            'BILLED': '#3b82f6',
            'DISPUTED': '#f97316',
            'SETTLED': '#22c55e',
        }
        return format_html(
            '<span style="background:{}; color:#fff; padding:2px 8px; '
            'border-radius:4px; font-size:11px; font-weight:600;">{}</span>',
            colors.get(obj.billing_status, '#6b7280'), obj.get_billing_status_display(),
        )
