"""
Usage — Serializers

Read serializers for records and line entries; write serializers that
only parse and coerce input. Business validation (required fields,
catalog codes, price source rules) lives in usage.validators so every
problem is reported in one response.

@file usage/serializers.py
"""

from rest_framework import serializers

from billing.status import BillingStatus
from core.constants import DEFAULT_PAGE_SIZE, MAX_LINE_QUANTITY
from core.timeutils import end_of_day_exclusive, start_of_day

from .models import UsageLineEntry, UsageRecord


class UsageLineEntryReadSerializer(serializers.ModelSerializer):
    net_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = UsageLineEntry
        fields = [
            'id', 'position', 'supply_code', 'supply_name', 'supply_category', 'unit',
            'quantity_used', 'quantity_returned', 'net_quantity',
            'unit_price', 'price_source', 'total_price', 'expiry_date',
        ]
        read_only_fields = fields


class UsageRecordReadSerializer(serializers.ModelSerializer):
    lines = serializers.SerializerMethodField()
    billing = serializers.SerializerMethodField()
    billing_status_display = serializers.CharField(
        source='get_billing_status_display', read_only=True,
    )

    class Meta:
        model = UsageRecord
        fields = [
            'id', 'hospital_code', 'episode_number', 'patient_hn',
            'patient_name_th', 'patient_name_en', 'usage_datetime', 'usage_type',
            'purpose', 'department_code', 'recorded_by_user_id',
            'billing', 'billing_status', 'billing_status_display',
            'version', 'lines', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_lines(self, obj):
        return UsageLineEntryReadSerializer(obj.get_live_lines(), many=True).data

    def get_billing(self, obj):
        return {
            'subtotal': str(obj.billing_subtotal),
            'tax_rate': str(obj.billing_tax_rate),
            'tax': str(obj.billing_tax),
            'total': str(obj.billing_total),
            'currency': obj.billing_currency,
        }


class LineDraftSerializer(serializers.Serializer):
    supply_code = serializers.CharField(max_length=50, allow_blank=True, default='')
    quantity_used = serializers.IntegerField(required=False, allow_null=True, max_value=MAX_LINE_QUANTITY)
    price_source = serializers.ChoiceField(
        choices=UsageLineEntry.PriceSource.choices,
        default=UsageLineEntry.PriceSource.CATALOG,
    )
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True,
    )
    expiry_date = serializers.DateField(required=False, allow_null=True)


class UsageSubmitSerializer(serializers.Serializer):
    patient_hn = serializers.CharField(max_length=50, allow_blank=True, default='')
    patient_name_th = serializers.CharField(max_length=255, allow_blank=True, required=False)
    patient_name_en = serializers.CharField(max_length=255, allow_blank=True, required=False)
    episode_number = serializers.CharField(max_length=50, allow_blank=True, required=False)
    hospital_code = serializers.CharField(max_length=20, allow_blank=True, required=False)
    usage_datetime = serializers.DateTimeField(required=False, allow_null=True)
    usage_type = serializers.CharField(max_length=30, allow_blank=True, required=False)
    purpose = serializers.CharField(allow_blank=True, required=False)
    department_code = serializers.CharField(max_length=30, allow_blank=True, default='')
    recorded_by_user_id = serializers.CharField(max_length=64, allow_blank=True, required=False)
    tax_rate = serializers.DecimalField(
        max_digits=6, decimal_places=4, required=False, allow_null=True,
    )
    currency = serializers.CharField(max_length=3, allow_blank=True, required=False)
    lines = LineDraftSerializer(many=True, required=False)


class UsageAmendSerializer(serializers.Serializer):
    lines = LineDraftSerializer(many=True)
    expected_version = serializers.IntegerField(required=False, min_value=1)
    patient_hn = serializers.CharField(max_length=50, allow_blank=True, required=False)
    patient_name_th = serializers.CharField(max_length=255, allow_blank=True, required=False)
    patient_name_en = serializers.CharField(max_length=255, allow_blank=True, required=False)
    episode_number = serializers.CharField(max_length=50, allow_blank=True, required=False)
    hospital_code = serializers.CharField(max_length=20, allow_blank=True, required=False)
    usage_datetime = serializers.DateTimeField(required=False)
    usage_type = serializers.CharField(max_length=30, allow_blank=True, required=False)
    purpose = serializers.CharField(allow_blank=True, required=False)
    department_code = serializers.CharField(max_length=30, allow_blank=True, required=False)
    recorded_by_user_id = serializers.CharField(max_length=64, allow_blank=True, required=False)

    def header_fields(self) -> dict:
        return {
            name: value for name, value in self.validated_data.items()
            if name not in ('lines', 'expected_version')
        }


class BillingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BillingStatus.choices)
    expected_version = serializers.IntegerField(required=False, min_value=1)


class VersionSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, min_value=1)


class UsageListQuerySerializer(serializers.Serializer):
    patient_hn = serializers.CharField(required=False)
    episode_number = serializers.CharField(required=False)
    department_code = serializers.CharField(required=False)
    usage_type = serializers.CharField(required=False)
    billing_status = serializers.ChoiceField(choices=BillingStatus.choices, required=False)
    supply_code = serializers.CharField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, default=DEFAULT_PAGE_SIZE)

    def validate(self, attrs):
        if attrs.get('date_from') and attrs.get('date_to') and attrs['date_from'] > attrs['date_to']:
            raise serializers.ValidationError({'date_to': 'Must not be before date_from.'})
        return attrs

    def filters(self) -> dict:
        data = dict(self.validated_data)
        data.pop('page')
        data.pop('limit')
        if data.get('date_from'):
            data['date_from'] = start_of_day(data['date_from'])
        if data.get('date_to'):
            data['date_to'] = end_of_day_exclusive(data['date_to'])
        return data
