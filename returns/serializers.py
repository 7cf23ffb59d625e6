"""
Returns — Serializers

@file returns/serializers.py
"""

from rest_framework import serializers

from core.constants import DEFAULT_PAGE_SIZE, MAX_LINE_QUANTITY
from core.timeutils import end_of_day_exclusive, start_of_day

from usage.models import UsageLineEntry

from .models import ReturnEvent


class ReturnEventReadSerializer(serializers.ModelSerializer):
    patient_hn = serializers.CharField(source='usage_record.patient_hn', read_only=True)
    department_code = serializers.CharField(source='usage_record.department_code', read_only=True)
    reason_display = serializers.CharField(source='get_reason_display', read_only=True)
    returned_by_username = serializers.CharField(
        source='returned_by.username', read_only=True, default=None,
    )

    class Meta:
        model = ReturnEvent
        fields = [
            'id', 'usage_record', 'patient_hn', 'department_code',
            'supply_code', 'qty_returned', 'reason', 'reason_display', 'note',
            'returned_by', 'returned_by_username', 'returned_at',
        ]
        read_only_fields = fields


class RecordReturnSerializer(serializers.Serializer):
    usage_record_id = serializers.UUIDField()
    supply_code = serializers.CharField(max_length=50)
    qty = serializers.IntegerField(max_value=MAX_LINE_QUANTITY)
    reason = serializers.ChoiceField(choices=ReturnEvent.Reason.choices)
    note = serializers.CharField(allow_blank=True, required=False, default='')
    expected_version = serializers.IntegerField(required=False, min_value=1)


class ReturnHistoryQuerySerializer(serializers.Serializer):
    usage_record_id = serializers.UUIDField(required=False)
    department_code = serializers.CharField(required=False)
    patient_hn = serializers.CharField(required=False)
    reason = serializers.ChoiceField(choices=ReturnEvent.Reason.choices, required=False)
    supply_code = serializers.CharField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, default=DEFAULT_PAGE_SIZE)

    def filters(self) -> dict:
        data = dict(self.validated_data)
        data.pop('page')
        data.pop('limit')
        if data.get('date_from'):
            data['date_from'] = start_of_day(data['date_from'])
        if data.get('date_to'):
            data['date_to'] = end_of_day_exclusive(data['date_to'])
        return data


class PendingLineSerializer(serializers.ModelSerializer):
    """A line that can still take a return, with what the return form needs."""

    usage_record_id = serializers.UUIDField(source='record_id', read_only=True)
    patient_hn = serializers.CharField(source='record.patient_hn', read_only=True)
    patient_name_th = serializers.CharField(source='record.patient_name_th', read_only=True)
    episode_number = serializers.CharField(source='record.episode_number', read_only=True)
    department_code = serializers.CharField(source='record.department_code', read_only=True)
    usage_datetime = serializers.DateTimeField(source='record.usage_datetime', read_only=True)
    billing_status = serializers.CharField(source='record.billing_status', read_only=True)
    version = serializers.IntegerField(source='record.version', read_only=True)
    returnable = serializers.IntegerField(source='net_quantity', read_only=True)

    class Meta:
        model = UsageLineEntry
        fields = [
            'id', 'usage_record_id', 'patient_hn', 'patient_name_th',
            'episode_number', 'department_code', 'usage_datetime',
            'billing_status', 'version', 'supply_code', 'supply_name', 'unit',
            'quantity_used', 'quantity_returned', 'returnable', 'unit_price',
        ]
        read_only_fields = fields


class PendingLinesQuerySerializer(serializers.Serializer):
    usage_record_id = serializers.UUIDField(required=False)
    department_code = serializers.CharField(required=False)
    patient_hn = serializers.CharField(required=False)
    supply_code = serializers.CharField(required=False)
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, default=DEFAULT_PAGE_SIZE)

    def filters(self) -> dict:
        data = dict(self.validated_data)
        data.pop('page')
        data.pop('limit')
        return data
