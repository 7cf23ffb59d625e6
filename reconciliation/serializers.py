"""
Reconciliation — Query Serializers

@file reconciliation/serializers.py
"""

from rest_framework import serializers

from .engine import ReconciliationFilters, Window


class CompareQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    supply_code = serializers.CharField(required=False, allow_blank=True, default='')
    department_code = serializers.CharField(required=False, allow_blank=True, default='')
    category = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['start_date'] > attrs['end_date']:
            raise serializers.ValidationError({'end_date': 'Must not be before start_date.'})
        return attrs

    def window(self) -> Window:
        return Window.for_dates(self.validated_data['start_date'], self.validated_data['end_date'])

    def filters(self) -> ReconciliationFilters:
        return ReconciliationFilters(
            supply_code=self.validated_data['supply_code'].strip(),
            department_code=self.validated_data['department_code'].strip(),
            category=self.validated_data['category'].strip(),
        )


class UsageBySupplyQuerySerializer(CompareQuerySerializer):
    supply_code = serializers.CharField()
