"""
Reconciliation — Views

GET compare: dispensed vs used per supply code over a date range.
GET usage-by-supply: the usage lines behind one comparison row.

@file reconciliation/views.py
"""

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .engine import ReconciliationEngine
from .serializers import CompareQuerySerializer, UsageBySupplyQuerySerializer


class CompareView(APIView):
    """
    start_date and end_date are inclusive calendar dates. Rows render
    under ``data``; summary, complete, warnings and window under ``meta``.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = CompareQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        report = ReconciliationEngine().compare(query.window(), query.filters())
        return Response(report.as_dict())


class UsageBySupplyView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = UsageBySupplyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = query.filters()
        rows = ReconciliationEngine().usage_for_supply(filters.supply_code, query.window(), filters)
        return Response({
            'results': rows,
            'supply_code': filters.supply_code,
            'count': len(rows),
        })
