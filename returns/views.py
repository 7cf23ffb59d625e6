"""
Returns — Views

Return events: history (list), record a return (create), retrieve.
Actions: pending, statistics.

@file returns/views.py
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .serializers import (
    PendingLineSerializer,
    PendingLinesQuerySerializer,
    RecordReturnSerializer,
    ReturnEventReadSerializer,
    ReturnHistoryQuerySerializer,
)
from .services import ReturnService


class ReturnEventViewSet(viewsets.GenericViewSet):
    """Returns are recorded here and never edited; the log is append-only."""

    permission_classes = [IsAuthenticated]
    serializer_class = ReturnEventReadSerializer

    def get_serializer_class(self):
        if self.action == 'create':
            return RecordReturnSerializer
        return ReturnEventReadSerializer

    def list(self, request):
        query = ReturnHistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        page = ReturnService.history(
            filters=query.filters(),
            page=query.validated_data['page'],
            limit=query.validated_data['limit'],
        )
        page['results'] = ReturnEventReadSerializer(page['results'], many=True).data
        return Response(page)

    def create(self, request):
        ser = RecordReturnSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        event = ReturnService.record_return(
            usage_record_id=data['usage_record_id'],
            supply_code=data['supply_code'],
            qty=data['qty'],
            reason=data['reason'],
            actor=request.user,
            note=data.get('note', ''),
            expected_version=data.get('expected_version'),
        )
        return Response(
            ReturnEventReadSerializer(ReturnService.get(event.pk)).data,
            status=status.HTTP_201_CREATED,
        )

    def retrieve(self, request, pk=None):
        return Response(ReturnEventReadSerializer(ReturnService.get(pk)).data)

    @action(detail=False, methods=['get'], url_path='statistics')
    def statistics(self, request):
        department_code = request.query_params.get('department_code') or None
        return Response(ReturnService.quantity_statistics(department_code=department_code))

    @action(detail=False, methods=['get'], url_path='pending')
    def pending(self, request):
        """Lines on open records that still have quantity left to return."""
        query = PendingLinesQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        page = ReturnService.pending_lines(
            filters=query.filters(),
            page=query.validated_data['page'],
            limit=query.validated_data['limit'],
        )
        page['results'] = PendingLineSerializer(page['results'], many=True).data
        return Response(page)
