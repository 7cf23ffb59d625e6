"""
Usage — Views

Usage records: list, submit, retrieve, amend (PUT), void (DELETE).
Actions: billing-status, statistics.

@file usage/views.py
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .drafts import LineDraft, UsageDraft
from .permissions import CanManageBilling, CanRecordUsage
from .serializers import (
    BillingStatusSerializer,
    UsageAmendSerializer,
    UsageListQuerySerializer,
    UsageRecordReadSerializer,
    UsageSubmitSerializer,
    VersionSerializer,
)
from .services import UsageLedgerService


class UsageRecordViewSet(viewsets.GenericViewSet):
    """
    Every write goes through UsageLedgerService so that validation,
    billing recompute and version checks are applied in one place.
    """

    permission_classes = [IsAuthenticated, CanRecordUsage]
    serializer_class = UsageRecordReadSerializer

    def get_permissions(self):
        if self.action == 'destroy':
            return [IsAuthenticated(), CanManageBilling()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.action == 'create':
            return UsageSubmitSerializer
        if self.action == 'update':
            return UsageAmendSerializer
        if self.action == 'billing_status':
            return BillingStatusSerializer
        return UsageRecordReadSerializer

    def _read(self, record_id, status_code=status.HTTP_200_OK):
        record = UsageLedgerService.get(record_id)
        return Response(
            UsageRecordReadSerializer(record, context={'request': self.request}).data,
            status=status_code,
        )

    def list(self, request):
        query = UsageListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        page = UsageLedgerService.list_records(
            filters=query.filters(),
            page=query.validated_data['page'],
            limit=query.validated_data['limit'],
        )
        page['results'] = UsageRecordReadSerializer(
            page['results'], many=True, context={'request': request},
        ).data
        return Response(page)

    def create(self, request):
        ser = UsageSubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record = UsageLedgerService.submit(
            draft=UsageDraft.from_payload(ser.validated_data),
            actor=request.user,
        )
        return self._read(record.pk, status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        return self._read(pk)

    def update(self, request, pk=None):
        ser = UsageAmendSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record = UsageLedgerService.amend(
            record_id=pk,
            lines=[LineDraft.from_payload(line) for line in ser.validated_data['lines']],
            actor=request.user,
            expected_version=ser.validated_data.get('expected_version'),
            fields=ser.header_fields(),
        )
        return self._read(record.pk)

    def destroy(self, request, pk=None):
        ser = VersionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        UsageLedgerService.void(
            record_id=pk,
            actor=request.user,
            expected_version=ser.validated_data.get('expected_version'),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(
        detail=True,
        methods=['post'],
        url_path='billing-status',
        permission_classes=[IsAuthenticated, CanManageBilling],
    )
    def billing_status(self, request, pk=None):
        ser = BillingStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        record = UsageLedgerService.update_billing_status(
            record_id=pk,
            status=ser.validated_data['status'],
            actor=request.user,
            expected_version=ser.validated_data.get('expected_version'),
        )
        return self._read(record.pk)

    @action(detail=False, methods=['get'], url_path='statistics')
    def statistics(self, request):
        query = UsageListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(UsageLedgerService.statistics(query.filters()))
