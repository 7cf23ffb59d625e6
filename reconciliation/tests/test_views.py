"""
Tests — Reconciliation API endpoints.

@file reconciliation/tests/test_views.py
"""

import pytest
from django.urls import reverse
from rest_framework import status

from core.exceptions import DependencyTimeoutError
from usage.drafts import LineDraft, UsageDraft
from usage.services import UsageLedgerService


pytestmark = pytest.mark.django_db

COMPARE_URL = 'api-v1:reconciliation:compare'
USAGE_URL = 'api-v1:reconciliation:usage-by-supply'
MARCH_10 = {'start_date': '2026-03-10', 'end_date': '2026-03-10'}


@pytest.fixture
def gauze_usage(gauze, usage_time):
    return UsageLedgerService.submit(draft=UsageDraft(
        patient_hn='HN000123', usage_datetime=usage_time, department_code='ER',
        lines=[LineDraft('GZ-01', 6)],
    ))


class TestCompareEndpoint:
    def test_requires_authentication(self, api_client):
        resp = api_client.get(reverse(COMPARE_URL), MARCH_10)
        assert resp.status_code == status.HTTP_401_UNAUTHORIZED

    def test_compare(self, authenticated_client, dispensed, gauze_usage, dispensed_time):
        dispensed.add('GZ-01', 10, dispensed_time)

        resp = authenticated_client.get(reverse(COMPARE_URL), MARCH_10)

        assert resp.status_code == status.HTTP_200_OK
        body = resp.json()
        assert body['success'] is True
        row = body['data'][0]
        assert row['supply_code'] == 'GZ-01'
        assert row['difference'] == 4
        assert row['status'] == 'UNACCOUNTED'
        assert body['meta']['summary'] == {'total': 1, 'matched': 0, 'not_matched': 1}
        assert body['meta']['complete'] is True
        assert body['meta']['warnings'] == []
        assert body['meta']['window']['start'].startswith('2026-03-10T00:00:00')

    def test_incomplete_source_still_200(self, authenticated_client, dispensed, gauze_usage):
        dispensed.fail = DependencyTimeoutError()

        resp = authenticated_client.get(reverse(COMPARE_URL), MARCH_10)

        assert resp.status_code == status.HTTP_200_OK
        body = resp.json()
        assert body['meta']['complete'] is False
        assert body['meta']['warnings'] == ['A dependency did not respond in time. Retry later.']
        assert body['data'][0]['status'] == 'INCOMPLETE'

    def test_missing_dates(self, authenticated_client, dispensed):
        resp = authenticated_client.get(reverse(COMPARE_URL))
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        errors = resp.json()['errors']
        assert 'start_date' in errors
        assert 'end_date' in errors

    def test_reversed_dates(self, authenticated_client, dispensed):
        resp = authenticated_client.get(
            reverse(COMPARE_URL), {'start_date': '2026-03-11', 'end_date': '2026-03-10'},
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST


class TestUsageBySupplyEndpoint:
    def test_lists_usage(self, authenticated_client, dispensed, gauze_usage):
        resp = authenticated_client.get(reverse(USAGE_URL), {**MARCH_10, 'supply_code': 'GZ-01'})

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data['count'] == 1
        assert resp.data['results'][0]['usage_record_id'] == str(gauze_usage.pk)
        assert resp.data['results'][0]['quantity_used'] == 6

    def test_supply_code_required(self, authenticated_client, dispensed):
        resp = authenticated_client.get(reverse(USAGE_URL), MARCH_10)
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
