"""
Tests — Catalog API endpoints.

@file catalog/tests/test_views.py
"""

import pytest
from django.urls import reverse


pytestmark = pytest.mark.django_db


class TestSupplyCatalogAPI:
    def test_list_requires_auth(self, api_client):
        resp = api_client.get(reverse('api-v1:catalog:supply-list'))
        assert resp.status_code == 401

    def test_list_supplies(self, authenticated_client, gauze, syringe):
        resp = authenticated_client.get(reverse('api-v1:catalog:supply-list'))
        assert resp.status_code == 200
        assert [row['code'] for row in resp.data['results']] == ['GZ-01', 'SY-05']

    def test_validate_codes(self, authenticated_client, gauze):
        resp = authenticated_client.post(
            reverse('api-v1:catalog:supply-validate'),
            {'codes': ['GZ-01', 'NOPE']},
            format='json',
        )
        assert resp.status_code == 200
        assert resp.data['valid'] == ['GZ-01']
        assert resp.data['invalid'] == ['NOPE']
        body = resp.json()
        assert body['success'] is True
        assert body['data']['invalid'] == ['NOPE']
