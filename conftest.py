"""
SupplyTrack — Root conftest for pytest

Shared fixtures available to all test modules.

@file conftest.py
"""

from datetime import datetime
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from tests.factories import StaffUserFactory, SupplyCatalogEntryFactory, SuperuserFactory, UserFactory


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Active user with default password TestPass2026!"""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    """Superuser with default password TestPass2026!"""
    return SuperuserFactory()


@pytest.fixture
def billing_officer(db):
    """Staff user allowed to move billing status and void records."""
    return StaffUserFactory()


@pytest.fixture
def authenticated_client(api_client, user):
    """API client authenticated as a regular user."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def admin_client(api_client, admin_user):
    """API client authenticated as a superuser."""
    api_client.force_authenticate(user=admin_user)
    return api_client


@pytest.fixture
def gauze(db):
    """Catalog entry GZ-01, 50.00 per piece."""
    return SupplyCatalogEntryFactory(
        code='GZ-01', name='Sterile gauze 4x4', category='Dressing',
        unit='Piece', unit_price=Decimal('50.00'),
    )


@pytest.fixture
def syringe(db):
    """Catalog entry SY-05, 12.50 per piece."""
    return SupplyCatalogEntryFactory(
        code='SY-05', name='Syringe 5 ml', category='Injection',
        unit='Piece', unit_price=Decimal('12.50'),
    )


@pytest.fixture
def usage_time():
    return timezone.make_aware(datetime(2026, 3, 10, 9, 30))
