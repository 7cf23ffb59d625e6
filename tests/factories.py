"""
SupplyTrack — Test Factories

Factory Boy factories for generating test data. Used across all test
modules.

@file tests/factories.py
"""

from datetime import datetime
from decimal import Decimal

import factory
from django.contrib.auth import get_user_model
from django.utils import timezone

from billing.status import BillingStatus
from catalog.models import SupplyCatalogEntry
from core.models import AuditLog
from returns.models import ReturnEvent
from usage.models import UsageLineEntry, UsageRecord


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = get_user_model()
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f'nurse-{n:04d}')
    email = factory.LazyAttribute(lambda o: f'{o.username}@hospital.test')
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        password = extracted or 'TestPass2026!'
        self.set_password(password)
        if create:
            self.save(update_fields=['password'])


class StaffUserFactory(UserFactory):
    username = factory.Sequence(lambda n: f'billing-{n:04d}')
    is_staff = True


class SuperuserFactory(UserFactory):
    username = factory.Sequence(lambda n: f'admin-{n:04d}')
    is_staff = True
    is_superuser = True


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class SupplyCatalogEntryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = SupplyCatalogEntry

    code = factory.Sequence(lambda n: f'SUP-{n:04d}')
    name = factory.LazyAttribute(lambda o: f'Supply {o.code}')
    category = 'General'
    unit = 'Each'
    unit_price = Decimal('10.00')
    is_active = True


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------

class UsageRecordFactory(factory.django.DjangoModelFactory):
    """A bare record header; add lines with UsageLineEntryFactory."""

    class Meta:
        model = UsageRecord

    hospital_code = 'H001'
    episode_number = factory.Sequence(lambda n: f'EN{n:06d}')
    patient_hn = factory.Sequence(lambda n: f'HN{n:06d}')
    patient_name_th = 'ผู้ป่วย ทดสอบ'
    patient_name_en = factory.Faker('name')
    usage_datetime = factory.LazyFunction(
        lambda: timezone.make_aware(datetime(2026, 3, 10, 9, 30)),
    )
    usage_type = 'OPD'
    department_code = 'ER'
    billing_status = BillingStatus.DRAFT
    billing_tax_rate = Decimal('0')
    billing_currency = 'THB'
    version = 1


class UsageLineEntryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = UsageLineEntry

    record = factory.SubFactory(UsageRecordFactory)
    position = 0
    supply_code = factory.Sequence(lambda n: f'SUP-L{n:04d}')
    supply_name = factory.LazyAttribute(lambda o: f'Supply {o.supply_code}')
    supply_category = 'General'
    unit = 'Each'
    quantity_used = 1
    quantity_returned = 0
    unit_price = Decimal('10.00')
    price_source = UsageLineEntry.PriceSource.CATALOG
    total_price = factory.LazyAttribute(
        lambda o: (o.quantity_used - o.quantity_returned) * o.unit_price,
    )


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------

class ReturnEventFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ReturnEvent

    usage_record = factory.SubFactory(UsageRecordFactory)
    supply_code = 'SUP-0001'
    qty_returned = 1
    reason = ReturnEvent.Reason.UNWRAPPED_UNUSED


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditLogFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AuditLog

    actor = factory.SubFactory(UserFactory)
    action = AuditLog.ActionChoices.CREATE
    event = 'UsageSubmitted'
    model_name = 'UsageRecord'
    object_id = factory.Sequence(lambda n: f'obj-{n}')
    new_values = factory.LazyFunction(lambda: {'lines': 1})
