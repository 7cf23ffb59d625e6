"""
Tests — ReturnEvent is insert-only.

@file returns/tests/test_models.py
"""

import pytest
from django.db import IntegrityError, transaction

from tests.factories import ReturnEventFactory


pytestmark = pytest.mark.django_db


class TestReturnEventImmutability:
    def test_update_blocked(self):
        event = ReturnEventFactory()
        event.qty_returned = 5
        with pytest.raises(NotImplementedError):
            event.save()

    def test_delete_blocked(self):
        event = ReturnEventFactory()
        with pytest.raises(NotImplementedError):
            event.delete()

    def test_quantity_must_be_positive(self):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                ReturnEventFactory(qty_returned=0)
