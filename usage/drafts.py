"""
Usage — Submission Drafts

Plain input shapes accepted by the ledger service. Views build them from
validated serializer data; tasks and tests build them directly.

@file usage/drafts.py
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .models import UsageLineEntry

PriceSource = UsageLineEntry.PriceSource


@dataclass
class LineDraft:
    supply_code: str
    quantity_used: Any
    price_source: str = PriceSource.CATALOG
    unit_price: Decimal | None = None
    expiry_date: date | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> 'LineDraft':
        return cls(
            supply_code=(data.get('supply_code') or '').strip(),
            quantity_used=data.get('quantity_used'),
            price_source=data.get('price_source') or PriceSource.CATALOG,
            unit_price=data.get('unit_price'),
            expiry_date=data.get('expiry_date'),
        )


@dataclass
class UsageDraft:
    patient_hn: str
    usage_datetime: datetime | None
    department_code: str
    lines: list[LineDraft] = field(default_factory=list)
    patient_name_th: str = ''
    patient_name_en: str = ''
    episode_number: str = ''
    hospital_code: str = ''
    usage_type: str = ''
    purpose: str = ''
    recorded_by_user_id: str = ''
    tax_rate: Decimal | None = None
    currency: str = ''

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> 'UsageDraft':
        return cls(
            patient_hn=(data.get('patient_hn') or '').strip(),
            usage_datetime=data.get('usage_datetime'),
            department_code=(data.get('department_code') or '').strip(),
            lines=[LineDraft.from_payload(line) for line in data.get('lines') or []],
            patient_name_th=data.get('patient_name_th') or '',
            patient_name_en=data.get('patient_name_en') or '',
            episode_number=data.get('episode_number') or '',
            hospital_code=data.get('hospital_code') or '',
            usage_type=data.get('usage_type') or '',
            purpose=data.get('purpose') or '',
            recorded_by_user_id=data.get('recorded_by_user_id') or '',
            tax_rate=data.get('tax_rate'),
            currency=data.get('currency') or '',
        )
