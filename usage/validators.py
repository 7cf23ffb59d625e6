"""
Usage — Submission Validation

Checks a UsageDraft (or an amended line list) before anything is written.
Every problem is collected; a single ValidationError reports them all,
keyed by field path (``lines[1].quantity_used``).

@file usage/validators.py
"""

from collections.abc import Sequence
from decimal import Decimal

from billing.calculator import ZERO, line_total, money, to_decimal
from catalog.models import SupplyCatalogEntry
from catalog.services import SupplyCatalogService
from core.constants import MAX_BILLING_AMOUNT, MAX_LINE_QUANTITY, MAX_TAX_RATE, MAX_UNIT_PRICE
from core.exceptions import ValidationError

from .drafts import LineDraft, PriceSource, UsageDraft

HEADER_REQUIRED = ('patient_hn', 'department_code')


def _add(errors: dict[str, list[str]], key: str, message: str) -> None:
    errors.setdefault(key, []).append(message)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _parse_amount(value) -> Decimal | None:
    """A finite Decimal, or None when ``value`` is not a usable number."""
    try:
        return to_decimal(value)
    except ValueError:
        return None


def header_errors(draft: UsageDraft) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for name in HEADER_REQUIRED:
        if not getattr(draft, name):
            _add(errors, name, 'This field is required.')
    if draft.usage_datetime is None:
        _add(errors, 'usage_datetime', 'This field is required.')
    if draft.tax_rate is not None:
        rate = _parse_amount(draft.tax_rate)
        if rate is None:
            _add(errors, 'tax_rate', 'Tax rate must be a finite decimal number.')
        elif rate < 0:
            _add(errors, 'tax_rate', 'Tax rate cannot be negative.')
        elif rate > Decimal(MAX_TAX_RATE):
            _add(errors, 'tax_rate', f'Tax rate cannot exceed {MAX_TAX_RATE}.')
    if draft.currency and len(draft.currency) != 3:
        _add(errors, 'currency', 'Currency must be a 3-letter ISO code.')
    return errors


def _unit_price_errors(line: LineDraft, prefix: str, errors: dict[str, list[str]]) -> Decimal | None:
    """Check the tagged price choice; return the parsed override price when valid."""
    if line.price_source == PriceSource.CATALOG:
        if line.unit_price is not None:
            _add(errors, f'{prefix}.unit_price', 'Catalog-priced lines cannot carry a unit price.')
        return None
    if line.price_source != PriceSource.OVERRIDE:
        _add(errors, f'{prefix}.price_source', f'Unknown price source {line.price_source}.')
        return None
    if line.unit_price is None:
        _add(errors, f'{prefix}.unit_price', 'Override-priced lines need a unit price.')
        return None
    price = _parse_amount(line.unit_price)
    if price is None:
        _add(errors, f'{prefix}.unit_price', 'Unit price must be a finite decimal number.')
    elif price < 0:
        _add(errors, f'{prefix}.unit_price', 'Unit price cannot be negative.')
    elif price > Decimal(MAX_UNIT_PRICE) or money(price) > Decimal(MAX_UNIT_PRICE):
        _add(errors, f'{prefix}.unit_price', f'Unit price cannot exceed {MAX_UNIT_PRICE}.')
    else:
        return price
    return None


def line_errors(
    lines: Sequence[LineDraft],
    catalog: dict[str, SupplyCatalogEntry],
    tax_rate=ZERO,
) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    if not lines:
        _add(errors, 'lines', 'At least one line entry is required.')
        return errors

    ceiling = Decimal(MAX_BILLING_AMOUNT)
    subtotal = ZERO
    seen: set[str] = set()
    for index, line in enumerate(lines):
        prefix = f'lines[{index}]'
        code = line.supply_code
        if not code:
            _add(errors, f'{prefix}.supply_code', 'This field is required.')
        elif code in seen:
            _add(errors, f'{prefix}.supply_code', f'Duplicate supply code {code}.')
        elif code not in catalog:
            _add(errors, f'{prefix}.supply_code', f'Unknown supply code {code}.')
        if code:
            seen.add(code)

        quantity_ok = _is_positive_int(line.quantity_used)
        if not quantity_ok:
            _add(errors, f'{prefix}.quantity_used', 'Quantity used must be a positive integer.')
        elif line.quantity_used > MAX_LINE_QUANTITY:
            _add(errors, f'{prefix}.quantity_used', f'Quantity used cannot exceed {MAX_LINE_QUANTITY}.')
            quantity_ok = False

        price = _unit_price_errors(line, prefix, errors)
        if price is None and line.price_source == PriceSource.CATALOG and code in catalog:
            price = catalog[code].unit_price
        if quantity_ok and price is not None:
            total = line_total(line.quantity_used, 0, price)
            if total > ceiling:
                _add(errors, f'{prefix}.quantity_used', f'Line total cannot exceed {MAX_BILLING_AMOUNT}.')
            else:
                subtotal += total

    rate = _parse_amount(tax_rate)
    if rate is None or not 0 <= rate <= Decimal(MAX_TAX_RATE):
        return errors
    if subtotal + money(subtotal * rate) > ceiling:
        _add(errors, 'lines', f'Record total cannot exceed {MAX_BILLING_AMOUNT}.')
    return errors


def validate_lines(
    lines: Sequence[LineDraft],
    extra_errors: dict[str, list[str]] | None = None,
    tax_rate=ZERO,
) -> dict[str, SupplyCatalogEntry]:
    """
    Resolve line codes against the catalog and raise ValidationError with
    every problem found. Returns the resolved catalog entries by code.
    """
    catalog = SupplyCatalogService.resolve_many(line.supply_code for line in lines)
    errors = dict(extra_errors or {})
    for key, messages in line_errors(lines, catalog, tax_rate=tax_rate).items():
        errors.setdefault(key, []).extend(messages)
    if errors:
        raise ValidationError(errors)
    return catalog


def validate_usage_draft(draft: UsageDraft, tax_rate=ZERO) -> dict[str, SupplyCatalogEntry]:
    return validate_lines(draft.lines, extra_errors=header_errors(draft), tax_rate=tax_rate)
