from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .domain import InterventionRecord

ZERO = Decimal("0")
ONE_DECIMAL = Decimal("0.1")

EXTRAORDINARY_PLACEHOLDER = "Vedi foglio interventi straordinari"


@dataclass(frozen=True)
class DayTotals:
    main_table_hours: Decimal = ZERO
    on_call_intervention_hours: Decimal = ZERO
    on_call_travel_hours: Decimal = ZERO


@dataclass(frozen=True)
class SummaryRow:
    """Values printed in one row of the daily summary table."""

    location: str
    description: str
    hours: str
    on_call_intervention: str
    on_call_travel: str


def to_decimal(value: Optional[float]) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_total(value: Decimal) -> str:
    """One decimal place, as printed in totals (``3`` -> ``3.0``)."""
    return str(value.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


def format_total_or_blank(value: Decimal) -> str:
    return format_total(value) if value > 0 else ""


def format_quantity(value: Decimal) -> str:
    """Plain number without trailing zeros (``3``, ``2.5``)."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        normalized = normalized.quantize(Decimal("1"))
    return format(normalized, "f")


def group_by_date(records: Iterable[InterventionRecord]) -> Dict[dt.date, List[InterventionRecord]]:
    groups: Dict[dt.date, List[InterventionRecord]] = {}
    for record in records:
        groups.setdefault(record.day, []).append(record)
    return groups


def split_extraordinary(
    records: Iterable[InterventionRecord],
) -> Tuple[List[InterventionRecord], List[InterventionRecord]]:
    regular: List[InterventionRecord] = []
    extraordinary: List[InterventionRecord] = []
    for record in records:
        (extraordinary if record.is_extraordinary else regular).append(record)
    return regular, extraordinary


def row_hours(record: InterventionRecord) -> Decimal:
    """Contribution of a record to the main-table hours column.

    On-call travel time is folded into the visible total and also broken
    out in the on-call columns.
    """
    hours = to_decimal(record.intervention_hours)
    if record.is_on_call:
        hours += to_decimal(record.effective_travel_hours)
    return hours


def compute_day_totals(records: Iterable[InterventionRecord]) -> DayTotals:
    main_total = ZERO
    on_call_intervention = ZERO
    on_call_travel = ZERO
    for record in records:
        # Extraordinary rows hide their hours in the table but still count here.
        main_total += row_hours(record)
        if record.is_on_call:
            on_call_intervention += to_decimal(record.intervention_hours)
            on_call_travel += to_decimal(record.effective_travel_hours)
    return DayTotals(
        main_table_hours=main_total,
        on_call_intervention_hours=on_call_intervention,
        on_call_travel_hours=on_call_travel,
    )


def summary_row(record: InterventionRecord) -> SummaryRow:
    if record.is_extraordinary:
        return SummaryRow(
            location=record.location,
            description=EXTRAORDINARY_PLACEHOLDER,
            hours="",
            on_call_intervention="",
            on_call_travel="",
        )
    hours = row_hours(record)
    return SummaryRow(
        location=record.location,
        description=record.description,
        hours=format_quantity(hours) if hours > 0 else "",
        on_call_intervention=format_quantity(to_decimal(record.intervention_hours)) if record.is_on_call else "",
        on_call_travel=format_quantity(to_decimal(record.effective_travel_hours)) if record.is_on_call else "",
    )


def summary_rows(records: Sequence[InterventionRecord]) -> List[SummaryRow]:
    return [summary_row(record) for record in records]


def extraordinary_hours(records: Iterable[InterventionRecord]) -> Decimal:
    return sum((to_decimal(record.intervention_hours) for record in records if record.is_extraordinary), ZERO)


def extraordinary_description(records: Iterable[InterventionRecord]) -> str:
    """One ``[location] description`` entry per extraordinary record, newline separated."""
    entries = []
    for record in records:
        if not record.is_extraordinary:
            continue
        prefix = f"[{record.location}] " if record.location else ""
        entries.append(f"{prefix}{record.description}")
    return "\n".join(entries)
