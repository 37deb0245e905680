from __future__ import annotations

import datetime as dt
from decimal import Decimal

from rapportini.aggregation import (
    EXTRAORDINARY_PLACEHOLDER,
    compute_day_totals,
    extraordinary_description,
    extraordinary_hours,
    format_quantity,
    format_total,
    format_total_or_blank,
    group_by_date,
    split_extraordinary,
    summary_row,
)
from rapportini.documents import build_extraordinary_sheet, build_summary_sheet
from rapportini.domain import format_share_text


def test_ordinary_record_summary(make_record):
    day = dt.date(2024, 5, 1)
    record = make_record(day=day, location="Site A", intervention_hours=3)

    sheet = build_summary_sheet([record], day, "Mario Rossi")

    row = sheet.rows[0]
    assert row.hours == "3"
    assert row.on_call_intervention == ""
    assert row.on_call_travel == ""
    assert sheet.hours_total == "3.0"
    assert sheet.on_call_intervention_total == ""
    assert build_extraordinary_sheet([record], day, "Mario Rossi") is None


def test_on_call_record_folds_travel_into_hours(make_record):
    day = dt.date(2024, 5, 1)
    record = make_record(day=day, work_type="on_call", intervention_hours=2, travel_hours=1)

    sheet = build_summary_sheet([record], day, "Mario Rossi")

    row = sheet.rows[0]
    assert row.hours == "3"
    assert row.on_call_intervention == "2"
    assert row.on_call_travel == "1"
    assert sheet.hours_total == "3.0"
    assert sheet.on_call_intervention_total == "2.0"
    assert sheet.on_call_travel_total == "1.0"


def test_extraordinary_row_hidden_but_counted_in_total(make_record):
    # Extraordinary rows show a placeholder and no hours, yet their hours are part of the day total.
    day = dt.date(2024, 5, 1)
    record = make_record(
        day=day, work_type="extraordinary", location="Site B", description="fix pump", intervention_hours=4
    )

    summary = build_summary_sheet([record], day, "Mario Rossi")
    assert summary.rows[0].description == EXTRAORDINARY_PLACEHOLDER
    assert summary.rows[0].hours == ""
    assert summary.hours_total == "4.0"

    extraordinary = build_extraordinary_sheet([record], day, "Mario Rossi")
    assert extraordinary is not None
    assert extraordinary.technician_hours == "4"
    assert "[Site B] fix pump" in extraordinary.description
    assert extraordinary.client == "Site B"


def test_on_call_totals_only_count_on_call_records(make_record):
    records = [
        make_record(intervention_hours=2.5),
        make_record(work_type="on_call", intervention_hours=1.5, travel_hours=0.5),
        make_record(work_type="on_call", intervention_hours=1, travel_hours=None),
        make_record(work_type="extraordinary", intervention_hours=2),
    ]

    totals = compute_day_totals(records)

    assert totals.main_table_hours == Decimal("7.5")
    assert totals.on_call_intervention_hours == Decimal("2.5")
    assert totals.on_call_travel_hours == Decimal("0.5")


def test_travel_hours_ignored_for_non_on_call(make_record):
    record = make_record(work_type="ordinary", intervention_hours=2, travel_hours=5)

    assert summary_row(record).hours == "2"
    assert compute_day_totals([record]).main_table_hours == Decimal("2")


def test_decimal_sums_avoid_float_drift(make_record):
    records = [make_record(intervention_hours=0.1) for _ in range(3)]

    assert format_total(compute_day_totals(records).main_table_hours) == "0.3"


def test_empty_day_has_zero_totals():
    totals = compute_day_totals([])

    assert format_total(totals.main_table_hours) == "0.0"
    assert format_total_or_blank(totals.main_table_hours) == ""


def test_group_by_date_keeps_insertion_order(make_record):
    first = make_record(day=dt.date(2024, 5, 2))
    second = make_record(day=dt.date(2024, 5, 1))
    third = make_record(day=dt.date(2024, 5, 2))

    groups = group_by_date([first, second, third])

    assert list(groups) == [dt.date(2024, 5, 2), dt.date(2024, 5, 1)]
    assert groups[dt.date(2024, 5, 2)] == [first, third]


def test_extraordinary_helpers(make_record):
    records = [
        make_record(work_type="extraordinary", location="Site B", description="fix pump", intervention_hours=1.5),
        make_record(description="ordinary work"),
        make_record(work_type="extraordinary", location="", description="cleanup", intervention_hours=2),
    ]

    regular, extraordinary = split_extraordinary(records)

    assert len(regular) == 1
    assert len(extraordinary) == 2
    assert extraordinary_hours(records) == Decimal("3.5")
    assert extraordinary_description(records) == "[Site B] fix pump\ncleanup"


def test_format_quantity():
    assert format_quantity(Decimal("3.0")) == "3"
    assert format_quantity(Decimal("2.50")) == "2.5"
    assert format_quantity(Decimal("10")) == "10"


def test_share_text_mentions_travel_only_for_on_call(make_record):
    ordinary = make_record(intervention_hours=2)
    on_call = make_record(work_type="on_call", intervention_hours=2, travel_hours=0.5)

    ordinary_text = format_share_text(ordinary)
    on_call_text = format_share_text(on_call)

    assert ordinary_text.startswith("*Rapportino CFS Facility*")
    assert "Tecnico: Mario Rossi" in ordinary_text
    assert "Ore Lavoro: 2h" in ordinary_text
    assert "Ore Viaggio" not in ordinary_text
    assert "Tipo: Reperibilità" in on_call_text
    assert "Ore Viaggio: 0.5h" in on_call_text
