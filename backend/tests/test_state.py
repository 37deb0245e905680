from __future__ import annotations

import datetime as dt
import json
import threading

from rapportini import models
from rapportini.state import CLOSED_DATES_KEY, SENT_DATES_KEY, DayLifecycleState, group_dates_by_month


def test_mark_sent_then_unsent_one_day():
    state = DayLifecycleState()

    state.mark_sent([dt.date(2024, 5, 1), dt.date(2024, 5, 2)])
    result = state.mark_unsent(dt.date(2024, 5, 1))

    assert result == {"2024-05-02"}
    assert state.sent_dates == {"2024-05-02"}


def test_mark_sent_is_a_union():
    state = DayLifecycleState(sent_dates=["2024-05-01"])

    state.mark_sent([dt.date(2024, 5, 3)])

    assert state.sent_dates == {"2024-05-01", "2024-05-03"}


def test_close_day_is_one_way_and_independent_of_sent():
    state = DayLifecycleState()
    day = dt.date(2024, 5, 1)

    assert state.close_day(day) is True
    assert state.close_day(day) is False
    assert state.is_closed(day)
    assert not state.is_sent(day)

    state.mark_sent([day])
    state.mark_unsent(day)
    assert state.is_closed(day)


def test_reset_clears_both_sets():
    state = DayLifecycleState(sent_dates=["2024-05-01"], closed_dates=["2024-05-02"])

    state.reset()

    assert state.snapshot() == {SENT_DATES_KEY: [], CLOSED_DATES_KEY: []}


def test_malformed_keys_are_ignored():
    state = DayLifecycleState(sent_dates=["2024-05-01", "not-a-date", ""])

    assert state.sent_dates == {"2024-05-01"}


def test_day_groups_newest_first(make_record):
    state = DayLifecycleState(sent_dates=["2024-05-01"], closed_dates=["2024-05-02"])
    records = [
        make_record(day=dt.date(2024, 5, 1)),
        make_record(day=dt.date(2024, 5, 2)),
        make_record(day=dt.date(2024, 5, 1)),
    ]

    groups = state.day_groups(records)

    assert [group.day for group in groups] == [dt.date(2024, 5, 2), dt.date(2024, 5, 1)]
    assert groups[0].closed and not groups[0].sent
    assert groups[1].sent and not groups[1].closed
    assert len(groups[1].records) == 2


def test_partition_and_month_grouping():
    state = DayLifecycleState(sent_dates=["2024-04-30"])
    days = [dt.date(2024, 5, 2), dt.date(2024, 4, 30), dt.date(2024, 5, 1)]

    partitioned = state.partition(days)
    months = group_dates_by_month(partitioned["unsent"])

    assert partitioned["sent"] == [dt.date(2024, 4, 30)]
    assert list(months) == ["2024-05"]
    assert months["2024-05"] == [dt.date(2024, 5, 2), dt.date(2024, 5, 1)]


def test_persist_and_load_round_trip(session):
    state = DayLifecycleState()
    state.mark_sent([dt.date(2024, 5, 2)])
    state.close_day(dt.date(2024, 5, 1))
    state.persist(session)

    stored = session.query(models.AppSetting).filter(models.AppSetting.key == SENT_DATES_KEY).one()
    assert json.loads(stored.value) == ["2024-05-02"]

    restored = DayLifecycleState()
    restored.load_from_db(session)
    assert restored.sent_dates == {"2024-05-02"}
    assert restored.closed_dates == {"2024-05-01"}

    state.mark_unsent(dt.date(2024, 5, 2))
    state.persist(session)
    restored.load_from_db(session)
    assert restored.sent_dates == set()


def test_load_ignores_invalid_json(session):
    session.add(models.AppSetting(key=SENT_DATES_KEY, value="{broken"))
    session.commit()

    state = DayLifecycleState(sent_dates=["2024-05-01"])
    state.load_from_db(session)

    assert state.sent_dates == {"2024-05-01"}


def test_unsent_during_persist_waits_for_commit(session, monkeypatch):
    state = DayLifecycleState()
    state.mark_sent([dt.date(2024, 5, 1), dt.date(2024, 5, 2)])
    unsent = threading.Thread(target=state.mark_unsent, args=(dt.date(2024, 5, 1),))
    blocked = []
    real_commit = session.commit

    def commit():
        unsent.start()
        unsent.join(timeout=0.2)
        blocked.append(unsent.is_alive())
        real_commit()

    monkeypatch.setattr(session, "commit", commit)
    state.persist(session)
    unsent.join()
    monkeypatch.setattr(session, "commit", real_commit)

    assert blocked == [True]
    assert state.sent_dates == {"2024-05-02"}

    state.persist(session)
    restored = DayLifecycleState()
    restored.load_from_db(session)
    assert restored.sent_dates == state.sent_dates
