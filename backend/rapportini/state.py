from __future__ import annotations

import datetime as dt
import json
import logging
from dataclasses import dataclass
from threading import RLock
from typing import Dict, Iterable, List, Mapping, Sequence, Set

from sqlalchemy.orm import Session

from .aggregation import group_by_date
from .domain import InterventionRecord, day_key
from .models import AppSetting

logger = logging.getLogger(__name__)

SENT_DATES_KEY = "sent_dates"
CLOSED_DATES_KEY = "closed_dates"


def _normalize_dates(values: Iterable[object]) -> Set[str]:
    normalized: Set[str] = set()
    for value in values:
        if isinstance(value, dt.date):
            normalized.add(day_key(value))
            continue
        text = str(value).strip()
        if not text:
            continue
        try:
            normalized.add(day_key(dt.date.fromisoformat(text)))
        except ValueError:
            logger.warning("Ignoring malformed day key %r", text)
    return normalized


@dataclass(frozen=True)
class DayGroup:
    day: dt.date
    records: List[InterventionRecord]
    closed: bool
    sent: bool


class DayLifecycleState:
    """Per-day ``closed`` and ``sent`` flags.

    The two flags are independent sets of ``YYYY-MM-DD`` keys. ``closed`` is
    one-way and purely informational, ``sent`` toggles freely.
    """

    def __init__(self, sent_dates: Iterable[object] = (), closed_dates: Iterable[object] = ()) -> None:
        self._lock = RLock()
        self._sent: Set[str] = _normalize_dates(sent_dates)
        self._closed: Set[str] = _normalize_dates(closed_dates)

    @property
    def sent_dates(self) -> Set[str]:
        with self._lock:
            return set(self._sent)

    @property
    def closed_dates(self) -> Set[str]:
        with self._lock:
            return set(self._closed)

    def is_sent(self, day: dt.date) -> bool:
        with self._lock:
            return day_key(day) in self._sent

    def is_closed(self, day: dt.date) -> bool:
        with self._lock:
            return day_key(day) in self._closed

    def close_day(self, day: dt.date) -> bool:
        """Close ``day``; returns False when it was already closed."""
        key = day_key(day)
        with self._lock:
            if key in self._closed:
                return False
            self._closed.add(key)
        logger.info("Day %s closed", key)
        return True

    def mark_sent(self, days: Iterable[dt.date]) -> Set[str]:
        keys = {day_key(day) for day in days}
        with self._lock:
            self._sent |= keys
            result = set(self._sent)
        logger.info("Marked as sent: %s", ", ".join(sorted(keys)) or "-")
        return result

    def mark_unsent(self, day: dt.date) -> Set[str]:
        key = day_key(day)
        with self._lock:
            self._sent.discard(key)
            result = set(self._sent)
        logger.info("Day %s marked as not sent", key)
        return result

    def reset(self) -> None:
        with self._lock:
            self._sent.clear()
            self._closed.clear()
        logger.info("Day flags cleared")

    def snapshot(self) -> Dict[str, List[str]]:
        with self._lock:
            return {
                SENT_DATES_KEY: sorted(self._sent),
                CLOSED_DATES_KEY: sorted(self._closed),
            }

    def day_groups(self, records: Iterable[InterventionRecord]) -> List[DayGroup]:
        """Day groups, newest day first."""
        grouped = group_by_date(records)
        with self._lock:
            return [
                DayGroup(
                    day=day,
                    records=grouped[day],
                    closed=day_key(day) in self._closed,
                    sent=day_key(day) in self._sent,
                )
                for day in sorted(grouped, reverse=True)
            ]

    def partition(self, days: Sequence[dt.date]) -> Dict[str, List[dt.date]]:
        with self._lock:
            unsent = [day for day in days if day_key(day) not in self._sent]
            sent = [day for day in days if day_key(day) in self._sent]
        return {"unsent": unsent, "sent": sent}

    def load_from_db(self, session: Session) -> None:
        records = session.query(AppSetting).filter(AppSetting.key.in_((SENT_DATES_KEY, CLOSED_DATES_KEY))).all()
        decoded: Dict[str, List[str]] = {}
        for record in records:
            try:
                value = json.loads(record.value)
            except json.JSONDecodeError:
                logger.warning("Stored %s is not valid JSON, ignoring it", record.key)
                continue
            decoded[record.key] = value if isinstance(value, list) else []
        with self._lock:
            if SENT_DATES_KEY in decoded:
                self._sent = _normalize_dates(decoded[SENT_DATES_KEY])
            if CLOSED_DATES_KEY in decoded:
                self._closed = _normalize_dates(decoded[CLOSED_DATES_KEY])

    def persist(self, session: Session) -> None:
        """Write both sets to ``app_settings``.

        The lock is held until the commit, so writers land in the database
        in the same order as their in-memory changes.
        """
        with self._lock:
            for key, value in self.snapshot().items():
                encoded = json.dumps(value)
                record = session.query(AppSetting).filter(AppSetting.key == key).one_or_none()
                if record:
                    record.value = encoded
                else:
                    session.add(AppSetting(key=key, value=encoded))
            session.commit()


def group_dates_by_month(days: Iterable[dt.date]) -> Mapping[str, List[dt.date]]:
    """``YYYY-MM`` -> days, months and days newest first."""
    months: Dict[str, List[dt.date]] = {}
    for day in sorted(days, reverse=True):
        months.setdefault(day.strftime("%Y-%m"), []).append(day)
    return months
