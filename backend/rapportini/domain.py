"""Intervention records as seen by the report engine."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional, Tuple

from typing_extensions import Literal

WorkType = Literal["ordinary", "on_call", "extraordinary"]

ORDINARY: WorkType = "ordinary"
ON_CALL: WorkType = "on_call"
EXTRAORDINARY: WorkType = "extraordinary"

WORK_TYPE_LABELS = {
    ORDINARY: "Ordinario",
    ON_CALL: "Reperibilità",
    EXTRAORDINARY: "Straordinario",
}


@dataclass(frozen=True, slots=True)
class Photo:
    """An image attached to an intervention."""

    content: bytes
    media_type: str = "image/jpeg"

    @property
    def extension(self) -> str:
        subtype = self.media_type.split("/", 1)[-1].lower()
        return "jpg" if subtype in {"jpeg", "pjpeg"} else subtype


@dataclass(frozen=True, slots=True)
class InterventionRecord:
    """One logged unit of field work.

    The form layer validates records before they get here. The engine only
    relies on ``intervention_hours`` and treats a missing travel time or an
    empty photo list as zero/empty.
    """

    id: str
    technician_name: str
    location: str
    description: str
    day: dt.date
    work_type: WorkType
    intervention_hours: float
    travel_hours: Optional[float] = 0.0
    photos: Tuple[Photo, ...] = field(default_factory=tuple)
    created_at: Optional[dt.datetime] = None

    @property
    def is_on_call(self) -> bool:
        return self.work_type == ON_CALL

    @property
    def is_extraordinary(self) -> bool:
        return self.work_type == EXTRAORDINARY

    @property
    def effective_travel_hours(self) -> float:
        return self.travel_hours or 0.0


def day_key(day: dt.date) -> str:
    """Key used for file names and the persisted day flags (``YYYY-MM-DD``)."""
    return day.isoformat()


def format_share_text(record: InterventionRecord, brand: str = "CFS Facility") -> str:
    """Plain-text summary of one intervention, ready to paste into a chat."""
    lines = [
        f"*Rapportino {brand}*",
        f"Tecnico: {record.technician_name}",
        f"Data: {day_key(record.day)}",
        f"Cantiere: {record.location}",
        "------------------",
        record.description,
        "------------------",
        f"Tipo: {WORK_TYPE_LABELS.get(record.work_type, record.work_type)}",
        f"Ore Lavoro: {_plain_number(record.intervention_hours)}h",
    ]
    if record.is_on_call:
        lines.append(f"Ore Viaggio: {_plain_number(record.effective_travel_hours)}h")
    return "\n".join(lines)


def _plain_number(value: float) -> str:
    return f"{value:g}"
