from __future__ import annotations

import base64
import binascii
import datetime as dt
from typing import Any, Dict, List, Optional

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


class PhotoPayload(BaseModel):
    media_type: str = "image/jpeg"
    data: str

    @model_validator(mode="before")
    @classmethod
    def _split_data_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = {"data": value}
        if isinstance(value, dict):
            data = value.get("data")
            if isinstance(data, str) and data.startswith("data:") and "," in data:
                header, encoded = data.split(",", 1)
                media_type = header[5:].split(";", 1)[0] or "image/jpeg"
                value = {**value, "media_type": media_type, "data": encoded}
        return value

    @field_validator("data")
    @classmethod
    def _validate_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("photo data must be base64 encoded") from exc
        return value

    def decoded(self) -> bytes:
        return base64.b64decode(self.data)


class InterventionCreateRequest(BaseModel):
    technician_name: str = Field(min_length=1, max_length=200)
    location: str = Field(default="", max_length=200)
    description: str = ""
    day: dt.date
    work_type: Literal["ordinary", "on_call", "extraordinary"] = "ordinary"
    intervention_hours: float = Field(ge=0, allow_inf_nan=False)
    travel_hours: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    photos: List[PhotoPayload] = Field(default_factory=list)

    @field_validator("technician_name", "location")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def _travel_only_on_call(self) -> "InterventionCreateRequest":
        if self.work_type != "on_call":
            self.travel_hours = 0.0
        return self


class InterventionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    technician_name: str
    location: str
    description: str
    day: dt.date
    work_type: str
    intervention_hours: float
    travel_hours: float
    photo_count: int = 0
    created_at: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "technician_name": self.technician_name,
            "location": self.location,
            "description": self.description,
            "day": self.day.isoformat(),
            "work_type": self.work_type,
            "intervention_hours": self.intervention_hours,
            "travel_hours": self.travel_hours,
            "photo_count": self.photo_count,
            "created_at": _serialize_datetime(self.created_at),
        }


class ShareTextResponse(BaseModel):
    text: str


class DayTotalsResponse(BaseModel):
    main_table_hours: str
    on_call_intervention_hours: str
    on_call_travel_hours: str


class DayGroupResponse(BaseModel):
    day: dt.date
    intervention_count: int
    technician_name: Optional[str] = None
    has_extraordinary: bool
    closed: bool
    sent: bool
    totals: DayTotalsResponse


class ArchiveResponse(BaseModel):
    unsent: Dict[str, List[dt.date]]
    sent: Dict[str, List[dt.date]]


class DayStateResponse(BaseModel):
    sent_dates: List[str]
    closed_dates: List[str]


class DaySelectionRequest(BaseModel):
    days: List[dt.date] = Field(min_length=1)


class DocumentInfo(BaseModel):
    kind: str
    file_name: str
    size: int


class ExportRequest(DaySelectionRequest):
    transport: Literal["archive", "directory"] = "archive"


class ExportResponse(BaseModel):
    outcome: str
    delivered_days: List[dt.date]
    failed_days: Dict[str, str]
    skipped_days: List[dt.date]
    file_names: List[str]


class BackupPhoto(BaseModel):
    media_type: str = "image/jpeg"
    data: str


class BackupRecord(BaseModel):
    id: str
    technician_name: str
    location: str = ""
    description: str = ""
    day: dt.date
    work_type: Literal["ordinary", "on_call", "extraordinary"] = "ordinary"
    intervention_hours: float = Field(ge=0, allow_inf_nan=False)
    travel_hours: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    photos: List[BackupPhoto] = Field(default_factory=list)
    created_at: Optional[dt.datetime] = None


class BackupPayload(BaseModel):
    records: List[BackupRecord]


class RestoreResponse(BaseModel):
    restored: int
