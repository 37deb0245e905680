from __future__ import annotations

import base64
import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from .aggregation import compute_day_totals, format_total, group_by_date
from .config import settings
from .documents import Branding, GeneratedDocument, compose_document, compose_documents
from .domain import InterventionRecord, Photo, day_key, format_share_text
from .errors import RenderingFailure, UnknownDocumentKind
from .exports import ExportResult, build_print_bundle, export_days
from .models import Intervention, InterventionPhoto
from .schemas import BackupPayload, InterventionCreateRequest, PhotoPayload
from .state import DayLifecycleState, group_dates_by_month
from .transport import Transport

logger = logging.getLogger(__name__)


def branding_from_settings() -> Branding:
    return Branding(
        name=settings.brand_name,
        tagline=settings.brand_tagline,
        summary_form_code=settings.summary_form_code,
        extraordinary_form_code=settings.extraordinary_form_code,
    )


def to_record(entry: Intervention) -> InterventionRecord:
    return InterventionRecord(
        id=entry.id,
        technician_name=entry.technician_name,
        location=entry.location or "",
        description=entry.description or "",
        day=entry.day,
        work_type=entry.work_type,
        intervention_hours=entry.intervention_hours or 0.0,
        travel_hours=entry.travel_hours or 0.0,
        photos=tuple(Photo(content=photo.content, media_type=photo.media_type) for photo in entry.photos),
        created_at=entry.created_at,
    )


def _photo_rows(photos: Sequence[PhotoPayload]) -> List[InterventionPhoto]:
    return [
        InterventionPhoto(position=position, media_type=photo.media_type, content=photo.decoded())
        for position, photo in enumerate(photos)
    ]


def create_intervention(db: Session, payload: InterventionCreateRequest) -> Intervention:
    entry = Intervention(
        technician_name=payload.technician_name,
        location=payload.location,
        description=payload.description,
        day=payload.day,
        work_type=payload.work_type,
        intervention_hours=payload.intervention_hours,
        travel_hours=payload.travel_hours,
        photos=_photo_rows(payload.photos),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Intervention %s saved for %s", entry.id, day_key(entry.day))
    return entry


def _query_interventions(db: Session, day: Optional[dt.date] = None, technician: Optional[str] = None):
    query = db.query(Intervention).options(selectinload(Intervention.photos))
    if day is not None:
        query = query.filter(Intervention.day == day)
    if technician:
        query = query.filter(Intervention.technician_name == technician)
    # newest entries first, like the intervention history
    return query.order_by(Intervention.created_at.desc(), Intervention.id.asc())


def list_interventions(
    db: Session, day: Optional[dt.date] = None, technician: Optional[str] = None
) -> List[Intervention]:
    return _query_interventions(db, day, technician).all()


def list_records(db: Session, day: Optional[dt.date] = None, technician: Optional[str] = None) -> List[InterventionRecord]:
    return [to_record(entry) for entry in list_interventions(db, day, technician)]


def get_intervention(db: Session, intervention_id: str) -> Intervention:
    entry = db.query(Intervention).filter(Intervention.id == intervention_id).one_or_none()
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Intervention not found")
    return entry


def delete_intervention(db: Session, intervention_id: str) -> None:
    entry = get_intervention(db, intervention_id)
    db.delete(entry)
    db.commit()
    logger.info("Intervention %s deleted", intervention_id)


def intervention_share_text(db: Session, intervention_id: str) -> str:
    entry = get_intervention(db, intervention_id)
    return format_share_text(to_record(entry), f"{settings.brand_name} {settings.brand_tagline.title()}")


def describe_intervention(entry: Intervention) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "technician_name": entry.technician_name,
        "location": entry.location,
        "description": entry.description,
        "day": entry.day,
        "work_type": entry.work_type,
        "intervention_hours": entry.intervention_hours,
        "travel_hours": entry.travel_hours,
        "photo_count": len(entry.photos),
        "created_at": entry.created_at,
    }


def list_day_groups(db: Session, state: DayLifecycleState, technician: Optional[str] = None) -> List[Dict[str, Any]]:
    groups = state.day_groups(list_records(db, technician=technician))
    summaries: List[Dict[str, Any]] = []
    for group in groups:
        totals = compute_day_totals(group.records)
        summaries.append(
            {
                "day": group.day,
                "intervention_count": len(group.records),
                "technician_name": group.records[0].technician_name if group.records else None,
                "has_extraordinary": any(record.is_extraordinary for record in group.records),
                "closed": group.closed,
                "sent": group.sent,
                "totals": {
                    "main_table_hours": format_total(totals.main_table_hours),
                    "on_call_intervention_hours": format_total(totals.on_call_intervention_hours),
                    "on_call_travel_hours": format_total(totals.on_call_travel_hours),
                },
            }
        )
    return summaries


def archive_overview(db: Session, state: DayLifecycleState) -> Dict[str, Dict[str, List[dt.date]]]:
    days = list(group_by_date(list_records(db)))
    partitioned = state.partition(days)
    return {
        "unsent": dict(group_dates_by_month(partitioned["unsent"])),
        "sent": dict(group_dates_by_month(partitioned["sent"])),
    }


def _logged_order(records: Sequence[InterventionRecord]) -> List[InterventionRecord]:
    """Records in the order they were logged (sqlite hands back naive UTC datetimes)."""

    def created(record: InterventionRecord) -> dt.datetime:
        value = record.created_at or dt.datetime.min
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value

    return sorted(records, key=created)


def _day_records(db: Session, day: dt.date, technician: Optional[str]) -> Tuple[List[InterventionRecord], str]:
    records = _logged_order(list_records(db, day, technician))
    if technician:
        return records, technician
    if records:
        return records, records[0].technician_name
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="No interventions for this day, pass the technician name to print a blank sheet",
    )


def day_documents(db: Session, day: dt.date, technician: Optional[str] = None) -> List[GeneratedDocument]:
    records, technician_name = _day_records(db, day, technician)
    try:
        return compose_documents(records, day, technician_name, branding_from_settings())
    except RenderingFailure as exc:
        logger.exception("Document rendering failed for %s", day_key(day))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def day_document(db: Session, day: dt.date, kind: str, technician: Optional[str] = None) -> GeneratedDocument:
    records, technician_name = _day_records(db, day, technician)
    try:
        return compose_document(records, day, technician_name, kind, branding_from_settings())
    except UnknownDocumentKind as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not available for this day") from exc
    except RenderingFailure as exc:
        logger.exception("Document rendering failed for %s", day_key(day))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def _groups_for(db: Session, days: Sequence[dt.date]) -> Dict[dt.date, List[InterventionRecord]]:
    groups: Dict[dt.date, List[InterventionRecord]] = {}
    for day in dict.fromkeys(days):
        records = _logged_order(list_records(db, day))
        if records:
            groups[day] = records
    return groups


def export_selected_days(
    db: Session,
    state: DayLifecycleState,
    days: Sequence[dt.date],
    transport: Transport,
) -> ExportResult:
    result = export_days(_groups_for(db, days), days, transport, state, branding_from_settings())
    if result.delivered_days:
        state.persist(db)
    return result


def print_selected_days(db: Session, days: Sequence[dt.date]) -> bytes:
    try:
        return build_print_bundle(_groups_for(db, days), days, branding_from_settings())
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No interventions for the selected days") from exc
    except RenderingFailure as exc:
        logger.exception("Print bundle rendering failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def close_day(db: Session, state: DayLifecycleState, day: dt.date) -> bool:
    changed = state.close_day(day)
    if changed:
        state.persist(db)
    return changed


def mark_days_sent(db: Session, state: DayLifecycleState, days: Sequence[dt.date]) -> None:
    state.mark_sent(days)
    state.persist(db)


def mark_day_unsent(db: Session, state: DayLifecycleState, day: dt.date) -> None:
    state.mark_unsent(day)
    state.persist(db)


def reset_day_state(db: Session, state: DayLifecycleState) -> None:
    state.reset()
    state.persist(db)


def export_backup(db: Session) -> Dict[str, Any]:
    records = []
    for entry in list_interventions(db):
        records.append(
            {
                "id": entry.id,
                "technician_name": entry.technician_name,
                "location": entry.location,
                "description": entry.description,
                "day": entry.day.isoformat(),
                "work_type": entry.work_type,
                "intervention_hours": entry.intervention_hours,
                "travel_hours": entry.travel_hours,
                "photos": [
                    {"media_type": photo.media_type, "data": base64.b64encode(photo.content).decode("ascii")}
                    for photo in entry.photos
                ],
                "created_at": entry.created_at.isoformat() if entry.created_at else None,
            }
        )
    return {"records": records}


def restore_backup(db: Session, payload: BackupPayload) -> int:
    """Replace every stored intervention with the backup content."""
    if not payload.records:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Backup contains no interventions")
    try:
        entries = [
            Intervention(
                id=item.id,
                technician_name=item.technician_name,
                location=item.location,
                description=item.description,
                day=item.day,
                work_type=item.work_type,
                intervention_hours=item.intervention_hours,
                travel_hours=item.travel_hours if item.work_type == "on_call" else 0.0,
                created_at=item.created_at or dt.datetime.now(dt.timezone.utc),
                photos=[
                    InterventionPhoto(position=position, media_type=photo.media_type, content=base64.b64decode(photo.data))
                    for position, photo in enumerate(item.photos)
                ],
            )
            for item in payload.records
        ]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Backup contains invalid photo data") from exc
    for existing in db.query(Intervention).all():
        db.delete(existing)
    db.flush()
    db.add_all(entries)
    db.commit()
    logger.info("Restored %d interventions from backup", len(entries))
    return len(entries)
