from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import db_session, get_db, init_db
from .logging_setup import configure_logging
from .schemas import (
    ArchiveResponse,
    BackupPayload,
    DayGroupResponse,
    DaySelectionRequest,
    DayStateResponse,
    DocumentInfo,
    ExportRequest,
    ExportResponse,
    InterventionCreateRequest,
    InterventionResponse,
    RestoreResponse,
    ShareTextResponse,
)
from .services import (
    archive_overview,
    close_day,
    create_intervention,
    day_document,
    day_documents,
    delete_intervention,
    describe_intervention,
    export_backup,
    export_selected_days,
    intervention_share_text,
    list_day_groups,
    list_interventions,
    mark_day_unsent,
    mark_days_sent,
    print_selected_days,
    reset_day_state,
    restore_backup,
)
from .state import DayLifecycleState
from .transport import SUCCESS, ArchiveTransport, DirectoryTransport

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

init_db()

day_state = DayLifecycleState()
with db_session() as session:
    try:
        day_state.load_from_db(session)
    except SQLAlchemyError:
        logger.exception("Could not load the stored day flags, starting with empty ones")

app = FastAPI(title=settings.app_name)
app.state.day_state = day_state
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:5173", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _day_state(request: Request) -> DayLifecycleState:
    return request.app.state.day_state


def _state_response(state: DayLifecycleState) -> DayStateResponse:
    snapshot = state.snapshot()
    return DayStateResponse(sent_dates=snapshot["sent_dates"], closed_dates=snapshot["closed_dates"])


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/interventions", response_model=InterventionResponse, status_code=status.HTTP_201_CREATED)
def create_intervention_entry(payload: InterventionCreateRequest, db: Session = Depends(get_db)) -> InterventionResponse:
    entry = create_intervention(db, payload)
    return InterventionResponse(**describe_intervention(entry))


@app.get("/interventions", response_model=list[InterventionResponse])
def get_interventions(
    day: Optional[dt.date] = None,
    technician: Optional[str] = None,
    db: Session = Depends(get_db),
) -> list[InterventionResponse]:
    return [InterventionResponse(**describe_intervention(entry)) for entry in list_interventions(db, day, technician)]


@app.delete("/interventions/{intervention_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_intervention(intervention_id: str, db: Session = Depends(get_db)) -> Response:
    delete_intervention(db, intervention_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/interventions/{intervention_id}/share-text", response_model=ShareTextResponse)
def get_share_text(intervention_id: str, db: Session = Depends(get_db)) -> ShareTextResponse:
    return ShareTextResponse(text=intervention_share_text(db, intervention_id))


@app.get("/days", response_model=list[DayGroupResponse])
def get_days(request: Request, technician: Optional[str] = None, db: Session = Depends(get_db)) -> list[DayGroupResponse]:
    return [DayGroupResponse(**item) for item in list_day_groups(db, _day_state(request), technician)]


@app.get("/days/archive", response_model=ArchiveResponse)
def get_archive(request: Request, db: Session = Depends(get_db)) -> ArchiveResponse:
    return ArchiveResponse(**archive_overview(db, _day_state(request)))


@app.get("/days/state", response_model=DayStateResponse)
def get_day_state(request: Request) -> DayStateResponse:
    return _state_response(_day_state(request))


@app.post("/days/sent", response_model=DayStateResponse)
def mark_sent(payload: DaySelectionRequest, request: Request, db: Session = Depends(get_db)) -> DayStateResponse:
    state = _day_state(request)
    mark_days_sent(db, state, payload.days)
    return _state_response(state)


@app.post("/days/reset", response_model=DayStateResponse)
def reset_days(request: Request, db: Session = Depends(get_db)) -> DayStateResponse:
    state = _day_state(request)
    reset_day_state(db, state)
    return _state_response(state)


@app.post("/days/{day}/close", response_model=DayStateResponse)
def close_work_day(day: dt.date, request: Request, db: Session = Depends(get_db)) -> DayStateResponse:
    state = _day_state(request)
    if not close_day(db, state, day):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Day already closed")
    return _state_response(state)


@app.delete("/days/{day}/sent", response_model=DayStateResponse)
def mark_unsent(day: dt.date, request: Request, db: Session = Depends(get_db)) -> DayStateResponse:
    state = _day_state(request)
    mark_day_unsent(db, state, day)
    return _state_response(state)


@app.get("/days/{day}/documents", response_model=list[DocumentInfo])
def list_day_documents(day: dt.date, technician: Optional[str] = None, db: Session = Depends(get_db)) -> List[DocumentInfo]:
    return [
        DocumentInfo(kind=document.kind, file_name=document.file_name, size=len(document.content))
        for document in day_documents(db, day, technician)
    ]


@app.get("/days/{day}/documents/{kind}")
def download_day_document(
    day: dt.date,
    kind: str,
    technician: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Response:
    document = day_document(db, day, kind, technician)
    return _pdf_response(document.content, document.file_name)


@app.post("/exports")
def create_export(payload: ExportRequest, request: Request, db: Session = Depends(get_db)) -> Response:
    state = _day_state(request)
    if payload.transport == "directory":
        result = export_selected_days(db, state, payload.days, DirectoryTransport(settings.export_dir))
        if result.outcome != SUCCESS and not result.skipped_days and not result.failed_days:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Export could not be written")
        body = ExportResponse(
            outcome=result.outcome,
            delivered_days=result.delivered_days,
            failed_days=result.failed_days,
            skipped_days=result.skipped_days,
            file_names=result.file_names,
        )
        return Response(content=body.model_dump_json(), media_type="application/json")

    labels = "_".join(day.isoformat() for day in payload.days)
    transport = ArchiveTransport(f"rapportini_{labels}.zip")
    result = export_selected_days(db, state, payload.days, transport)
    if result.outcome != SUCCESS or transport.content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No documents for the selected days")
    return Response(
        content=transport.content,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{transport.file_name}"',
            "X-Delivered-Days": ",".join(day.isoformat() for day in result.delivered_days),
            "X-Failed-Days": ",".join(result.failed_days),
        },
    )


@app.post("/exports/print")
def print_export(payload: DaySelectionRequest, db: Session = Depends(get_db)) -> Response:
    content = print_selected_days(db, payload.days)
    labels = "_".join(day.isoformat() for day in payload.days)
    return _pdf_response(content, f"rapportini_{labels}.pdf")


@app.get("/backup", response_model=BackupPayload)
def download_backup(db: Session = Depends(get_db)) -> BackupPayload:
    return BackupPayload(**export_backup(db))


@app.post("/backup", response_model=RestoreResponse)
def upload_backup(payload: BackupPayload, db: Session = Depends(get_db)) -> RestoreResponse:
    return RestoreResponse(restored=restore_backup(db, payload))
