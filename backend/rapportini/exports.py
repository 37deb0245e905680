from __future__ import annotations

import datetime as dt
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from PyPDF2 import PdfMerger

from .documents import DEFAULT_BRANDING, Branding, compose_documents
from .domain import InterventionRecord, Photo, day_key
from .errors import RenderingFailure
from .state import DayLifecycleState
from .transport import FAILURE, SUCCESS, DeliveryMetadata, DeliveryOutcome, OutgoingFile, Transport

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    outcome: DeliveryOutcome
    delivered_days: List[dt.date] = field(default_factory=list)
    failed_days: Dict[str, str] = field(default_factory=dict)
    skipped_days: List[dt.date] = field(default_factory=list)
    file_names: List[str] = field(default_factory=list)


def photo_file_name(technician_name: str, day: dt.date, record_number: int, photo_number: int, photo: Photo) -> str:
    technician = re.sub(r"\s+", "_", technician_name)
    return f"Foto_{technician}_{day_key(day)}_{record_number}_{photo_number}.{photo.extension}"


def prepare_day_files(
    records: Sequence[InterventionRecord],
    day: dt.date,
    branding: Branding = DEFAULT_BRANDING,
) -> List[OutgoingFile]:
    """Documents of the day followed by every attached photo."""
    technician = records[0].technician_name
    files = [
        OutgoingFile(file_name=document.file_name, content=document.content, media_type=document.media_type)
        for document in compose_documents(records, day, technician, branding)
    ]
    for record_number, record in enumerate(records, start=1):
        for photo_number, photo in enumerate(record.photos, start=1):
            files.append(
                OutgoingFile(
                    file_name=photo_file_name(technician, day, record_number, photo_number, photo),
                    content=photo.content,
                    media_type=photo.media_type,
                )
            )
    return files


def export_days(
    groups: Mapping[dt.date, Sequence[InterventionRecord]],
    days: Sequence[dt.date],
    transport: Transport,
    state: DayLifecycleState,
    branding: Branding = DEFAULT_BRANDING,
) -> ExportResult:
    """Compose the selected days in order and hand everything to ``transport``.

    A day whose documents cannot be rendered is reported in ``failed_days``
    and left out; the other days are still delivered. Days are marked as
    sent only when the transport reports success.
    """
    result = ExportResult(outcome=FAILURE)
    files: List[OutgoingFile] = []
    for day in days:
        records = groups.get(day) or []
        if not records:
            result.skipped_days.append(day)
            continue
        try:
            day_files = prepare_day_files(records, day, branding)
        except RenderingFailure as exc:
            logger.exception("Skipping %s in export", day_key(day))
            result.failed_days[day_key(day)] = str(exc)
            continue
        files.extend(day_files)
        result.delivered_days.append(day)
    if not files:
        logger.warning("Nothing to export for %s", ", ".join(day_key(day) for day in days) or "-")
        return result
    result.file_names = [item.file_name for item in files]
    labels = ", ".join(day_key(day) for day in result.delivered_days)
    metadata = DeliveryMetadata(title=f"Rapportini {branding.name}", text=f"Allegati per: {labels}")
    result.outcome = transport.deliver(files, metadata)
    logger.info("Export of %s finished: %s", labels, result.outcome)
    if result.outcome == SUCCESS:
        state.mark_sent(result.delivered_days)
    else:
        result.delivered_days = []
    return result


def build_print_bundle(
    groups: Mapping[dt.date, Sequence[InterventionRecord]],
    days: Sequence[dt.date],
    branding: Branding = DEFAULT_BRANDING,
) -> bytes:
    """All documents of the selected days merged into one PDF, in selection order."""
    merger = PdfMerger()
    pages_added = 0
    for day in days:
        records = groups.get(day) or []
        if not records:
            continue
        for document in compose_documents(records, day, records[0].technician_name, branding):
            merger.append(io.BytesIO(document.content))
            pages_added += 1
    if pages_added == 0:
        merger.close()
        raise LookupError("No documents for the selected days")
    output = io.BytesIO()
    merger.write(output)
    merger.close()
    return output.getvalue()
