"""Daily summary and extraordinary-work PDF documents."""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .aggregation import (
    DayTotals,
    SummaryRow,
    compute_day_totals,
    extraordinary_description,
    extraordinary_hours,
    format_quantity,
    format_total,
    format_total_or_blank,
    split_extraordinary,
    summary_rows,
)
from .domain import InterventionRecord, day_key
from .errors import RenderingFailure, UnknownDocumentKind
from .layout import (
    MARGIN,
    PAGE_HEIGHT,
    PAGE_WIDTH,
    PRINT_WIDTH,
    Cell,
    CellStyle,
    Color,
    Column,
    Page,
    Table,
    TableStyle,
    wrap_text,
)

logger = logging.getLogger(__name__)

SUMMARY = "summary"
EXTRAORDINARY = "extraordinary"

DOCUMENT_PREFIXES = {
    SUMMARY: "Rapportino",
    EXTRAORDINARY: "Straordinari",
}

BRAND_ORANGE: Color = (243, 125, 32)
BRAND_BLUE: Color = (72, 122, 150)
BRAND_GREY: Color = (90, 89, 84)
ON_CALL_RED: Color = (200, 0, 0)
HEADER_GREY: Color = (230, 230, 230)
SECTION_GREY: Color = (220, 220, 220)
TOTALS_GREY: Color = (240, 240, 240)

SUMMARY_MIN_ROWS = 20
SUMMARY_FOOTER_Y = 275.0
ANNOTATION_COLUMNS = ("CC", "PRC", "CG / GRC", "LE", "FERIE", "ROL")

DESCRIPTION_MIN_LINES = 12
MATERIAL_ROWS = 3
SIGNATURE_BOX_Y = 255.0

# Logo arrows on a 100x100 grid, scaled to the requested size.
_ORANGE_ARROW = ((50, 20), (20, 20), (20, 80), (0, 80), (25, 100), (50, 80), (42, 80), (42, 50), (50, 40))
_BLUE_ARROW = ((50, 80), (80, 80), (80, 20), (100, 20), (75, 0), (50, 20), (58, 20), (58, 50), (50, 60))


@dataclass(frozen=True)
class Branding:
    name: str = "CFS"
    tagline: str = "FACILITY"
    summary_form_code: str = "M-FGI-01-IT"
    extraordinary_form_code: str = "MT-INT-23-01"


DEFAULT_BRANDING = Branding()


@dataclass(frozen=True)
class GeneratedDocument:
    kind: str
    file_name: str
    content: bytes
    media_type: str = "application/pdf"


@dataclass(frozen=True)
class SummarySheet:
    day: dt.date
    technician_name: str
    rows: List[SummaryRow]
    totals: DayTotals

    @property
    def hours_total(self) -> str:
        return format_total_or_blank(self.totals.main_table_hours)

    @property
    def on_call_intervention_total(self) -> str:
        return format_total_or_blank(self.totals.on_call_intervention_hours)

    @property
    def on_call_travel_total(self) -> str:
        return format_total_or_blank(self.totals.on_call_travel_hours)


@dataclass(frozen=True)
class ExtraordinarySheet:
    day: dt.date
    technician_name: str
    client: str
    technician_hours: str
    description: str


def document_file_name(kind: str, technician_name: str, day: dt.date) -> str:
    try:
        prefix = DOCUMENT_PREFIXES[kind]
    except KeyError:
        raise UnknownDocumentKind(kind) from None
    technician = re.sub(r"\s+", "_", technician_name)
    return f"{prefix}_{technician}_{day_key(day)}.pdf"


def build_summary_sheet(records: Sequence[InterventionRecord], day: dt.date, technician_name: str) -> SummarySheet:
    return SummarySheet(
        day=day,
        technician_name=technician_name,
        rows=summary_rows(records),
        totals=compute_day_totals(records),
    )


def build_extraordinary_sheet(
    records: Sequence[InterventionRecord], day: dt.date, technician_name: str
) -> Optional[ExtraordinarySheet]:
    _, extraordinary = split_extraordinary(records)
    if not extraordinary:
        return None
    return ExtraordinarySheet(
        day=day,
        technician_name=technician_name,
        client=extraordinary[0].location or "",
        technician_hours=format_quantity(extraordinary_hours(extraordinary)),
        description=extraordinary_description(extraordinary),
    )


def draw_logo(page: Page, x: float, y: float, size: float, branding: Branding) -> None:
    def scaled(points):
        return [(x + px * size / 100, y + py * size / 100) for px, py in points]

    page.polygon(scaled(_ORANGE_ARROW), BRAND_ORANGE)
    page.polygon(scaled(_BLUE_ARROW), BRAND_BLUE)
    text_x = x + size * 1.1
    text_y = y + size * 0.55
    page.text(text_x, text_y, branding.name, size=size * 1.8, bold=True, color=BRAND_GREY)
    page.text(text_x, text_y + size * 0.4, branding.tagline, size=size * 0.55, color=BRAND_GREY, char_space=0.7)


def _summary_table(sheet: SummarySheet) -> Table:
    centered = CellStyle(halign="center")
    head_cell = CellStyle(halign="center", valign="middle", bold=True)
    columns = [
        Column(40),
        Column(None),
        Column(10, centered),
        Column(10, centered),
        Column(10, centered),
        Column(8),
        Column(8),
        Column(12),
        Column(8),
        Column(10),
        Column(8),
    ]
    head = [
        [
            Cell("Intervento", colspan=2, style=head_cell),
            Cell("ORE", rowspan=2, style=head_cell),
            Cell("REP.", colspan=2, style=CellStyle(halign="center", bold=True, text_color=ON_CALL_RED)),
            *(Cell(label, rowspan=2, style=head_cell) for label in ANNOTATION_COLUMNS),
        ],
        [
            Cell("Luogo intervento", style=CellStyle(halign="left", bold=True)),
            Cell("Descrizione intervento", style=CellStyle(halign="left", bold=True)),
            Cell("Ore\nint.", style=CellStyle(halign="center", bold=True, font_size=7, text_color=ON_CALL_RED)),
            Cell("Ore\nviag.\nrep.", style=CellStyle(halign="center", bold=True, font_size=7, text_color=ON_CALL_RED)),
        ],
    ]
    body = [
        [row.location, row.description, row.hours, row.on_call_intervention, row.on_call_travel]
        + [""] * len(ANNOTATION_COLUMNS)
        for row in sheet.rows
    ]
    totals = CellStyle(halign="center", bold=True)
    foot = [
        [
            Cell("TOTALI", style=CellStyle(halign="right", bold=True)),
            Cell("", style=CellStyle(fill_color=TOTALS_GREY)),
            Cell(sheet.hours_total, style=totals),
            Cell(sheet.on_call_intervention_total, style=totals),
            Cell(sheet.on_call_travel_total, style=CellStyle(halign="center", bold=True, text_color=ON_CALL_RED)),
        ]
        + [Cell() for _ in ANNOTATION_COLUMNS]
    ]
    return Table(
        columns,
        body,
        head=head,
        foot=foot,
        style=TableStyle(font_size=8, cell_padding=1.5, line_width=0.1, head_line_width=0.2),
        min_body_rows=SUMMARY_MIN_ROWS,
    )


def render_summary(sheet: SummarySheet, branding: Branding = DEFAULT_BRANDING) -> bytes:
    day = day_key(sheet.day)
    page = Page(f"Rapportino {sheet.technician_name} {day}")
    draw_logo(page, MARGIN, 8, 12, branding)

    box_width = 60
    box_x = PAGE_WIDTH - MARGIN - box_width
    page.set_stroke(width=0.1)
    page.rect(box_x, 6, box_width, 18)
    page.text(box_x + 2, 11, "DATA:", size=8, bold=True)
    page.text(box_x + 15, 11, day, size=8)
    page.text(box_x + 2, 18, "TECNICO:", size=8, bold=True)
    page.text(box_x + 2, 22, sheet.technician_name[:25], size=8, bold=True, color=BRAND_BLUE)

    page.text(PAGE_WIDTH / 2, 32, "FOGLIO GIORNALIERO INTERVENTI", size=14, bold=True, align="center")
    page.text(PAGE_WIDTH / 2, 37, branding.summary_form_code, size=9, align="center")

    _summary_table(sheet).draw(page, MARGIN, 42, bottom_limit=PAGE_HEIGHT - MARGIN)

    # Anchored to the page bottom, not to the end of the table.
    footer_y = SUMMARY_FOOTER_Y
    page.set_stroke(width=0.1)
    page.rect(MARGIN, footer_y, PRINT_WIDTH, 10)
    page.text(MARGIN + 2, footer_y + 6, "RIEPILOGO:", size=9, bold=True)
    page.text(MARGIN + 50, footer_y + 6, "ORE INT. REP.:", size=9)
    page.text(MARGIN + 81, footer_y + 6, format_total(sheet.totals.on_call_intervention_hours), size=9)
    page.text(MARGIN + 110, footer_y + 6, "ORE VIAG. REP.:", size=9)
    page.text(MARGIN + 144, footer_y + 6, format_total(sheet.totals.on_call_travel_hours), size=9)
    return page.render()


def _section_header(page: Page, y: float, title: str) -> None:
    page.rect(MARGIN, y, PRINT_WIDTH, 5, fill=SECTION_GREY)
    page.text(PAGE_WIDTH / 2, y + 4, title, size=9, bold=True, align="center")


def _notes_box(page: Page, y: float) -> None:
    page.text(MARGIN, y + 5, "NOTE:", size=9)
    page.rect(MARGIN, y, PRINT_WIDTH, 6)


def _ruled_table(lines: Sequence[str], min_rows: int, valign: str = "bottom") -> Table:
    return Table(
        [Column(PRINT_WIDTH)],
        [[line] for line in lines],
        style=TableStyle(
            font_size=9,
            cell_padding=1.5,
            min_cell_height=7,
            valign=valign,
            theme="rules",
        ),
        min_body_rows=min_rows,
    )


def render_extraordinary(sheet: ExtraordinarySheet, branding: Branding = DEFAULT_BRANDING) -> bytes:
    day = day_key(sheet.day)
    page = Page(f"Straordinari {sheet.technician_name} {day}")
    draw_logo(page, MARGIN, 8, 15, branding)

    header_x = 80
    header_width = PAGE_WIDTH - header_x - MARGIN
    header_center = header_x + header_width / 2
    page.set_stroke(width=0.3)
    page.rect(header_x, 8, header_width, 15, fill=HEADER_GREY, radius=2)
    page.text(header_center, 13, "INTERVENTI TECNICI", size=11, bold=True, align="center")
    page.text(header_center, 18, "ASSISTENZA - MANUTENZIONE", size=11, bold=True, align="center")
    page.text(header_center, 22, branding.extraordinary_form_code, size=8, align="center")

    info_y = 28
    page.set_stroke(width=0.1)
    page.text(MARGIN, info_y + 8, "DATA :", size=9)
    page.line(MARGIN + 15, info_y + 8, 70, info_y + 8)
    page.text(MARGIN + 18, info_y + 7, day, size=9)

    client_x = 100
    client_width = PAGE_WIDTH - client_x - MARGIN
    line_end = PAGE_WIDTH - MARGIN - 2
    page.rect(client_x, info_y, client_width, 20)
    page.text(client_x + 2, info_y + 5, "CLIENTE:", size=9)
    page.line(client_x + 20, info_y + 5, line_end, info_y + 5)
    page.text(client_x + 22, info_y + 4, sheet.client, size=9, bold=True)
    page.text(client_x + 2, info_y + 12, "INDIRIZZO:", size=9)
    page.line(client_x + 22, info_y + 12, line_end, info_y + 12)
    page.line(client_x + 22, info_y + 18, line_end, info_y + 18)

    tech_y = 52
    page.text(MARGIN, tech_y, "PERSONALE TECNICO:", size=9)
    for offset, name, hours in ((6, sheet.technician_name, sheet.technician_hours), (12, "", "")):
        page.text(MARGIN, tech_y + offset, "Sig. :", size=9)
        page.line(MARGIN + 12, tech_y + offset, 80, tech_y + offset)
        page.text(82, tech_y + offset, "Ore:", size=9)
        page.line(90, tech_y + offset, 105, tech_y + offset)
        if name:
            page.text(MARGIN + 15, tech_y + offset - 1, name, size=9)
            page.text(92, tech_y + offset - 1, hours, size=9)
    page.text(115, tech_y + 6, "MANUTENZIONE ORDINARIA   :", size=9)
    page.text(115, tech_y + 12, "MANUTENZIONE STRAORDINARIA :", size=9)

    description_y = 75
    _section_header(page, description_y, "DESCRIZIONE LAVORI ESEGUITI")
    lines = wrap_text(sheet.description, PRINT_WIDTH - 3, 9)
    # notes, materials header, material rows and the second notes box follow the description
    trailing_height = 10 + 5 + MATERIAL_ROWS * 7 + 6
    description = _ruled_table(lines, DESCRIPTION_MIN_LINES).draw(
        page,
        MARGIN,
        description_y + 5,
        bottom_limit=SIGNATURE_BOX_Y - 2 - trailing_height,
    )

    current_y = description.final_y
    _notes_box(page, current_y)
    current_y += 10
    _section_header(page, current_y, "MATERIALI IMPIEGATI")
    materials = _ruled_table([], MATERIAL_ROWS, valign="middle").draw(page, MARGIN, current_y + 5)
    _notes_box(page, materials.final_y)

    footer_y = SIGNATURE_BOX_Y
    page.rect(MARGIN, footer_y, PRINT_WIDTH, 15)
    page.line(PAGE_WIDTH / 2, footer_y, PAGE_WIDTH / 2, footer_y + 15)
    page.text(MARGIN + 25, footer_y + 13, "FIRMA DEL TECNICO", size=8)
    page.text(PAGE_WIDTH / 2 + 25, footer_y + 13, "FIRMA DEL CLIENTE", size=8)

    approval_y = footer_y + 18
    approval_width = 83
    approval_x = (PAGE_WIDTH - approval_width) / 2
    page.rect(approval_x, approval_y, approval_width, 10)
    page.rect(approval_x, approval_y, approval_width, 4, fill=SECTION_GREY)
    page.text(PAGE_WIDTH / 2, approval_y + 3, "PROD-IT", size=8, bold=True, align="center")
    page.line(approval_x + 31, approval_y + 4, approval_x + 31, approval_y + 10)
    page.text(approval_x + 15, approval_y + 7, "Data", size=7, align="center")
    page.text(approval_x + 57, approval_y + 7, "Firma", size=7, align="center")
    return page.render()


def _render(kind: str, day: dt.date, renderer, sheet, branding: Branding) -> bytes:
    try:
        return renderer(sheet, branding)
    except Exception as exc:
        raise RenderingFailure(kind, day, exc) from exc


def compose_documents(
    records: Sequence[InterventionRecord],
    day: dt.date,
    technician_name: str,
    branding: Branding = DEFAULT_BRANDING,
) -> List[GeneratedDocument]:
    """Build the documents for one technician and day.

    The summary is always produced, even for an empty record set. The
    extraordinary form is added only when at least one record is
    extraordinary. A failure in either renderer raises
    :class:`RenderingFailure` for the whole day, so a day is never exported
    with half of its documents.
    """
    records = list(records)
    logger.debug("Composing documents for %s (%s, %d records)", day_key(day), technician_name, len(records))
    summary = build_summary_sheet(records, day, technician_name)
    documents = [
        GeneratedDocument(
            kind=SUMMARY,
            file_name=document_file_name(SUMMARY, technician_name, day),
            content=_render(SUMMARY, day, render_summary, summary, branding),
        )
    ]
    extraordinary = build_extraordinary_sheet(records, day, technician_name)
    if extraordinary is not None:
        documents.append(
            GeneratedDocument(
                kind=EXTRAORDINARY,
                file_name=document_file_name(EXTRAORDINARY, technician_name, day),
                content=_render(EXTRAORDINARY, day, render_extraordinary, extraordinary, branding),
            )
        )
    return documents


def compose_document(
    records: Sequence[InterventionRecord],
    day: dt.date,
    technician_name: str,
    kind: str,
    branding: Branding = DEFAULT_BRANDING,
) -> GeneratedDocument:
    if kind not in DOCUMENT_PREFIXES:
        raise UnknownDocumentKind(kind)
    for document in compose_documents(records, day, technician_name, branding):
        if document.kind == kind:
            return document
    raise UnknownDocumentKind(kind)
