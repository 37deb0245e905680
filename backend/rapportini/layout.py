"""Single-page A4 layout primitives on top of the reportlab canvas.

Coordinates are millimetres measured from the top-left corner of the page,
text is placed by its baseline. Nothing here ever adds a page: content
that does not fit is compressed and finally truncated by :class:`Table`.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field, fields, replace
from typing import List, Optional, Sequence, Tuple, Union

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

PAGE_WIDTH = 210.0
PAGE_HEIGHT = 297.0
MARGIN = 10.0
PRINT_WIDTH = PAGE_WIDTH - MARGIN * 2

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

LINE_HEIGHT_FACTOR = 1.15
PT_TO_MM = 25.4 / 72

Color = Tuple[int, int, int]

BLACK: Color = (0, 0, 0)
WHITE: Color = (255, 255, 255)


def font_name(bold: bool) -> str:
    return FONT_BOLD if bold else FONT_REGULAR


def line_height(font_size: float) -> float:
    return font_size * LINE_HEIGHT_FACTOR * PT_TO_MM


def text_width(text: str, font_size: float, bold: bool = False) -> float:
    return stringWidth(text, font_name(bold), font_size) / mm


def _split_long_word(word: str, width: float, font_size: float, bold: bool) -> List[str]:
    pieces: List[str] = []
    current = ""
    for char in word:
        tentative = current + char
        if current and text_width(tentative, font_size, bold) > width:
            pieces.append(current)
            current = char
        else:
            current = tentative
    if current:
        pieces.append(current)
    return pieces


def wrap_text(text: str, width: float, font_size: float, bold: bool = False) -> List[str]:
    """Split ``text`` into lines no wider than ``width`` millimetres.

    Explicit newlines always start a new line; words wider than a whole
    line are broken between characters.
    """
    lines: List[str] = []
    for paragraph in text.replace("\r\n", "\n").split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        current = ""
        for word in words:
            tentative = f"{current} {word}" if current else word
            if text_width(tentative, font_size, bold) <= width:
                current = tentative
                continue
            if current:
                lines.append(current)
            if text_width(word, font_size, bold) > width:
                *full, current = _split_long_word(word, width, font_size, bold)
                lines.extend(full)
            else:
                current = word
        lines.append(current)
    return lines


class Page:
    """One A4 page addressed in millimetres from the top-left corner."""

    def __init__(self, title: str) -> None:
        self._buffer = io.BytesIO()
        # invariant mode drops timestamps and random ids from the output
        self._canvas = canvas.Canvas(self._buffer, pagesize=A4, invariant=1)
        self._canvas.setTitle(title)
        self._finished = False
        self.set_stroke(BLACK, 0.1)

    @staticmethod
    def _x(value: float) -> float:
        return value * mm

    @staticmethod
    def _y(value: float) -> float:
        return (PAGE_HEIGHT - value) * mm

    def set_stroke(self, color: Color = BLACK, width: Optional[float] = None) -> None:
        self._canvas.setStrokeColorRGB(*(channel / 255 for channel in color))
        if width is not None:
            self._canvas.setLineWidth(width * mm)

    def set_fill(self, color: Color) -> None:
        self._canvas.setFillColorRGB(*(channel / 255 for channel in color))

    def text(
        self,
        x: float,
        y: float,
        value: str,
        *,
        size: float = 9,
        bold: bool = False,
        align: str = "left",
        color: Color = BLACK,
        char_space: float = 0.0,
    ) -> None:
        page = self._canvas
        page.setFont(font_name(bold), size)
        self.set_fill(color)
        if align == "center":
            page.drawCentredString(self._x(x), self._y(y), value)
        elif align == "right":
            page.drawRightString(self._x(x), self._y(y), value)
        elif char_space:
            page.drawString(self._x(x), self._y(y), value, charSpace=char_space * mm)
        else:
            page.drawString(self._x(x), self._y(y), value)
        self.set_fill(BLACK)

    def rect(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        *,
        fill: Optional[Color] = None,
        stroke: bool = True,
        radius: float = 0.0,
    ) -> None:
        if fill is not None:
            self.set_fill(fill)
        args = (self._x(x), self._y(y + height), width * mm, height * mm)
        if radius:
            self._canvas.roundRect(*args, radius * mm, stroke=int(stroke), fill=int(fill is not None))
        else:
            self._canvas.rect(*args, stroke=int(stroke), fill=int(fill is not None))
        self.set_fill(BLACK)

    def line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self._canvas.line(self._x(x1), self._y(y1), self._x(x2), self._y(y2))

    def polygon(self, points: Sequence[Tuple[float, float]], fill: Color) -> None:
        path = self._canvas.beginPath()
        first, *rest = points
        path.moveTo(self._x(first[0]), self._y(first[1]))
        for px, py in rest:
            path.lineTo(self._x(px), self._y(py))
        path.close()
        self.set_fill(fill)
        self._canvas.drawPath(path, stroke=0, fill=1)
        self.set_fill(BLACK)

    def render(self) -> bytes:
        if not self._finished:
            self._canvas.showPage()
            self._canvas.save()
            self._finished = True
        return self._buffer.getvalue()


@dataclass(frozen=True)
class CellStyle:
    halign: Optional[str] = None
    valign: Optional[str] = None
    bold: Optional[bool] = None
    font_size: Optional[float] = None
    text_color: Optional[Color] = None
    fill_color: Optional[Color] = None

    def merged(self, override: "CellStyle") -> "CellStyle":
        values = {
            item.name: getattr(override, item.name)
            if getattr(override, item.name) is not None
            else getattr(self, item.name)
            for item in fields(self)
        }
        return CellStyle(**values)


@dataclass(frozen=True)
class Cell:
    content: str = ""
    colspan: int = 1
    rowspan: int = 1
    style: CellStyle = field(default_factory=CellStyle)


CellInput = Union[Cell, str]


@dataclass(frozen=True)
class Column:
    width: Optional[float] = None  # None fills the remaining width
    style: CellStyle = field(default_factory=CellStyle)


@dataclass(frozen=True)
class TableStyle:
    font_size: float = 8
    min_font_size: float = 5
    cell_padding: float = 1.5
    min_cell_height: float = 0.0
    line_width: float = 0.1
    head_line_width: Optional[float] = None
    line_color: Color = BLACK
    text_color: Color = BLACK
    halign: str = "left"
    valign: str = "middle"
    # "grid" draws every cell border, "rules" only the bottom border of each cell
    theme: str = "grid"


@dataclass(frozen=True)
class TableResult:
    final_y: float
    font_size: float
    rendered_body_rows: int
    dropped_body_rows: int


def _as_cell(value: CellInput) -> Cell:
    return value if isinstance(value, Cell) else Cell(content=str(value))


@dataclass
class _PlacedCell:
    row: int
    column: int
    cell: Cell


class Table:
    """Grid table with spanning header cells, filler rows and overflow fitting."""

    def __init__(
        self,
        columns: Sequence[Column],
        body: Sequence[Sequence[CellInput]],
        *,
        head: Sequence[Sequence[CellInput]] = (),
        foot: Sequence[Sequence[CellInput]] = (),
        style: TableStyle = TableStyle(),
        min_body_rows: int = 0,
        width: float = PRINT_WIDTH,
    ) -> None:
        self.columns = list(columns)
        self.style = style
        self.width = width
        self.head = [[_as_cell(value) for value in row] for row in head]
        self.body = [[_as_cell(value) for value in row] for row in body]
        while len(self.body) < min_body_rows:
            self.body.append([Cell() for _ in self.columns])
        self.foot = [[_as_cell(value) for value in row] for row in foot]
        self.column_widths = self._resolve_widths()

    def _resolve_widths(self) -> List[float]:
        fixed = sum(column.width for column in self.columns if column.width is not None)
        auto_count = sum(1 for column in self.columns if column.width is None)
        auto_width = max(self.width - fixed, 0.0) / auto_count if auto_count else 0.0
        return [column.width if column.width is not None else auto_width for column in self.columns]

    def _place(self, rows: Sequence[Sequence[Cell]]) -> List[_PlacedCell]:
        placed: List[_PlacedCell] = []
        occupied: set[Tuple[int, int]] = set()
        for row_index, row in enumerate(rows):
            column_index = 0
            for cell in row:
                while (row_index, column_index) in occupied:
                    column_index += 1
                rowspan = max(1, min(cell.rowspan, len(rows) - row_index))
                for dr in range(rowspan):
                    for dc in range(cell.colspan):
                        occupied.add((row_index + dr, column_index + dc))
                placed.append(_PlacedCell(row_index, column_index, replace(cell, rowspan=rowspan)))
                column_index += cell.colspan
        return placed

    def _effective_style(self, placed: _PlacedCell) -> CellStyle:
        base = CellStyle(
            halign=self.style.halign,
            valign=self.style.valign,
            bold=False,
            font_size=self.style.font_size,
            text_color=self.style.text_color,
        )
        column = self.columns[placed.column] if placed.column < len(self.columns) else Column()
        return base.merged(column.style).merged(placed.cell.style)

    def _span_width(self, placed: _PlacedCell) -> float:
        return sum(self.column_widths[placed.column : placed.column + placed.cell.colspan])

    def _lines(self, placed: _PlacedCell, scale: float) -> Tuple[List[str], float, CellStyle]:
        cell_style = self._effective_style(placed)
        size = (cell_style.font_size or self.style.font_size) * scale
        padding = self.style.cell_padding * scale
        content_width = max(self._span_width(placed) - padding * 2, 1.0)
        if placed.cell.content:
            lines = wrap_text(placed.cell.content, content_width, size, bool(cell_style.bold))
        else:
            lines = []
        return lines, size, cell_style

    def _row_heights(self, rows: Sequence[Sequence[Cell]], scale: float) -> Tuple[List[_PlacedCell], List[float]]:
        placed = self._place(rows)
        padding = self.style.cell_padding * scale
        minimum = max(self.style.min_cell_height * scale, line_height(self.style.font_size * scale) + padding * 2)
        heights = [minimum for _ in rows]
        spanning: List[Tuple[_PlacedCell, float]] = []
        for item in placed:
            lines, size, _ = self._lines(item, scale)
            needed = len(lines) * line_height(size) + padding * 2
            if item.cell.rowspan == 1:
                heights[item.row] = max(heights[item.row], needed)
            else:
                spanning.append((item, needed))
        for item, needed in spanning:
            last = item.row + item.cell.rowspan - 1
            available = sum(heights[item.row : last + 1])
            if needed > available:
                heights[last] += needed - available
        return placed, heights

    def _measure(self, body_rows: int, scale: float) -> float:
        total = 0.0
        for section in (self.head, self.body[:body_rows], self.foot):
            if section:
                total += sum(self._row_heights(section, scale)[1])
        return total

    def _fit(self, available: Optional[float]) -> Tuple[float, int]:
        body_rows = len(self.body)
        if available is None:
            return 1.0, body_rows
        scale = 1.0
        step = 0.5 / self.style.font_size
        min_scale = self.style.min_font_size / self.style.font_size
        while self._measure(body_rows, scale) > available and scale - step >= min_scale - 1e-9:
            scale -= step
        while body_rows > 0 and self._measure(body_rows, scale) > available:
            body_rows -= 1
        return scale, body_rows

    def draw(self, page: Page, x: float, y: float, *, bottom_limit: Optional[float] = None) -> TableResult:
        available = bottom_limit - y if bottom_limit is not None else None
        scale, body_rows = self._fit(available)
        dropped = len(self.body) - body_rows
        if dropped:
            logger.warning("Table truncated: %d of %d body rows do not fit on the page", dropped, len(self.body))
        current_y = y
        head_width = self.style.head_line_width or self.style.line_width
        for section, width in (
            (self.head, head_width),
            (self.body[:body_rows], self.style.line_width),
            (self.foot, self.style.line_width),
        ):
            if not section:
                continue
            current_y = self._draw_section(page, section, x, current_y, scale, width)
        return TableResult(
            final_y=current_y,
            font_size=self.style.font_size * scale,
            rendered_body_rows=body_rows,
            dropped_body_rows=dropped,
        )

    def _draw_section(
        self,
        page: Page,
        rows: Sequence[Sequence[Cell]],
        x: float,
        y: float,
        scale: float,
        line_width: float,
    ) -> float:
        placed, heights = self._row_heights(rows, scale)
        offsets = [y]
        for height in heights:
            offsets.append(offsets[-1] + height)
        padding = self.style.cell_padding * scale
        page.set_stroke(self.style.line_color, line_width)
        for item in placed:
            cell_x = x + sum(self.column_widths[: item.column])
            cell_y = offsets[item.row]
            cell_w = self._span_width(item)
            cell_h = offsets[item.row + item.cell.rowspan] - cell_y
            lines, size, cell_style = self._lines(item, scale)
            if cell_style.fill_color is not None:
                page.rect(cell_x, cell_y, cell_w, cell_h, fill=cell_style.fill_color, stroke=False)
            if self.style.theme == "grid":
                page.rect(cell_x, cell_y, cell_w, cell_h)
            else:
                page.line(cell_x, cell_y + cell_h, cell_x + cell_w, cell_y + cell_h)
            self._draw_lines(page, lines, size, cell_style, cell_x, cell_y, cell_w, cell_h, padding)
        return offsets[-1]

    @staticmethod
    def _draw_lines(
        page: Page,
        lines: Sequence[str],
        size: float,
        cell_style: CellStyle,
        x: float,
        y: float,
        width: float,
        height: float,
        padding: float,
    ) -> None:
        if not lines:
            return
        step = line_height(size)
        block = step * len(lines)
        if cell_style.valign == "top":
            top = y + padding
        elif cell_style.valign == "bottom":
            top = y + height - padding - block
        else:
            top = y + (height - block) / 2
        if cell_style.halign == "center":
            anchor = x + width / 2
        elif cell_style.halign == "right":
            anchor = x + width - padding
        else:
            anchor = x + padding
        for index, line in enumerate(lines):
            baseline = top + step * index + step * 0.8
            page.text(
                anchor,
                baseline,
                line,
                size=size,
                bold=bool(cell_style.bold),
                align=cell_style.halign or "left",
                color=cell_style.text_color or BLACK,
            )
