from __future__ import annotations

import datetime as dt


class RenderingFailure(RuntimeError):
    """The PDF backend could not produce bytes for one document."""

    def __init__(self, kind: str, day: dt.date, cause: BaseException) -> None:
        super().__init__(f"Rendering of the {kind} document for {day.isoformat()} failed: {cause}")
        self.kind = kind
        self.day = day
        self.cause = cause


class UnknownDocumentKind(LookupError):
    """Requested a document kind that is not produced for the day."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown document kind: {kind}")
        self.kind = kind
