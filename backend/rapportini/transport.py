"""Delivery channels for generated files."""

from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from typing_extensions import Literal, Protocol

logger = logging.getLogger(__name__)

DeliveryOutcome = Literal["success", "cancelled", "failure"]

SUCCESS: DeliveryOutcome = "success"
CANCELLED: DeliveryOutcome = "cancelled"
FAILURE: DeliveryOutcome = "failure"


@dataclass(frozen=True)
class OutgoingFile:
    file_name: str
    content: bytes
    media_type: str = "application/pdf"


@dataclass(frozen=True)
class DeliveryMetadata:
    title: str
    text: str


class Transport(Protocol):
    def deliver(self, files: Sequence[OutgoingFile], metadata: DeliveryMetadata) -> DeliveryOutcome:
        ...


def sanitize_filename(name: str) -> str:
    normalized = re.sub(r"[^A-Za-z0-9_.-]", "_", name.strip()) if name else ""
    return normalized or "documento"


class DirectoryTransport:
    """Saves every file into one directory, replacing files with the same name."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.saved: List[Path] = []

    def deliver(self, files: Sequence[OutgoingFile], metadata: DeliveryMetadata) -> DeliveryOutcome:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            saved = []
            for item in files:
                path = self.directory / sanitize_filename(item.file_name)
                path.write_bytes(item.content)
                saved.append(path)
        except OSError:
            logger.exception("Could not write %s into %s", metadata.title, self.directory)
            return FAILURE
        self.saved = saved
        logger.info("Saved %d files for %s into %s", len(saved), metadata.title, self.directory)
        return SUCCESS


class ArchiveTransport:
    """Packs the files into one in-memory zip archive for download."""

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        self.content: Optional[bytes] = None

    def deliver(self, files: Sequence[OutgoingFile], metadata: DeliveryMetadata) -> DeliveryOutcome:
        buffer = io.BytesIO()
        seen = set()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for item in files:
                arcname = sanitize_filename(item.file_name)
                if arcname in seen:
                    continue
                seen.add(arcname)
                archive.writestr(arcname, item.content)
            archive.comment = metadata.text.encode("utf-8")[:65535]
        self.content = buffer.getvalue()
        logger.info("Packed %d files for %s into %s", len(seen), metadata.title, self.file_name)
        return SUCCESS
