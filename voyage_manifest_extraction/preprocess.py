from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Protocol

import fitz  # PyMuPDF
from PIL import Image

from .errors import DocumentReadError, PageRenderError


class PageSource(Protocol):
    """A readable document whose pages can be rendered to images."""

    name: str

    @property
    def page_count(self) -> int: ...

    async def rasterize(self, page_number: int, scale: float, quality: int) -> bytes: ...

    def close(self) -> None: ...


@dataclass
class PDFDocument:
    """
    An open PDF that renders single pages to JPEG bytes.

    Page numbers are 1-based. A PyMuPDF document is not safe to use from
    several threads at once, so renders run in worker threads one at a time.
    """

    path: Path
    _doc: "fitz.Document" = field(repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def page_count(self) -> int:
        return len(self._doc)

    def render(self, page_number: int, scale: float = 1.0, quality: int = 80) -> bytes:
        with self._lock:
            try:
                if not 1 <= page_number <= len(self._doc):
                    raise PageRenderError(self.name, page_number, "page out of range")
                page = self._doc.load_page(page_number - 1)
                pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
                img = Image.frombytes("RGB", [pix.width, pix.height], pix.samples)
            except (RuntimeError, ValueError) as exc:
                raise PageRenderError(self.name, page_number, str(exc)) from exc

        buffer = BytesIO()
        img.save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()

    async def rasterize(self, page_number: int, scale: float = 1.0, quality: int = 80) -> bytes:
        return await asyncio.to_thread(self.render, page_number, scale, quality)

    def close(self) -> None:
        # waits for an in-flight render on a worker thread
        with self._lock:
            self._doc.close()


@dataclass
class PDFPreprocessor:
    """Opens PDF files as page sources."""

    def open(self, file_path: Path) -> PDFDocument:
        path = Path(file_path)
        if path.suffix.lower() != ".pdf":
            raise DocumentReadError(path.name, f"unsupported file type: {path.suffix or '(none)'}")
        try:
            doc = fitz.open(path)
        except (RuntimeError, OSError, ValueError) as exc:
            raise DocumentReadError(path.name, str(exc)) from exc
        if doc.needs_pass:
            doc.close()
            raise DocumentReadError(path.name, "document is encrypted")
        return PDFDocument(path=path, _doc=doc)
