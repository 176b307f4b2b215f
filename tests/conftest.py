"""Shared fakes for the page rasterizer and the structured extractor."""
import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from voyage_manifest_extraction.errors import DocumentReadError, PageRenderError


class FakeDocument:
    """In-memory page source; each page renders to b'<name>:<page>'."""

    def __init__(self, name: str, pages: int, broken_pages=(), delay: float = 0.0):
        self.name = name
        self.pages = pages
        self.broken_pages = set(broken_pages)
        self.delay = delay
        self.closed = False
        self.rendered: List[int] = []
        self.rendered_after_close = 0

    @property
    def page_count(self) -> int:
        return self.pages

    async def rasterize(self, page_number: int, scale: float, quality: int) -> bytes:
        if self.delay:
            await asyncio.sleep(self.delay)
        if page_number in self.broken_pages:
            raise PageRenderError(self.name, page_number, "broken page")
        if self.closed:
            self.rendered_after_close += 1
        self.rendered.append(page_number)
        return f"{self.name}:{page_number}".encode()

    def close(self) -> None:
        self.closed = True


class FakePreprocessor:
    def __init__(self, documents: Dict[str, FakeDocument], unreadable=()):
        self.documents = documents
        self.unreadable = set(unreadable)
        self.opened: List[FakeDocument] = []

    def open(self, file_path: Path) -> FakeDocument:
        name = Path(file_path).name
        if name in self.unreadable:
            raise DocumentReadError(name, "corrupt file")
        document = self.documents[name]
        self.opened.append(document)
        return document


class FakeExtractor:
    """
    Structured extractor whose answer comes from `responder`.

    The responder receives (images, instruction, output_schema) and returns
    the response text or raises.
    """

    def __init__(self, responder: Callable[[List[Any], str, Optional[type]], str]):
        self.responder = responder
        self.calls: List[Dict[str, Any]] = []

    async def extract(self, images, instruction, output_schema=None) -> str:
        self.calls.append(
            {"images": list(images), "instruction": instruction, "output_schema": output_schema}
        )
        return self.responder(list(images), instruction, output_schema)


def input_rows(instruction: str) -> List[Dict[str, Any]]:
    """Recover the JSON rows embedded at the end of a standardization instruction."""
    return json.loads(instruction.split("Input rows:\n", 1)[1])


KEY_MAP = {
    "No. Pelayaran": "NOMOR_VOYAGE",
    "Tanggal": "TANGGAL",
    "Asal": "PELABUHAN_MUAT",
    "Tujuan": "PELABUHAN_BONGKAR",
    "Nama": "NAMA_PENUMPANG",
    "Jumlah": "JUMLAH_PENUMPANG",
}


def map_rows(instruction: str) -> str:
    """Standardize one-to-one by renaming known keys, like a well-behaved model."""
    mapped = []
    for row in input_rows(instruction):
        mapped.append({KEY_MAP[key]: value for key, value in row.items() if key in KEY_MAP})
    return json.dumps(mapped)


@pytest.fixture
def manifest_rows():
    return [
        {"No. Pelayaran": "V100", "Tanggal": "2024-05-01", "Nama": "Budi"},
        {"No. Pelayaran": "V100", "Tanggal": "2024-05-01", "Nama": "Siti"},
    ]
