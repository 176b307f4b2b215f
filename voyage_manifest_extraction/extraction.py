from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from .agents import StructuredExtractor, parse_json_rows
from .preprocess import PageSource
from .progress import ProgressTracker
from .scheduler import failed_count, flatten, gather_chunks, partition
from .schema import SOURCE_KEY, RawRow

logger = logging.getLogger(__name__)

DEFAULT_PAGE_CHUNK_SIZE = 5

EXTRACTION_INSTRUCTION = """\
You are an expert at extracting data from scanned PDF page images. Analyze
every image, find all tabular data and return it as one JSON array.

Rules:
1. Identify every distinct column header across all tables on these pages.
2. Emit one JSON object per data row.
3. Every object must contain every identified header key, using the header
   text as it appears. Empty cells are explicit nulls; never omit a key.
4. If a row is a list entry that belongs to a preceding header row (for
   example a passenger list under one voyage manifest), copy the shared
   header fields (voyage number, date, ports, duration) onto every list-entry
   row.
5. Return ONLY the JSON array. If no table is found, return [].
"""


def chunk_count(page_count: int, chunk_size: int = DEFAULT_PAGE_CHUNK_SIZE) -> int:
    return -(-page_count // chunk_size) if page_count > 0 else 0


class RowExtractionStage:
    """
    Converts a document's pages into raw rows, one extractor call per page chunk.
    """

    def __init__(
        self,
        extractor: StructuredExtractor,
        *,
        page_chunk_size: int = DEFAULT_PAGE_CHUNK_SIZE,
        scale: float = 1.0,
        quality: int = 80,
        tag_source: bool = False,
    ):
        if page_chunk_size < 1:
            raise ValueError("page_chunk_size must be at least 1")
        self.extractor = extractor
        self.page_chunk_size = page_chunk_size
        self.scale = scale
        self.quality = quality
        self.tag_source = tag_source
        self.failed_chunks = 0

    async def extract_document(
        self,
        document: PageSource,
        tracker: Optional[ProgressTracker] = None,
    ) -> List[RawRow]:
        total_pages = document.page_count
        if total_pages == 0:
            logger.warning("Empty document %s: no pages to extract", document.name)
            return []

        pages = list(range(1, total_pages + 1))
        chunks = partition(pages, self.page_chunk_size)
        logger.info("Extracting %s: %d pages in %d chunks", document.name, total_pages, len(chunks))

        async def _extract_chunk(page_numbers: List[int]) -> List[RawRow]:
            return await self._extract_pages(document, page_numbers)

        results = await gather_chunks(
            chunks, _extract_chunk, tracker=tracker, label=f"{document.name} pages"
        )
        self.failed_chunks += failed_count(results)
        rows: List[RawRow] = flatten(results)

        if self.tag_source:
            rows = [{**row, SOURCE_KEY: document.name} for row in rows]
        logger.info("Extracted %d rows from %s", len(rows), document.name)
        return rows

    async def _extract_pages(self, document: PageSource, page_numbers: List[int]) -> List[RawRow]:
        images = await asyncio.gather(
            *(document.rasterize(page, self.scale, self.quality) for page in page_numbers)
        )
        text = await self.extractor.extract(list(images), EXTRACTION_INSTRUCTION)
        parsed = parse_json_rows(text)
        return _keep_objects(parsed, f"{document.name} pages {page_numbers[0]}-{page_numbers[-1]}")


def _keep_objects(items: List[Any], where: str) -> List[RawRow]:
    rows = [item for item in items if isinstance(item, dict)]
    dropped = len(items) - len(rows)
    if dropped:
        logger.warning("Dropped %d non-object entries from %s", dropped, where)
    return rows
