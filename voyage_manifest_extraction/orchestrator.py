from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Callable, List, Literal, Optional, Sequence

import pandas as pd

from .agents import StructuredExtractor, VisionExtractor
from .aggregate import aggregate_voyages
from .errors import CredentialError, DocumentReadError, NoDataExtractedError, NoVoyagesIdentifiedError
from .extraction import RowExtractionStage, chunk_count
from .preprocess import PageSource, PDFPreprocessor
from .progress import ProgressTracker
from .schema import OUTPUT_COLUMNS, RawRow, VoyageRecord
from .settings import Settings
from .standardize import StandardizationStage

logger = logging.getLogger(__name__)

SHEET_NAME = "Compiled Voyage Logs"


@dataclass
class DocumentResult:
    document: Path
    status: Literal["ok", "error", "skipped"]
    pages: int = 0
    rows: int = 0
    error: str | None = None


@dataclass
class PipelineResult:
    records: List[VoyageRecord]
    documents: List[DocumentResult] = field(default_factory=list)
    raw_rows: int = 0
    standardized_rows: int = 0
    failed_chunks: int = 0


class ExtractionOrchestrator:
    """
    Coordinates row extraction, standardization and aggregation for a batch of PDFs.
    """

    def __init__(
        self,
        extractor: StructuredExtractor,
        settings: Settings | None = None,
        pdf_preprocessor: PDFPreprocessor | None = None,
        tracker: ProgressTracker | None = None,
    ):
        self.settings = settings or Settings()
        self.extractor = extractor
        self.pdf_preprocessor = pdf_preprocessor or PDFPreprocessor()
        self.tracker = tracker or ProgressTracker()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        on_progress: Callable[[ProgressTracker], None] | None = None,
    ) -> "ExtractionOrchestrator":
        extractor = VisionExtractor(settings.model_name, api_key=settings.api_key)
        return cls(extractor, settings, tracker=ProgressTracker(on_update=on_progress))

    def _open(self, file_path: Path, results: List[DocumentResult]) -> Optional[PageSource]:
        try:
            return self.pdf_preprocessor.open(file_path)
        except DocumentReadError as exc:
            if not self.settings.isolate_document_failures:
                raise
            logger.error("Skipping %s: %s", file_path.name, exc)
            results.append(DocumentResult(document=file_path, status="error", error=str(exc)))
            return None

    async def run(self, files: Sequence[Path]) -> PipelineResult:
        """
        Extract, standardize and aggregate every file into voyage records.

        Chunk-level failures are logged and leave gaps; the run itself fails
        only when nothing usable comes out of it.
        """
        settings = self.settings
        row_stage = RowExtractionStage(
            self.extractor,
            page_chunk_size=settings.page_chunk_size,
            scale=settings.render_scale,
            quality=settings.jpeg_quality,
            tag_source=settings.tag_source,
        )
        standardizer = StandardizationStage(
            self.extractor,
            row_chunk_size=settings.row_chunk_size,
            mode=settings.mode,
        )

        doc_results: List[DocumentResult] = []
        opened: List[tuple[Path, PageSource]] = []
        try:
            for file_path in files:
                path = Path(file_path)
                logger.info("Opening %s", path)
                document = self._open(path, doc_results)
                if document is not None:
                    opened.append((path, document))

            page_counts = [doc.page_count for _, doc in opened]
            total = sum(chunk_count(count, settings.page_chunk_size) for count in page_counts)
            self.tracker.reset(total)
            logger.info("Analyzed workload: %d documents, %d page chunks", len(opened), total)

            # every document settles before any of them is closed
            per_document = await asyncio.gather(
                *(row_stage.extract_document(doc, self.tracker) for _, doc in opened),
                return_exceptions=True,
            )
        finally:
            for _, document in opened:
                document.close()

        failure = _first_failure(per_document)
        if failure is not None:
            raise failure

        raw_rows: List[RawRow] = []
        for (path, _), pages, rows in zip(opened, page_counts, per_document):
            doc_results.append(
                DocumentResult(
                    document=path,
                    status="ok" if pages else "skipped",
                    pages=pages,
                    rows=len(rows),
                )
            )
            raw_rows.extend(rows)

        if not raw_rows:
            raise NoDataExtractedError()

        self.tracker.add_units(standardizer.chunk_count(len(raw_rows)))
        standardized = await standardizer.standardize(raw_rows, self.tracker)
        if not standardized:
            raise NoDataExtractedError()

        logger.info("Aggregating %d rows", len(standardized))
        records = aggregate_voyages(standardized)
        if not records:
            raise NoVoyagesIdentifiedError()

        failed = row_stage.failed_chunks + standardizer.failed_chunks
        if failed:
            logger.warning("%d chunks failed and contributed no rows", failed)
        logger.info("Identified %d voyages", len(records))
        return PipelineResult(
            records=records,
            documents=doc_results,
            raw_rows=len(raw_rows),
            standardized_rows=len(standardized),
            failed_chunks=failed,
        )

    def process(self, files: Sequence[Path]) -> PipelineResult:
        return asyncio.run(self.run(files))

    def to_dataframe(self, records: Sequence[VoyageRecord]) -> pd.DataFrame:
        """
        Convert voyage records into the output table.

        Columns: NO, TANGGAL, NOMOR VOYAGE, PELABUHAN MUAT, PELABUHAN BONGKAR,
        LAMA PELAYARAN, JUMLAH PENUMPANG. NO is assigned here, 1-based.
        """
        rows = [record.to_output_row(number) for number, record in enumerate(records, start=1)]
        return pd.DataFrame(rows, columns=OUTPUT_COLUMNS)

    def to_excel_bytes(self, records: Sequence[VoyageRecord]) -> bytes:
        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            self.to_dataframe(records).to_excel(writer, sheet_name=SHEET_NAME, index=False)
        return buffer.getvalue()

    def to_excel(self, records: Sequence[VoyageRecord], output_path: Path) -> None:
        """
        Write records to an Excel file with sheet 'Compiled Voyage Logs'.
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing %d voyages to %s", len(records), output_path)
        output_path.write_bytes(self.to_excel_bytes(records))


def _first_failure(settled: Sequence[object]) -> Optional[BaseException]:
    failures = [item for item in settled if isinstance(item, BaseException)]
    for failure in failures:
        if isinstance(failure, CredentialError):
            return failure
    return failures[0] if failures else None
