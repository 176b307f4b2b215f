from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ValidationError

from .agents import StructuredExtractor, parse_json_rows
from .progress import ProgressTracker
from .scheduler import failed_count, flatten, gather_chunks, partition
from .schema import TARGET_SCHEMA, FieldSpec, RawRow, StandardizationMode, StandardizedRow

logger = logging.getLogger(__name__)

DEFAULT_ROW_CHUNK_SIZE = 100

_MODE_RULES = {
    StandardizationMode.ROW: (
        "Transform rows one-to-one. The output array MUST contain exactly {count} "
        "objects, one per input row, in the same order. Do not merge, summarize "
        "or aggregate rows. Leave JUMLAH_PENUMPANG null unless the input row "
        "itself carries a passenger count for a whole voyage."
    ),
    StandardizationMode.VOYAGE: (
        "Aggregate the rows per voyage. Emit one object per distinct voyage "
        "(same voyage number, date and ports) and set JUMLAH_PENUMPANG to the "
        "number of passenger rows of that voyage. If an input row is already a "
        "voyage summary with its own passenger count, keep that count."
    ),
}


def rows_as_json(rows: Sequence[Any]) -> str:
    return json.dumps(list(rows), ensure_ascii=False, default=str)


def build_instruction(
    rows: List[RawRow],
    mode: StandardizationMode,
    field_specs: List[FieldSpec] = TARGET_SCHEMA,
) -> str:
    fields = "\n".join(f"- {spec.name} ({spec.type}): {spec.description}" for spec in field_specs)
    mappings = ", ".join(
        f"'{example}' -> {spec.name}" for spec in field_specs for example in spec.examples[:1]
    )
    return (
        "You standardize table rows extracted from voyage manifests.\n\n"
        f"Target schema (every output object MUST contain every key):\n{fields}\n\n"
        "Rules:\n"
        "1. The input keys may differ from the target keys. Map each value by its "
        f"best inferred meaning, for example {mappings}.\n"
        "2. A target key that cannot be filled is null; never omit it.\n"
        f"3. {_MODE_RULES[mode].format(count=len(rows))}\n"
        "4. Return ONLY the JSON array.\n\n"
        f"Input rows:\n{rows_as_json(rows)}"
    )


class StandardizationStage:
    """
    Maps raw rows with arbitrary keys onto the target schema, chunk by chunk.
    """

    def __init__(
        self,
        extractor: StructuredExtractor,
        *,
        row_chunk_size: int = DEFAULT_ROW_CHUNK_SIZE,
        mode: StandardizationMode = StandardizationMode.ROW,
        row_model: type[BaseModel] = StandardizedRow,
    ):
        if row_chunk_size < 1:
            raise ValueError("row_chunk_size must be at least 1")
        self.extractor = extractor
        self.row_chunk_size = row_chunk_size
        self.mode = StandardizationMode(mode)
        self.row_model = row_model
        self.failed_chunks = 0

    def chunk_count(self, row_count: int) -> int:
        return len(range(0, row_count, self.row_chunk_size))

    async def standardize(
        self,
        rows: List[RawRow],
        tracker: Optional[ProgressTracker] = None,
    ) -> List[BaseModel]:
        chunks = partition(rows, self.row_chunk_size)
        logger.info(
            "Standardizing %d rows in %d chunks (mode=%s)", len(rows), len(chunks), self.mode.value
        )
        results = await gather_chunks(
            chunks, self._standardize_chunk, tracker=tracker, label="standardization"
        )
        self.failed_chunks += failed_count(results)
        standardized: List[BaseModel] = flatten(results)
        logger.info("Standardized %d rows", len(standardized))
        return standardized

    async def _standardize_chunk(self, rows: List[RawRow]) -> List[BaseModel]:
        instruction = build_instruction(rows, self.mode)
        text = await self.extractor.extract([], instruction, output_schema=self.row_model)
        parsed = parse_json_rows(text)

        standardized = [row for row in (self._validate(item) for item in parsed) if row is not None]
        if self.mode is StandardizationMode.ROW and len(standardized) != len(rows):
            logger.warning(
                "Standardization returned %d rows for %d inputs; keeping them as returned",
                len(standardized),
                len(rows),
            )
        return standardized

    def _validate(self, item: Any) -> Optional[BaseModel]:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object standardized entry: %r", item)
            return None
        try:
            return self.row_model.model_validate(item)
        except ValidationError as exc:
            logger.warning("Skipping invalid standardized row: %s", exc)
            return None
