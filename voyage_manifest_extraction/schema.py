from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, create_model, field_validator

FieldType = Literal["str", "int"]

PLACEHOLDER = "N/A"
SOURCE_KEY = "SUMBER_FILE"

RawRow = Dict[str, Any]


@dataclass
class FieldSpec:
    """One column of the target schema the standardization stage fills."""

    name: str
    description: str
    type: FieldType = "str"
    examples: List[str] = field(default_factory=list)


TARGET_SCHEMA: List[FieldSpec] = [
    FieldSpec("TANGGAL", "Departure date of the voyage", examples=["Tanggal", "Tgl. Berangkat", "Date"]),
    FieldSpec("NOMOR_VOYAGE", "Voyage number or voyage name", examples=["No. Pelayaran", "Voyage No", "Voyage"]),
    FieldSpec("PELABUHAN_MUAT", "Port of loading / origin", examples=["Asal", "Pelabuhan Asal", "From"]),
    FieldSpec("PELABUHAN_BONGKAR", "Port of discharge / destination", examples=["Tujuan", "Pelabuhan Tujuan", "To"]),
    FieldSpec("LAMA_PELAYARAN", "Duration of the voyage", examples=["Lama Pelayaran", "Durasi", "Duration"]),
    FieldSpec("NAMA_PENUMPANG", "Passenger name on per-passenger rows", examples=["Nama", "Nama Penumpang", "Name"]),
    FieldSpec(
        "JUMLAH_PENUMPANG",
        "Passenger count, only on voyage summary rows",
        type="int",
        examples=["Jumlah", "Jumlah Penumpang", "Total Pax"],
    ),
]

SHARED_FIELDS: Tuple[str, ...] = (
    "TANGGAL",
    "PELABUHAN_MUAT",
    "PELABUHAN_BONGKAR",
    "LAMA_PELAYARAN",
)
GROUPING_FIELDS: Tuple[str, ...] = ("TANGGAL", "PELABUHAN_MUAT", "PELABUHAN_BONGKAR")

OUTPUT_COLUMNS: List[str] = [
    "NO",
    "TANGGAL",
    "NOMOR VOYAGE",
    "PELABUHAN MUAT",
    "PELABUHAN BONGKAR",
    "LAMA PELAYARAN",
    "JUMLAH PENUMPANG",
]


class StandardizationMode(str, Enum):
    """How the standardization call treats the rows it receives."""

    ROW = "row"  # one standardized row per raw row
    VOYAGE = "voyage"  # the model pre-aggregates rows per voyage


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip()
        return not text or text.upper() == PLACEHOLDER
    return False


def parse_count(value: Any) -> Optional[int]:
    """
    Parse a passenger count the way a lenient integer parse would.

    Leading digits win ("45 orang" -> 45); anything without them is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def _coerce_text(cls, value: Any) -> Optional[str]:
    if is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _coerce_count(cls, value: Any) -> Optional[int]:
    count = parse_count(value)
    if count is None or count < 0:
        return None
    return count


def build_model(field_specs: List[FieldSpec], *, name: str = "StandardizedRow") -> type[BaseModel]:
    """
    Build the row model from field specs.

    Every field is optional and defaults to None so a standardized row always
    carries every schema key. Values are coerced leniently because the model
    output is not trusted to respect the declared types.
    """
    model_fields: Dict[str, Tuple[Any, Any]] = {}
    text_fields: List[str] = []
    count_fields: List[str] = []

    for spec in field_specs:
        if spec.type == "str":
            model_fields[spec.name] = (Optional[str], Field(default=None, description=spec.description))
            text_fields.append(spec.name)
        elif spec.type == "int":
            model_fields[spec.name] = (Optional[int], Field(default=None, description=spec.description))
            count_fields.append(spec.name)
        else:
            raise ValueError(f"Unsupported field type: {spec.type}")

    validators = {}
    if text_fields:
        validators["coerce_text"] = field_validator(*text_fields, mode="before")(_coerce_text)
    if count_fields:
        validators["coerce_count"] = field_validator(*count_fields, mode="before")(_coerce_count)

    class _BaseRowModel(BaseModel):
        model_config = {"extra": "ignore", "frozen": True}

    return create_model(  # type: ignore[call-overload]
        name,
        __base__=_BaseRowModel,
        __validators__=validators,
        **model_fields,
    )


StandardizedRow = build_model(TARGET_SCHEMA)


@dataclass(frozen=True)
class VoyageRecord:
    NOMOR_VOYAGE: str
    JUMLAH_PENUMPANG: int
    TANGGAL: Optional[str] = None
    PELABUHAN_MUAT: Optional[str] = None
    PELABUHAN_BONGKAR: Optional[str] = None
    LAMA_PELAYARAN: Optional[str] = None

    def to_output_row(self, number: int) -> Dict[str, Any]:
        """Shape the record into the spreadsheet's declared column order."""
        return {
            "NO": number,
            "TANGGAL": self.TANGGAL or PLACEHOLDER,
            "NOMOR VOYAGE": self.NOMOR_VOYAGE or PLACEHOLDER,
            "PELABUHAN MUAT": self.PELABUHAN_MUAT or PLACEHOLDER,
            "PELABUHAN BONGKAR": self.PELABUHAN_BONGKAR or PLACEHOLDER,
            "LAMA PELAYARAN": self.LAMA_PELAYARAN or PLACEHOLDER,
            "JUMLAH PENUMPANG": int(self.JUMLAH_PENUMPANG or 0),
        }
