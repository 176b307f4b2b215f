"""Unit tests for the target schema, row model and voyage record shaping."""
import pytest

from voyage_manifest_extraction.schema import (
    TARGET_SCHEMA,
    FieldSpec,
    StandardizedRow,
    VoyageRecord,
    build_model,
    is_missing,
    parse_count,
)


class TestStandardizedRow:
    """Test suite for the generated StandardizedRow model."""

    def test_every_schema_field_present(self):
        dumped = StandardizedRow.model_validate({"NOMOR_VOYAGE": "V1"}).model_dump()
        assert list(dumped) == [spec.name for spec in TARGET_SCHEMA]
        assert dumped["TANGGAL"] is None

    def test_lenient_coercion(self):
        parsed = StandardizedRow.model_validate(
            {
                "NOMOR_VOYAGE": 12,
                "LAMA_PELAYARAN": 3.0,
                "TANGGAL": "   ",
                "PELABUHAN_MUAT": "N/A",
                "PELABUHAN_BONGKAR": " Dumai ",
                "JUMLAH_PENUMPANG": "45 orang",
                "unexpected": "ignored",
            }
        )
        assert parsed.NOMOR_VOYAGE == "12"
        assert parsed.LAMA_PELAYARAN == "3"
        assert parsed.TANGGAL is None
        assert parsed.PELABUHAN_MUAT is None
        assert parsed.PELABUHAN_BONGKAR == "Dumai"
        assert parsed.JUMLAH_PENUMPANG == 45
        assert "unexpected" not in parsed.model_dump()

    def test_unparseable_or_negative_count_is_null(self):
        assert StandardizedRow.model_validate({"JUMLAH_PENUMPANG": "banyak"}).JUMLAH_PENUMPANG is None
        assert StandardizedRow.model_validate({"JUMLAH_PENUMPANG": -3}).JUMLAH_PENUMPANG is None

    def test_build_model_rejects_unknown_type(self):
        with pytest.raises(ValueError, match="Unsupported field type"):
            build_model([FieldSpec("X", "bad", type="decimal")])  # type: ignore[arg-type]


class TestHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [(45, 45), ("45", 45), (" 12 orang", 12), (7.9, 7), ("abc", None), (None, None), (True, None)],
    )
    def test_parse_count(self, value, expected):
        assert parse_count(value) == expected

    @pytest.mark.parametrize("value", [None, "", "  ", "N/A", "n/a"])
    def test_missing_values(self, value):
        assert is_missing(value)

    @pytest.mark.parametrize("value", ["V1", 0, "0"])
    def test_present_values(self, value):
        assert not is_missing(value)


class TestVoyageRecord:
    def test_output_row_in_column_order_with_placeholders(self):
        record = VoyageRecord(NOMOR_VOYAGE="V1", JUMLAH_PENUMPANG=3, TANGGAL="2024-01-01")

        output = record.to_output_row(1)

        assert list(output) == [
            "NO",
            "TANGGAL",
            "NOMOR VOYAGE",
            "PELABUHAN MUAT",
            "PELABUHAN BONGKAR",
            "LAMA PELAYARAN",
            "JUMLAH PENUMPANG",
        ]
        assert output["NO"] == 1
        assert output["PELABUHAN MUAT"] == "N/A"
        assert output["JUMLAH PENUMPANG"] == 3
