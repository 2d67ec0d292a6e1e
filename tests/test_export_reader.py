from __future__ import annotations

from datetime import datetime, timezone

import pytest

from services.export_reader import read_export


def test_read_export_parses_comma_separated_rows() -> None:
    contents = (
        "time,int_temp,ext_temp,weight\n"
        "2024-05-01T00:00:00Z,34.1,21.4,42\n"
        "2024-05-01T00:00:00Z,33.9,,40\n"
    ).encode("utf-8")

    readings = read_export(contents)

    assert [reading.row_index for reading in readings] == [0, 1]
    assert readings[0].fields["int_temp"] == "34.1"
    assert readings[1].fields["ext_temp"] == ""


def test_read_export_sniffs_semicolons_and_strips_bom() -> None:
    contents = "\ufefftimestamp;temp_internal\n2024-05-01T00:00:00Z;35.5\n".encode("utf-8")

    readings = read_export(contents)

    assert readings[0].fields == {
        "timestamp": "2024-05-01T00:00:00Z",
        "temp_internal": "35.5",
    }


def test_read_export_skips_blank_rows_and_attaches_source_timestamp() -> None:
    source = datetime(2024, 5, 1, tzinfo=timezone.utc)
    contents = "weight,battery\n42,90\n,\n43,91\n"

    readings = read_export(contents, source_timestamp=source)

    assert [reading.fields["weight"] for reading in readings] == ["42", "43"]
    assert all(reading.source_timestamp == source for reading in readings)


@pytest.mark.parametrize("contents", [b"", b"   \n\n"])
def test_read_export_rejects_empty_files(contents: bytes) -> None:
    with pytest.raises(ValueError, match="empty"):
        read_export(contents)


def test_read_export_sniffs_pipe_delimited_firmware_exports() -> None:
    contents = "time|int_temp|weight\n2024-05-01T00:00:00Z|34.1|42\n"

    readings = read_export(contents)

    assert readings[0].fields == {"time": "2024-05-01T00:00:00Z", "int_temp": "34.1", "weight": "42"}
