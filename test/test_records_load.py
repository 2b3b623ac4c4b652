# test/test_records_load.py
from datetime import datetime, timezone

import numpy as np
import pytest

from trendscope.core import VariableId
from trendscope.io.load import load_csv, read_records
from trendscope.io.records import RawRecord, record_from_row, records_from_rows

HEADER = "Chrono;Name;Value;Quality;TextAttr03;TS"


def _ms(*args):
    return datetime(*args, tzinfo=timezone.utc).timestamp() * 1000.0


def _write(path, lines, *, bom=False):
    text = "\n".join(lines) + "\n"
    path.write_text(("\ufeff" if bom else "") + text, encoding="utf-8")
    return path


def test_record_prefers_localized_timestamp():
    rec = record_from_row(
        {"Chrono": "1234", "Name": " TEMP ", "Value": "1,5", "Quality": "192",
         "TextAttr03": "A1", "TS": " 01/02/2024 10:00:00 "}
    )
    assert rec == RawRecord("TEMP", "A1", "01/02/2024 10:00:00", "1,5", 192)


def test_record_falls_back_to_ticks():
    rec = record_from_row({"Chrono": "1234", "Name": "TEMP", "Value": "1", "TS": "  "})
    assert rec.raw_timestamp == "1234"
    assert rec.aux_attribute == ""
    assert rec.quality is None

    rec = record_from_row({"Chrono": "99", "Name": "TEMP", "Value": "1", "TS": None, "Quality": "bad"})
    assert rec.raw_timestamp == "99"
    assert rec.quality is None


def test_records_from_rows_is_lazy():
    rows = iter([{"Name": "A", "Value": "1", "Chrono": "1"}])
    gen = records_from_rows(rows)
    assert next(gen).series_key == "A"
    with pytest.raises(StopIteration):
        next(gen)


def test_read_records_sniffs_semicolon_and_strips_bom(tmp_path):
    path = _write(
        tmp_path / "export.csv",
        [HEADER, "0;TEMP;1,5;192;A1;01/02/2024 10:00:00"],
        bom=True,
    )
    records = read_records(path)

    assert len(records) == 1
    assert records[0].series_key == "TEMP"
    assert records[0].raw_value == "1,5"
    assert records[0].raw_timestamp == "01/02/2024 10:00:00"


def test_read_records_requires_name_column(tmp_path):
    path = _write(tmp_path / "bad.csv", ["Chrono,Value", "1,2"])
    with pytest.raises(ValueError):
        read_records(path)


def test_load_csv_builds_dataset(tmp_path):
    path = _write(
        tmp_path / "export.csv",
        [
            HEADER,
            "0;TEMP;2,5;192;A1;01/02/2024 10:00:01",
            "0;TEMP;1,5;192;A1;01/02/2024 10:00:00",
            "20000;PRESS;7;192;;",
            "0;BAD;x;192;A1;01/02/2024 10:00:00",
        ],
    )
    ds = load_csv(path)

    temp = VariableId("TEMP", "A1")
    press = VariableId("PRESS")

    assert list(ds) == [temp, press]
    assert ds.meta.dropped_count == 1
    assert ds.meta.sources == (str(path),)

    t0 = _ms(2024, 2, 1, 10, 0, 0)
    assert np.allclose(ds[temp].time, [t0, t0 + 1000.0])
    assert np.allclose(ds[temp].values, [1.5, 2.5])
    assert np.allclose(ds[press].time, [2.0])
    assert np.allclose(ds[press].values, [7.0])
