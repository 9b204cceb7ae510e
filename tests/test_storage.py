"""Tests for file loading, exports and the saved-configuration store."""

import hashlib
import os
import sys
from datetime import date
import pytest
import pandas as pd

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stratalens.core.state import ColumnType, SamplingConfig, SamplingMethod


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "ledger.csv"
    path.write_text("name,amount,note\nAhmed,10,\n,,\nSara,,late\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def store(tmp_path):
    from stratalens.database.config_store import ConfigStore
    return ConfigStore(f"sqlite:///{tmp_path / 'configs.db'}")


@pytest.fixture
def stratified_config():
    from stratalens.core.stratification import new_level, set_stratum_size
    df = pd.DataFrame({"region": ["A", "A", "B"], "amount": [5, 50, 500]})
    level = set_stratum_size(new_level(df, df, "region"), "A", "50%")
    return SamplingConfig(method=SamplingMethod.STRATIFIED, levels=[level])


# ---------------------------------------------------------------------------
# 1. Loading
# ---------------------------------------------------------------------------

class TestFileHandlers:
    def test_compute_file_hash(self, tmp_path):
        from stratalens.utils.file_handlers import compute_file_hash
        path = tmp_path / "x.csv"
        path.write_bytes(b"a,b\n1,2\n")
        assert compute_file_hash(str(path)) == hashlib.sha256(b"a,b\n1,2\n").hexdigest()

    def test_load_csv_keeps_text_and_blanks(self, csv_file):
        from stratalens.utils.file_handlers import load_file
        df, message = load_file(csv_file)
        assert message == "File loaded successfully"
        assert list(df.columns) == ["name", "amount", "note"]
        assert len(df) == 2  # the all-blank row is dropped
        assert df.loc[0, "amount"] == "10"
        assert df.loc[1, "amount"] == ""
        assert df.index.tolist() == [0, 1]

    def test_load_excel_blanks(self, tmp_path):
        from stratalens.utils.file_handlers import load_file
        path = str(tmp_path / "book.xlsx")
        pd.DataFrame({"a": [1, None], "b": ["x", "y"]}).to_excel(path, index=False)
        df, _ = load_file(path)
        assert df.loc[1, "a"] == ""
        assert df.loc[1, "b"] == "y"

    def test_rejects_bad_files(self, tmp_path):
        from stratalens.utils.file_handlers import load_file
        assert load_file(str(tmp_path / "missing.csv")) == (None, "File not found")

        txt = tmp_path / "notes.txt"
        txt.write_text("hello")
        assert load_file(str(txt)) == (None, "File must be CSV or Excel format")

        header_only = tmp_path / "empty.csv"
        header_only.write_text("a,b\n")
        assert load_file(str(header_only)) == (None, "File contains no data rows")

    def test_suggested_filenames(self):
        from stratalens.utils.file_handlers import config_filename, suggested_filename
        assert suggested_filename("sample", "ledger.csv") == "sample_ledger"
        assert config_filename("book.xlsx", date(2024, 1, 2)) == "sampling_config_book_2024-01-02"


# ---------------------------------------------------------------------------
# 2. Export
# ---------------------------------------------------------------------------

class TestExport:
    def test_csv_export_restricts_headers(self, csv_file, tmp_path):
        from stratalens.utils.file_handlers import export_rows, load_file
        df, _ = load_file(csv_file)
        path = export_rows(df, ["note", "name"], "filtered_ledger", "csv", str(tmp_path / "out"))
        assert path.endswith("filtered_ledger.csv")
        with open(path, encoding="utf-8-sig") as f:
            assert f.readline().strip() == "note,name"

    def test_excel_export(self, csv_file, tmp_path):
        from openpyxl import load_workbook
        from stratalens.utils.file_handlers import export_rows, load_file
        df, _ = load_file(csv_file)
        path = export_rows(df, list(df.columns), "sample_ledger", "excel", str(tmp_path))
        sheet = load_workbook(path)["Data"]
        assert sheet["A1"].value == "name"
        assert sheet.column_dimensions["A"].width == len("Ahmed") + 2

    def test_pdf_export_writes_a_file(self, csv_file, tmp_path):
        from stratalens.utils.file_handlers import export_rows, load_file
        df, _ = load_file(csv_file)
        path = export_rows(df, list(df.columns), "sample_ledger", "pdf", str(tmp_path))
        assert os.path.exists(path)
        assert path.endswith((".pdf", ".html"))

    def test_empty_and_unknown_format(self, tmp_path):
        from stratalens.utils.file_handlers import export_rows
        empty = pd.DataFrame({"a": []})
        assert export_rows(empty, ["a"], "x", "csv", str(tmp_path)) is None
        with pytest.raises(ValueError):
            export_rows(pd.DataFrame({"a": [1]}), ["a"], "x", "json", str(tmp_path))

    def test_render_table_html_escapes(self):
        from stratalens.utils.pdf_generator import render_table_html
        html = render_table_html(pd.DataFrame({"a": ["<b>", 2.0]}), ["a"], "Report")
        assert "&lt;b&gt;" in html
        assert "<td>2</td>" in html
        assert "<th>a</th>" in html

    def test_config_export_sheets(self, stratified_config, tmp_path):
        from openpyxl import load_workbook
        from stratalens.utils.file_handlers import export_config_to_excel
        path = export_config_to_excel(stratified_config, "sampling_config_x", str(tmp_path))
        book = load_workbook(path)
        assert book.sheetnames == ["Configuration summary", "Stratification details"]
        details = book["Stratification details"]
        assert [c.value for c in details[1]] == [
            "Level", "Column", "Stratum value / rule", "Record count", "Requested sample size",
        ]
        assert [c.value for c in details[2]] == [1, "region", "A", 2, "50%"]

        random_path = export_config_to_excel(SamplingConfig(), "random_cfg", str(tmp_path))
        assert load_workbook(random_path).sheetnames == ["Configuration summary"]


# ---------------------------------------------------------------------------
# 3. Saved configurations
# ---------------------------------------------------------------------------

class TestConfigStore:
    def test_save_and_get_round_trip(self, store, stratified_config):
        assert store.save("  audit 2024 ", stratified_config) is None
        assert store.names() == ["audit 2024"]
        loaded = store.get("audit 2024")
        assert loaded == stratified_config
        assert store.get("nope") is None

    def test_save_overwrites(self, store, stratified_config):
        store.save("cfg", stratified_config)
        store.save("cfg", SamplingConfig(sample_size=25))
        assert store.names() == ["cfg"]
        assert store.get("cfg").sample_size == 25

    def test_name_rules(self, store, stratified_config):
        from stratalens.database.config_store import NAME_REQUIRED, NAME_TAKEN
        assert store.save("  ", stratified_config) == NAME_REQUIRED
        store.save("one", SamplingConfig())
        store.save("two", SamplingConfig())
        assert store.rename("one", "two") == NAME_TAKEN
        assert store.rename("one", "") == NAME_REQUIRED
        assert store.rename("one", "three") is None
        assert store.names() == ["three", "two"]

    def test_delete(self, store):
        store.save("cfg", SamplingConfig())
        assert store.delete("cfg") is True
        assert store.delete("cfg") is False
        assert store.names() == []

    def test_upload_log(self, store):
        store.record_upload("a.csv", "h1", {"x": ColumnType.NUMERIC, "y": ColumnType.CATEGORICAL}, 10)
        store.record_upload("b.csv", "h2", {"x": ColumnType.NUMERIC}, 3, file_size_bytes=42)
        uploads = store.uploads()
        assert [u["filename"] for u in uploads] == ["b.csv", "a.csv"]
        assert (uploads[1]["rows"], uploads[1]["columns"]) == (10, 2)
