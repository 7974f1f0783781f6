"""
Tests for CSV parsing and the directory source.
"""
from datetime import date

import pytest

from app.services.csv_source import (
    CSVRecordSource,
    LoadStats,
    SourceUnavailableError,
    clean_int,
    parse_row,
    read_csv_file,
)
from conftest import write_csv


class TestCleanInt:

    def test_values(self):
        assert clean_int("42") == (42, True)
        assert clean_int(" 7 ") == (7, True)
        assert clean_int("3.9") == (3, True)

    def test_negative_clamped(self):
        assert clean_int("-5") == (0, True)

    def test_unparseable_defaults_to_zero(self):
        assert clean_int("abc") == (0, False)
        assert clean_int("") == (0, False)


class TestParseRow:

    def test_non_numeric_count_becomes_zero(self):
        stats = LoadStats()
        record = parse_row(["01-03-2025", "X", "Y", "123", "10", "abc", "5"], stats)

        assert record.age_5_17 == 0
        assert record.total == 15
        assert record.calendar_date == date(2025, 3, 1)
        assert stats.fields_defaulted == 1

    def test_short_row_dropped(self):
        stats = LoadStats()
        assert parse_row(["01-03-2025", "X", "Y"], stats) is None
        assert stats.rows_dropped == 1

    def test_bad_date_dropped(self):
        stats = LoadStats()
        assert parse_row(["not-a-date", "X", "Y", "1", "1", "1", "1"], stats) is None
        assert stats.rows_dropped == 1

    def test_fields_are_trimmed(self):
        record = parse_row([" 01-03-2025 ", " Goa ", " North Goa ", "403001", "1", "2", "3"], LoadStats())
        assert record.state == "Goa"
        assert record.district == "North Goa"
        assert record.date == "01-03-2025"

    def test_unpadded_date_is_canonical(self):
        record = parse_row(["1-3-2025", "Goa", "North Goa", "403001", "1", "2", "3"], LoadStats())
        assert record.date == "01-03-2025"
        assert record.calendar_date == date(2025, 3, 1)


class TestReadFile:

    def test_quoted_fields_with_commas(self, tmp_path):
        path = write_csv(tmp_path, "a.csv", [
            '01-03-2025,"Jammu, and Kashmir","Srinagar",190001,1,2,3',
        ])
        result = read_csv_file(path)

        assert len(result.records) == 1
        assert result.records[0].state == "Jammu, and Kashmir"
        assert result.records[0].total == 6

    def test_header_and_blank_lines_skipped(self, tmp_path):
        path = write_csv(tmp_path, "a.csv", [
            "01-03-2025,Goa,North Goa,403001,1,1,1",
            "",
            "02-03-2025,Goa,North Goa,403001,2,2,2",
            "02-03-2025,Goa",
        ])
        result = read_csv_file(path)

        assert [r.total for r in result.records] == [3, 6]
        assert result.stats.rows_read == 3
        assert result.stats.rows_dropped == 1
        assert result.stats.files_read == 1


class TestCSVRecordSource:

    @pytest.mark.asyncio
    async def test_reads_every_csv_file(self, tmp_path):
        write_csv(tmp_path, "part1.csv", ["01-03-2025,Goa,North Goa,403001,1,1,1"])
        write_csv(tmp_path, "part2.csv", ["02-03-2025,Bihar,Patna,800001,2,2,2"])
        (tmp_path / "notes.txt").write_text("ignored")

        result = await CSVRecordSource(tmp_path).read_all()

        assert sorted(r.state for r in result.records) == ["Bihar", "Goa"]
        assert result.stats.files_read == 2
        assert result.stats.source_available

    @pytest.mark.asyncio
    async def test_empty_directory(self, tmp_path):
        result = await CSVRecordSource(tmp_path).read_all()
        assert result.records == []
        assert result.stats.source_available

    @pytest.mark.asyncio
    async def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(SourceUnavailableError):
            await CSVRecordSource(tmp_path / "missing").read_all()

    @pytest.mark.asyncio
    async def test_undecodable_file_counted_as_failed(self, tmp_path):
        write_csv(tmp_path, "good.csv", ["01-03-2025,Goa,North Goa,403001,1,1,1"])
        (tmp_path / "bad.csv").write_bytes(b"date,state\n\xff\xfe\xfa,broken\n")

        result = await CSVRecordSource(tmp_path).read_all()

        assert len(result.records) == 1
        assert result.stats.files_failed == 1
        assert result.stats.files_read == 1
