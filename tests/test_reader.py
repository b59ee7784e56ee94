"""Tests for logpulse/reader.py"""

import json
import os

import pytest

from logpulse.reader import expand_paths, ingest_source, read_source


class TestIngestSource:
    def test_all_lines_accepted(self, record, content):
        result = ingest_source("a.log", content([record(i) for i in range(5)]))
        assert result.source_id == "a.log"
        assert len(result.entries) == 5
        assert result.line_count == 5
        assert result.skipped_count == 0
        assert result.error is None
        assert all(e.source == "a.log" for e in result.entries)

    def test_bad_lines_skipped(self, record, content):
        text = content([record(0)]) + "garbage\n{\"component\": \"x\"}\n" + content([record(5)])
        result = ingest_source("mixed.log", text)
        assert len(result.entries) == 2
        assert result.line_count == 4
        assert result.skipped_count == 2

    def test_blank_lines_not_counted(self, record, content):
        text = "\n\n   \n" + content([record(0)]) + "\n\t\n"
        result = ingest_source("blank.log", text)
        assert result.line_count == 1
        assert result.skipped_count == 0

    def test_crlf_line_endings(self, record, content):
        text = content([record(0), record(1)]).replace("\n", "\r\n")
        assert len(ingest_source("win.log", text).entries) == 2

    def test_source_order_kept(self, record, content):
        text = content([record(500, message="late"), record(0, message="early")])
        messages = [e.message for e in ingest_source("a.log", text).entries]
        assert messages == ["late", "early"]

    def test_line_separator_inside_string(self, record):
        line = json.dumps(record(message="a\u2028b"), ensure_ascii=False)
        result = ingest_source("sep.log", line)
        assert len(result.entries) == 1
        assert result.entries[0].message == "a\u2028b"

    def test_bytes_are_decoded(self, record, content):
        data = content([record(0, message="café")]).encode("utf-8")
        result = ingest_source("bytes.log", data)
        assert result.entries[0].message == "café"

    def test_undecodable_bytes_do_not_fail(self, record, content):
        data = b"\xff\xfe\xfa\n" + content([record(0)]).encode("utf-8")
        result = ingest_source("binary.log", data)
        assert len(result.entries) == 1
        assert result.skipped_count == 1

    def test_empty_source(self):
        result = ingest_source("empty.log", "")
        assert result.entries == ()
        assert result.line_count == 0

    def test_utf8_bom_bytes(self, record, content):
        result = ingest_source("bom.log", b"\xef\xbb\xbf" + content([record(0), record(1)]).encode("utf-8"))
        assert len(result.entries) == 2
        assert result.skipped_count == 0
        assert result.entries[0].raw.startswith("{")

    def test_utf8_bom_text(self, record, content):
        result = ingest_source("bom.log", "\ufeff" + content([record(0)]))
        assert len(result.entries) == 1
        assert result.line_count == 1

    def test_bom_only_stripped_at_start(self, record, content):
        text = content([record(0)]) + "\ufeff" + content([record(1)])
        result = ingest_source("bom.log", text)
        assert len(result.entries) == 1
        assert result.skipped_count == 1


class TestReadSource:
    @pytest.mark.asyncio
    async def test_reads_whole_file(self, tmp_path):
        path = tmp_path / "a.log"
        path.write_text("line one\nline two\n", encoding="utf-8")
        assert await read_source(str(path)) == "line one\nline two\n"

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            await read_source(str(tmp_path / "missing.log"))

    @pytest.mark.asyncio
    async def test_bom_file_ingests(self, tmp_path, record, content):
        path = tmp_path / "bom.log"
        path.write_bytes(b"\xef\xbb\xbf" + content([record(0)]).encode("utf-8"))
        result = ingest_source("bom.log", await read_source(str(path)))
        assert len(result.entries) == 1
        assert result.skipped_count == 0


class TestExpandPaths:
    def test_literal_paths_kept_in_order(self, tmp_path):
        a = tmp_path / "b.log"
        b = tmp_path / "a.log"
        a.write_text("")
        b.write_text("")
        assert expand_paths([str(a), str(b)]) == [str(a), str(b)]

    def test_duplicates_removed(self, tmp_path):
        path = tmp_path / "a.log"
        path.write_text("")
        assert expand_paths([str(path), str(path)]) == [str(path)]

    def test_glob(self, tmp_path):
        for name in ("x.log", "y.log", "z.txt"):
            (tmp_path / name).write_text("")
        result = expand_paths([str(tmp_path / "*.log")])
        assert result == [str(tmp_path / "x.log"), str(tmp_path / "y.log")]

    def test_glob_without_matches(self, tmp_path):
        assert expand_paths([str(tmp_path / "*.nothing")]) == []

    def test_directory_expanded_to_files(self, tmp_path):
        (tmp_path / "one.log").write_text("")
        (tmp_path / "two.log").write_text("")
        (tmp_path / "nested").mkdir()
        result = expand_paths([str(tmp_path)])
        assert result == [os.path.join(str(tmp_path), "one.log"), os.path.join(str(tmp_path), "two.log")]

    def test_missing_literal_path_kept(self, tmp_path):
        missing = str(tmp_path / "missing.log")
        assert expand_paths([missing]) == [missing]
