import csv
import json

import pytest

from git_density.domain.models import AuthorSpan, ClassifiedLine, CommitDensity, LineType
from git_density.infrastructure.record_export import (
    commit_record,
    density_records,
    line_record,
    line_records,
    span_record,
    write_records,
)
from tests.application.fakes import make_all_reports


class TestRecords:
    def test_line_record_uses_side_number(self):
        deleted = ClassifiedLine("-x", LineType.DELETED, 4, None)
        added = ClassifiedLine("+x", LineType.ADDED, None, 9)
        context = ClassifiedLine(" x", LineType.CONTEXT, 5, 10)
        assert line_record(deleted) == {"LineType": "Deleted", "LineNumber": 4}
        assert line_record(added) == {"LineType": "Added", "LineNumber": 9}
        assert line_record(context) == {"LineType": "Context", "LineNumber": 10}

    def test_span_record_field_names(self):
        span = AuthorSpan("c1", "c1", "c2", 0.5, False, False)
        assert span_record(span) == {
            "InitialCommit": "c1",
            "SinceCommit": "c1",
            "UntilCommit": "c2",
            "Hours": 0.5,
            "IsInitialSpan": False,
            "IsSessionInitialSpan": False,
        }

    def test_density_records_one_per_block(self):
        _, _, density = make_all_reports()
        records = density_records(density)
        # c1: 1 block, c2: 3 blocks, c3/c4: empty hunk without blocks
        assert len(records) == 6
        c2 = [r for r in records if r["Commit"] == "c2"]
        assert [r["BlockNature"] for r in c2] == ["Untouched", "Replaced", "Untouched"]
        assert c2[1]["BlockLineNumbersDeleted"] == [2]
        assert c2[1]["LineNumbersAdded"] == [2]

    def test_empty_hunk_record_has_paths(self):
        _, _, density = make_all_reports()
        (c4,) = [r for r in density_records(density) if r["Commit"] == "c4"]
        assert c4["ChangeKind"] == "renamed_unchanged"
        assert c4["Patch"] == ""
        assert c4["SourceFilePath"].endswith("a.py")
        assert c4["TargetFilePath"].endswith("b.py")
        assert "BlockNature" not in c4

    def test_records_keyed_by_file_index(self):
        _, _, density = make_all_reports()
        assert {r["FileIdx"] for r in density_records(density)} == {0}


class TestCommitRecord:
    def test_without_metadata(self):
        assert commit_record(CommitDensity("abc", [])) == {"Commit": "abc"}

    def test_root_commit(self):
        _, _, density = make_all_reports()
        record = commit_record(density.commits[0])
        assert record["ParentCommit"] == "(initial)"
        assert record["IsInitialCommit"] is True
        assert record["IsMergeCommit"] is False
        assert record["NumberOfParentCommits"] == 0
        assert record["DaysSinceParentCommit"] is None
        assert record["AuthorTime"] == "2024-06-01 09:00:00"

    def test_child_commit(self):
        _, _, density = make_all_reports()
        record = commit_record(density.commits[1])
        assert record["ParentCommit"] == "c1"
        assert record["IsInitialCommit"] is False
        assert record["NumberOfParentCommits"] == 1
        assert record["DaysSinceParentCommit"] == pytest.approx(30 / 1440)
        assert (record["AuthorName"], record["AuthorEmail"]) == ("Alice", "alice@example.com")
        assert record["CommitterTime"] == "2024-06-01 09:30:00"
        assert record["Message"] == "commit c2"

    def test_density_records_carry_commit_fields(self):
        _, _, density = make_all_reports()
        (c3,) = [r for r in density_records(density) if r["Commit"] == "c3"]
        assert c3["ParentCommit"] == "c2"
        assert c3["AuthorName"] == "Bob"


class TestLineRecords:
    def test_one_record_per_line(self):
        _, _, density = make_all_reports()
        records = line_records(density)
        # c1: three added lines, c2: four lines, c3/c4: empty hunks have no lines
        assert len(records) == 7
        assert {r["Commit"] for r in records} == {"c1", "c2"}

    def test_lines_tagged_with_block(self):
        _, _, density = make_all_reports()
        c2 = [r for r in line_records(density) if r["Commit"] == "c2"]
        assert [(r["BlockIdx"], r["BlockNature"], r["LineType"], r["LineNumber"]) for r in c2] == [
            (0, "Untouched", "Context", 1),
            (1, "Replaced", "Deleted", 2),
            (1, "Replaced", "Added", 2),
            (2, "Untouched", "Context", 3),
        ]
        assert all(r["FileIdx"] == 0 and r["HunkIdx"] == 0 for r in c2)
        assert c2[0]["TargetFilePath"].endswith("a.py")


class TestWriteRecords:
    def test_json(self, tmp_path):
        out = tmp_path / "out.json"
        count = write_records([{"A": 1, "B": [1, 2]}], str(out))
        assert count == 1
        assert json.loads(out.read_text()) == [{"A": 1, "B": [1, 2]}]

    def test_csv_joins_lists(self, tmp_path):
        out = tmp_path / "out.csv"
        write_records([{"A": 1, "B": [1, 2]}, {"A": 2, "C": None}], str(out))
        with out.open() as fh:
            rows = list(csv.DictReader(fh))
        assert rows[0] == {"A": "1", "B": "1,2", "C": ""}
        assert rows[1] == {"A": "2", "B": "", "C": ""}

    def test_unknown_suffix(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported export format"):
            write_records([], str(tmp_path / "out.xml"))
