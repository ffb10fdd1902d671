"""Flatten value objects into export records and write them as JSON or CSV."""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable
from datetime import timezone
from pathlib import Path

from git_density.domain.models import (
    AuthorSpan,
    Block,
    ClassifiedLine,
    CommitDensity,
    CommitInfo,
    DensityReport,
    Hunk,
    LineType,
)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
INITIAL_PARENT = "(initial)"


def hunk_record(hunk: Hunk) -> dict:
    return {
        "OldLineStart": hunk.old_line_start,
        "OldNumberOfLines": hunk.old_number_of_lines,
        "NewLineStart": hunk.new_line_start,
        "NewNumberOfLines": hunk.new_number_of_lines,
        "SourceFilePath": hunk.source_file_path,
        "TargetFilePath": hunk.target_file_path,
        "Patch": hunk.patch,
        "LineNumbersAdded": list(hunk.lines_added),
        "LineNumbersDeleted": list(hunk.lines_deleted),
    }


def block_record(block: Block) -> dict:
    return {
        "BlockNature": block.nature.value,
        "BlockIdx": block.index,
        "LineNumbersDeleted": block.line_numbers_deleted,
        "LineNumbersAdded": block.line_numbers_added,
        "LineNumbersUntouched": block.line_numbers_untouched,
    }


def line_record(line: ClassifiedLine) -> dict:
    number = line.old_line_number if line.line_type is LineType.DELETED else line.new_line_number
    return {"LineType": line.line_type.value, "LineNumber": number}


def span_record(span: AuthorSpan) -> dict:
    return {
        "InitialCommit": span.initial_commit,
        "SinceCommit": span.since_commit,
        "UntilCommit": span.until_commit,
        "Hours": span.hours,
        "IsInitialSpan": span.is_initial_span,
        "IsSessionInitialSpan": span.is_session_initial_span,
    }


def _utc(value):
    return value.astimezone(timezone.utc).strftime(TIME_FORMAT)


def commit_record(commit: CommitDensity) -> dict:
    """Commit-level fields; metadata fields are left out when unknown."""
    record = {"Commit": commit.commit_hash}
    info: CommitInfo | None = commit.info
    if info is None:
        return record
    record.update({
        "ParentCommit": info.parent_hashes[0] if info.parent_hashes else INITIAL_PARENT,
        "Message": info.message,
        "AuthorName": info.author_name,
        "AuthorEmail": info.author_email,
        "AuthorTime": _utc(info.author_date),
        "CommitterName": info.committer_name,
        "CommitterEmail": info.committer_email,
        "CommitterTime": _utc(info.committer_date),
        "IsInitialCommit": info.is_initial,
        "IsMergeCommit": info.is_merge,
        "NumberOfParentCommits": len(info.parent_hashes),
        "DaysSinceParentCommit": info.days_since_parent,
    })
    return record


def _hunk_bases(report: DensityReport):
    for commit in report.commits:
        commit_fields = commit_record(commit)
        for file_idx, fd in enumerate(commit.files):
            for hunk_idx, hb in enumerate(fd.hunks):
                base = {
                    **commit_fields,
                    "ChangeKind": fd.file_patch.change_kind.value,
                    "FileIdx": file_idx,
                    "HunkIdx": hunk_idx,
                    **hunk_record(hb.hunk),
                }
                yield base, hb


def density_records(report: DensityReport) -> list[dict]:
    """One record per block, keyed by commit, file and hunk."""
    records: list[dict] = []
    for base, hb in _hunk_bases(report):
        if not hb.blocks:
            records.append(base)
        for block in hb.blocks:
            fields = {
                (k if k.startswith("Block") else f"Block{k}"): v
                for k, v in block_record(block).items()
            }
            records.append({**base, **fields})
    return records


def line_records(report: DensityReport) -> list[dict]:
    """One record per classified hunk line, tagged with its block."""
    records: list[dict] = []
    for base, hb in _hunk_bases(report):
        key = {k: base[k] for k in ("Commit", "ChangeKind", "FileIdx", "HunkIdx")}
        key["TargetFilePath"] = base["TargetFilePath"]
        for block in hb.blocks:
            for line in block.lines:
                records.append({
                    **key,
                    "BlockIdx": block.index,
                    "BlockNature": block.nature.value,
                    **line_record(line),
                })
    return records


def _csv_value(value):
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    if value is None:
        return ""
    return value


def write_records(records: Iterable[dict], path: str) -> int:
    """Write *records* to *path* (``.json`` or ``.csv``); returns the count."""
    rows = list(records)
    out = Path(path)
    suffix = out.suffix.lower()
    if suffix not in (".json", ".csv"):
        raise ValueError(f"Unsupported export format '{out.suffix}'. Use .json or .csv")
    out.parent.mkdir(parents=True, exist_ok=True)

    if suffix == ".json":
        out.write_text(json.dumps(rows, indent=2), encoding="utf-8")
        return len(rows)

    fieldnames: list[str] = []
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)
    with out.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: _csv_value(v) for k, v in row.items()})
    return len(rows)
