from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RunSummary(BaseModel):
    run_id: str
    repo_path: str
    created_at: datetime
    total_commits: int
    total_hours: float
    author_count: int
    hunk_count: int


class RunDetail(BaseModel):
    run_id: str
    repo_path: str
    created_at: datetime
    since_date: datetime | None
    until_date: datetime | None
    total_commits: int
    first_commit_date: datetime | None
    last_commit_date: datetime | None
    max_commit_diff_minutes: int
    first_commit_addition_minutes: int
    total_hours: float
    author_count: int
    file_count: int
    hunk_count: int
    lines_added: int
    lines_deleted: int
    blocks_by_nature: dict[str, int]


class AuthorHoursRow(BaseModel):
    run_id: str
    author_email: str
    author_name: str
    hours: float
    commit_count: int


class AuthorSpanRow(BaseModel):
    run_id: str
    author_email: str
    span_idx: int
    initial_commit: str
    since_commit: str | None
    until_commit: str
    hours: float
    is_initial_span: bool
    is_session_initial_span: bool


class FileHunkRow(BaseModel):
    run_id: str
    commit_hash: str
    file_idx: int
    file_path: str
    hunk_idx: int
    change_kind: str
    old_line_start: int
    old_number_of_lines: int
    new_line_start: int
    new_number_of_lines: int
    lines_added: int
    lines_deleted: int


class HunkBlockRow(BaseModel):
    run_id: str
    commit_hash: str
    file_idx: int
    file_path: str
    hunk_idx: int
    block_idx: int
    nature: str
    lines_deleted: int
    lines_added: int
    lines_untouched: int
