from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class RepoSummary:
    repo_path: str
    commit_count: int
    first_commit_date: datetime | None
    last_commit_date: datetime | None


# ---------------------------------------------------------------------------
# Diff structure
# ---------------------------------------------------------------------------

class LineType(str, Enum):
    ADDED = "Added"
    DELETED = "Deleted"
    CONTEXT = "Context"


class BlockNature(str, Enum):
    ADDED_ONLY = "AddedOnly"
    DELETED_ONLY = "DeletedOnly"
    REPLACED = "Replaced"
    UNTOUCHED = "Untouched"


class ChangeKind(str, Enum):
    """How a single file changed between two commits."""

    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    RENAMED = "renamed"
    # No actual content diff
    ADDED_EMPTY = "added_empty"
    RENAMED_UNCHANGED = "renamed_unchanged"
    DELETED_EMPTY = "deleted_empty"

    @property
    def has_content_diff(self) -> bool:
        return self not in _NO_CONTENT_KINDS

    @classmethod
    def classify(cls, status: ChangeKind, lines_added: int, lines_deleted: int) -> ChangeKind:
        """Refine a plain status into a no-content kind where it applies."""
        if status is cls.ADDED and lines_added == 0:
            return cls.ADDED_EMPTY
        if status is cls.RENAMED and lines_added == 0 and lines_deleted == 0:
            return cls.RENAMED_UNCHANGED
        if status is cls.DELETED and lines_deleted == 0:
            return cls.DELETED_EMPTY
        return status


_NO_CONTENT_KINDS = frozenset({
    ChangeKind.ADDED_EMPTY,
    ChangeKind.RENAMED_UNCHANGED,
    ChangeKind.DELETED_EMPTY,
})


@dataclass(frozen=True)
class ClassifiedLine:
    """One physical line of a hunk body."""

    raw_text: str
    line_type: LineType
    old_line_number: int | None  # None for added lines
    new_line_number: int | None  # None for deleted lines

    @property
    def is_context(self) -> bool:
        return self.line_type is LineType.CONTEXT


@dataclass(frozen=True)
class Hunk:
    """One ``@@ ... @@`` region of a file's unified diff."""

    old_line_start: int
    old_number_of_lines: int
    new_line_start: int
    new_number_of_lines: int
    patch: str
    source_file_path: str = ""
    target_file_path: str = ""
    lines_added: tuple[int, ...] = ()    # new-file line numbers
    lines_deleted: tuple[int, ...] = ()  # old-file line numbers

    @property
    def represents_empty_file(self) -> bool:
        return (
            self.old_line_start == 0
            and self.old_number_of_lines == 0
            and self.new_line_start == 0
            and self.new_number_of_lines == 0
            and self.patch == ""
        )

    @property
    def number_of_lines_added(self) -> int:
        return len(self.lines_added)

    @property
    def number_of_lines_deleted(self) -> int:
        return len(self.lines_deleted)


@dataclass(frozen=True)
class Block:
    """A maximal run of classified lines sharing one nature."""

    nature: BlockNature
    index: int  # 0-based within the hunk
    lines: tuple[ClassifiedLine, ...]

    @property
    def line_numbers_deleted(self) -> list[int]:
        return [ln.old_line_number for ln in self.lines if ln.line_type is LineType.DELETED]

    @property
    def line_numbers_added(self) -> list[int]:
        return [ln.new_line_number for ln in self.lines if ln.line_type is LineType.ADDED]

    @property
    def line_numbers_untouched(self) -> list[int]:
        return [ln.new_line_number for ln in self.lines if ln.line_type is LineType.CONTEXT]


@dataclass(frozen=True)
class FilePatch:
    """A changed file as handed over by the repository reader."""

    old_path: str
    new_path: str
    change_kind: ChangeKind
    patch: str
    lines_added: int = 0
    lines_deleted: int = 0


@dataclass(frozen=True)
class HunkBlocks:
    hunk: Hunk
    blocks: list[Block]


@dataclass(frozen=True)
class FileDecomposition:
    """Hunks and their blocks for one changed file."""

    file_patch: FilePatch
    hunks: list[HunkBlocks]

    @property
    def block_count(self) -> int:
        return sum(len(hb.blocks) for hb in self.hunks)


@dataclass(frozen=True)
class CommitInfo:
    """Identity, parents and timestamps of one commit."""

    commit_hash: str
    parent_hashes: tuple[str, ...]
    author_name: str
    author_email: str
    author_date: datetime
    committer_name: str
    committer_email: str
    committer_date: datetime
    message: str = ""
    # Committer date of the first parent, None for root commits
    parent_committer_date: datetime | None = None

    @property
    def is_initial(self) -> bool:
        return not self.parent_hashes

    @property
    def is_merge(self) -> bool:
        return len(self.parent_hashes) > 1

    @property
    def days_since_parent(self) -> float | None:
        if self.parent_committer_date is None:
            return None
        return (self.committer_date - self.parent_committer_date).total_seconds() / 86400.0


@dataclass(frozen=True)
class CommitDensity:
    commit_hash: str
    files: list[FileDecomposition]
    info: CommitInfo | None = None


@dataclass(frozen=True)
class DensityReport:
    """Structural shape of every commit in a time window."""

    repo_path: str
    since: datetime | None
    until: datetime | None
    commits: list[CommitDensity]
    total_files: int
    total_hunks: int
    total_lines_added: int
    total_lines_deleted: int
    blocks_by_nature: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Time estimation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthorCommit:
    commit_hash: str
    author_name: str
    author_email: str
    author_date: datetime
    committer_date: datetime


@dataclass(frozen=True)
class GapEstimate:
    """Estimate for the gap between two consecutive commits."""

    minutes_since_previous: float
    is_session_initial: bool
    hours_contributed: float


@dataclass(frozen=True)
class CommitTimeEstimate:
    hours: float  # sum of hours_contributed, rounded once to 2 decimals
    per_gap: list[GapEstimate]


@dataclass(frozen=True)
class AuthorSpan:
    """Interval between two consecutive commits of one author."""

    initial_commit: str
    since_commit: str | None  # None only for the author's initial span
    until_commit: str
    hours: float
    is_initial_span: bool
    is_session_initial_span: bool


@dataclass(frozen=True)
class AuthorHours:
    author_email: str
    author_name: str
    hours: float
    commit_count: int
    spans: list[AuthorSpan]


@dataclass(frozen=True)
class HoursReport:
    """Estimated hours per author within a time window."""

    repo_path: str
    since: datetime | None
    until: datetime | None
    max_commit_diff_minutes: int
    first_commit_addition_minutes: int
    total_commits: int
    total_hours: float
    authors: list[AuthorHours]  # sorted by hours ascending
