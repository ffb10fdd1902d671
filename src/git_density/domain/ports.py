from __future__ import annotations

from datetime import datetime
from typing import Protocol

from git_density.domain.models import AuthorCommit, CommitInfo, FilePatch


class GitRepository(Protocol):
    def commit_count(self) -> int: ...

    def first_commit_date(self) -> datetime | None: ...

    def last_commit_date(self) -> datetime | None: ...

    def resolve_ref(self, ref: str) -> str: ...

    def author_commits(
        self, since: datetime | None = None, until: datetime | None = None
    ) -> list[AuthorCommit]: ...

    def commit_hashes(
        self, since: datetime | None = None, until: datetime | None = None
    ) -> list[str]: ...

    def commit_info(self, commit_hash: str) -> CommitInfo: ...

    def commit_patches(self, commit_hash: str) -> list[FilePatch]: ...
