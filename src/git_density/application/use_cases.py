from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone

from git_density.domain.models import (
    AuthorCommit,
    AuthorHours,
    BlockNature,
    CommitDensity,
    DensityReport,
    HoursReport,
    RepoSummary,
)
from git_density.domain.ports import GitRepository
from git_density.infrastructure.hours_engine import (
    DEFAULT_FIRST_COMMIT_ADDITION_MINUTES,
    DEFAULT_MAX_COMMIT_DIFF_MINUTES,
    build_author_spans,
    make_estimator,
)
from git_density.infrastructure.patch_decomposer import decompose_patch

logger = logging.getLogger(__name__)

TIME_BOUND_FORMAT = "%Y-%m-%d %H:%M"


def get_repo_summary(repo: GitRepository, repo_path: str) -> RepoSummary:
    return RepoSummary(
        repo_path=repo_path,
        commit_count=repo.commit_count(),
        first_commit_date=repo.first_commit_date(),
        last_commit_date=repo.last_commit_date(),
    )


def parse_time_bound(value: str) -> datetime:
    """Parse a 'yyyy-MM-dd HH:mm' (24-hour) bound; naive values are UTC."""
    try:
        dt = datetime.strptime(value.strip(), TIME_BOUND_FORMAT)
    except ValueError:
        raise ValueError(
            f"Invalid time bound '{value}'. Use yyyy-MM-dd HH:mm, e.g. 2024-06-01 13:30"
        ) from None
    return dt.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Hours
# ---------------------------------------------------------------------------

def _group_by_author(commits: list[AuthorCommit]) -> dict[str, list[AuthorCommit]]:
    grouped: defaultdict[str, list[AuthorCommit]] = defaultdict(list)
    for c in commits:
        grouped[c.author_email or "unknown"].append(c)
    return grouped


def analyze_hours(
    repo: GitRepository,
    repo_path: str,
    max_commit_diff_minutes: int = DEFAULT_MAX_COMMIT_DIFF_MINUTES,
    first_commit_addition_minutes: int = DEFAULT_FIRST_COMMIT_ADDITION_MINUTES,
    since: datetime | None = None,
    until: datetime | None = None,
) -> HoursReport:
    """Estimate hours per author for commits in [since, until)."""
    commits = repo.author_commits(since=since, until=until)
    estimator = make_estimator(max_commit_diff_minutes, first_commit_addition_minutes)

    authors: list[AuthorHours] = []
    for email, author_commits in _group_by_author(commits).items():
        spans = list(build_author_spans(author_commits, estimator))
        # Same summation order as the estimator, rounded once.
        hours = round(sum(s.hours for s in spans if not s.is_initial_span), 2)
        authors.append(AuthorHours(
            author_email=email,
            author_name=author_commits[0].author_name,
            hours=hours,
            commit_count=len(author_commits),
            spans=spans,
        ))

    authors.sort(key=lambda a: (a.hours, a.author_email))

    return HoursReport(
        repo_path=repo_path,
        since=since,
        until=until,
        max_commit_diff_minutes=max_commit_diff_minutes,
        first_commit_addition_minutes=first_commit_addition_minutes,
        total_commits=len(commits),
        total_hours=round(sum(a.hours for a in authors), 2),
        authors=authors,
    )


# ---------------------------------------------------------------------------
# Density
# ---------------------------------------------------------------------------

def analyze_commit_density(
    repo: GitRepository,
    commit_hash: str,
    source_dir: str | None = None,
    target_dir: str | None = None,
    log: logging.Logger | None = None,
) -> CommitDensity:
    """Decompose every changed file of one commit into hunks and blocks.

    The result also carries the commit's parents, identities and timestamps.
    """
    files = [
        decompose_patch(fp, source_dir, target_dir, log)
        for fp in repo.commit_patches(commit_hash)
    ]
    return CommitDensity(
        commit_hash=commit_hash, files=files, info=repo.commit_info(commit_hash),
    )


def analyze_density(
    repo: GitRepository,
    repo_path: str,
    since: datetime | None = None,
    until: datetime | None = None,
    source_dir: str | None = None,
    target_dir: str | None = None,
    log: logging.Logger | None = None,
) -> DensityReport:
    """Structural change analysis over all commits in [since, until)."""
    commits = [
        analyze_commit_density(repo, h, source_dir, target_dir, log)
        for h in repo.commit_hashes(since=since, until=until)
    ]
    return summarize_density(repo_path, commits, since, until)


def summarize_density(
    repo_path: str,
    commits: list[CommitDensity],
    since: datetime | None = None,
    until: datetime | None = None,
) -> DensityReport:
    blocks_by_nature = {n.value: 0 for n in BlockNature}
    total_files = total_hunks = total_added = total_deleted = 0

    for commit in commits:
        total_files += len(commit.files)
        for fd in commit.files:
            if not fd.hunks:
                logger.debug(
                    "%s: no hunks for %s in %s",
                    repo_path, fd.file_patch.new_path, commit.commit_hash,
                )
            for hb in fd.hunks:
                total_hunks += 1
                total_added += hb.hunk.number_of_lines_added
                total_deleted += hb.hunk.number_of_lines_deleted
                for b in hb.blocks:
                    blocks_by_nature[b.nature.value] += 1

    return DensityReport(
        repo_path=repo_path,
        since=since,
        until=until,
        commits=commits,
        total_files=total_files,
        total_hunks=total_hunks,
        total_lines_added=total_added,
        total_lines_deleted=total_deleted,
        blocks_by_nature=blocks_by_nature,
    )
