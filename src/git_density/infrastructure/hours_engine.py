"""Commit-time estimation from commit timestamps.

Functions:
- estimate_commit_time: sorted gaps -> hours using a session-break threshold
- make_estimator: bind both thresholds into an Estimator callable
- build_author_spans: consecutive commit-to-commit spans for one author
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from functools import partial

from git_density.domain.models import (
    AuthorCommit,
    AuthorSpan,
    CommitTimeEstimate,
    GapEstimate,
)


DEFAULT_MAX_COMMIT_DIFF_MINUTES = 120
DEFAULT_FIRST_COMMIT_ADDITION_MINUTES = 120

Estimator = Callable[[Iterable[datetime]], CommitTimeEstimate]


# ---------------------------------------------------------------------------
# 1. Estimator
# ---------------------------------------------------------------------------

def estimate_commit_time(
    dates: Iterable[datetime],
    max_commit_diff_minutes: int = DEFAULT_MAX_COMMIT_DIFF_MINUTES,
    first_commit_addition_minutes: int = DEFAULT_FIRST_COMMIT_ADDITION_MINUTES,
) -> CommitTimeEstimate:
    """Estimate the hours spent from one author's commit timestamps.

    Gaps shorter than *max_commit_diff_minutes* count with their real length.
    Any longer gap starts a new session and is credited with
    *first_commit_addition_minutes* instead. Duplicate timestamps are kept
    and contribute zero-length gaps.

    Args:
        dates: commit timestamps (any order, timezone-aware).
        max_commit_diff_minutes: session-break threshold.
        first_commit_addition_minutes: credit for a session's first commit.

    Returns:
        CommitTimeEstimate with hours rounded once to 2 decimals.
    """
    sorted_dates = sorted(dates)
    if len(sorted_dates) < 2:
        return CommitTimeEstimate(hours=0.0, per_gap=[])

    per_gap: list[GapEstimate] = []
    total = 0.0
    for prev, nxt in zip(sorted_dates, sorted_dates[1:]):
        diff_minutes = (nxt - prev).total_seconds() / 60.0
        if diff_minutes < max_commit_diff_minutes:
            gap = GapEstimate(diff_minutes, False, diff_minutes / 60.0)
        else:
            gap = GapEstimate(diff_minutes, True, first_commit_addition_minutes / 60.0)
        per_gap.append(gap)
        total += gap.hours_contributed

    return CommitTimeEstimate(hours=round(total, 2), per_gap=per_gap)


def make_estimator(
    max_commit_diff_minutes: int = DEFAULT_MAX_COMMIT_DIFF_MINUTES,
    first_commit_addition_minutes: int = DEFAULT_FIRST_COMMIT_ADDITION_MINUTES,
) -> Estimator:
    return partial(
        estimate_commit_time,
        max_commit_diff_minutes=max_commit_diff_minutes,
        first_commit_addition_minutes=first_commit_addition_minutes,
    )


# ---------------------------------------------------------------------------
# 2. Author spans
# ---------------------------------------------------------------------------

def build_author_spans(
    commits: Iterable[AuthorCommit],
    estimator: Estimator,
) -> Iterator[AuthorSpan]:
    """Yield the annotated spans between an author's consecutive commits.

    The first span is a zero-hour anchor for the author's earliest commit.
    The estimator runs once over all timestamps; span i takes gap i.
    """
    commits_sorted = sorted(commits, key=lambda c: c.author_date)
    if not commits_sorted:
        return

    first = commits_sorted[0]
    yield AuthorSpan(
        initial_commit=first.commit_hash,
        since_commit=None,
        until_commit=first.commit_hash,
        hours=0.0,
        is_initial_span=True,
        is_session_initial_span=True,
    )

    estimate = estimator([c.author_date for c in commits_sorted])
    for i, gap in enumerate(estimate.per_gap):
        yield AuthorSpan(
            initial_commit=first.commit_hash,
            since_commit=commits_sorted[i].commit_hash,
            until_commit=commits_sorted[i + 1].commit_hash,
            hours=gap.hours_contributed,
            is_initial_span=False,
            is_session_initial_span=gap.is_session_initial,
        )
