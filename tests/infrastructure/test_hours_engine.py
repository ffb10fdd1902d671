from datetime import datetime, timedelta, timezone

import pytest

from git_density.domain.models import AuthorCommit
from git_density.infrastructure.hours_engine import (
    build_author_spans,
    estimate_commit_time,
    make_estimator,
)

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def _at(*minutes):
    return [T0 + timedelta(minutes=m) for m in minutes]


def _commit(h, minutes):
    when = T0 + timedelta(minutes=minutes)
    return AuthorCommit(h, "Dev", "dev@example.com", when, when)


class TestEstimateCommitTime:
    def test_no_dates(self):
        est = estimate_commit_time([])
        assert est.hours == 0.0
        assert est.per_gap == []

    def test_single_date(self):
        assert estimate_commit_time(_at(0)).hours == 0.0

    def test_short_gap_counts_real_time(self):
        est = estimate_commit_time(_at(0, 30))
        assert est.hours == 0.5
        assert est.per_gap[0].is_session_initial is False
        assert est.per_gap[0].minutes_since_previous == pytest.approx(30.0)

    def test_long_gap_gets_first_commit_credit(self):
        est = estimate_commit_time(_at(0, 200))
        assert est.hours == 2.0
        assert est.per_gap[0].is_session_initial is True

    def test_gap_equal_to_threshold_is_new_session(self):
        est = estimate_commit_time(_at(0, 120), 120, 30)
        assert est.hours == 0.5
        assert est.per_gap[0].is_session_initial is True

    def test_unsorted_input(self):
        assert estimate_commit_time(_at(60, 0, 30)).hours == 1.0

    def test_duplicates_contribute_zero(self):
        est = estimate_commit_time(_at(0, 0, 30))
        assert len(est.per_gap) == 2
        assert est.per_gap[0].hours_contributed == 0.0
        assert est.hours == 0.5

    def test_rounded_once(self):
        # three gaps of 20 seconds: 3 * 0.00556 -> 0.02 when rounded at the end
        dates = [T0 + timedelta(seconds=20 * i) for i in range(4)]
        assert estimate_commit_time(dates).hours == 0.02

    def test_custom_thresholds(self):
        est = estimate_commit_time(_at(0, 10, 100), 60, 15)
        assert est.hours == pytest.approx(round(10 / 60 + 0.25, 2))

    def test_make_estimator_binds_thresholds(self):
        est = make_estimator(60, 15)
        assert est(_at(0, 100)).hours == 0.25


class TestBuildAuthorSpans:
    def test_no_commits(self):
        assert list(build_author_spans([], make_estimator())) == []

    def test_single_commit_only_initial_span(self):
        (span,) = build_author_spans([_commit("c1", 0)], make_estimator())
        assert span.is_initial_span and span.is_session_initial_span
        assert span.since_commit is None
        assert span.until_commit == "c1"
        assert span.hours == 0.0

    def test_spans_chain_commits(self):
        commits = [_commit("c3", 300), _commit("c1", 0), _commit("c2", 30)]
        spans = list(build_author_spans(commits, make_estimator()))
        assert len(spans) == 3
        assert [(s.since_commit, s.until_commit) for s in spans] == [
            (None, "c1"), ("c1", "c2"), ("c2", "c3"),
        ]
        assert all(s.initial_commit == "c1" for s in spans)
        assert spans[1].hours == pytest.approx(0.5)
        assert spans[1].is_session_initial_span is False
        assert spans[2].hours == pytest.approx(2.0)
        assert spans[2].is_session_initial_span is True

    def test_span_hours_sum_to_estimate(self):
        commits = [_commit(f"c{i}", m) for i, m in enumerate([0, 17, 45, 400, 410])]
        estimator = make_estimator()
        spans = list(build_author_spans(commits, estimator))
        total = round(sum(s.hours for s in spans if not s.is_initial_span), 2)
        assert total == estimator([c.author_date for c in commits]).hours

    def test_estimator_called_once(self):
        calls = []
        base = make_estimator()

        def counting(dates):
            calls.append(1)
            return base(dates)

        list(build_author_spans([_commit("a", 0), _commit("b", 5), _commit("c", 9)], counting))
        assert len(calls) == 1


# ── Mixed UTC offsets ───────────────────────────────────────────────

CEST = timezone(timedelta(hours=2))
# 10:30+02:00 is 08:30 UTC, so it precedes 09:00+00:00 despite the later wall clock.
EARLY_CEST = datetime(2024, 3, 1, 10, 30, tzinfo=CEST)
LATE_UTC = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestMixedOffsets:
    def test_gap_measured_between_instants(self):
        est = estimate_commit_time([LATE_UTC, EARLY_CEST])
        (gap,) = est.per_gap
        assert gap.minutes_since_previous == pytest.approx(30.0)
        assert gap.is_session_initial is False
        assert est.hours == 0.5

    def test_wall_clock_gap_would_differ(self):
        # Naive wall clocks are 90 minutes apart; the estimate must not use them.
        naive_gap = EARLY_CEST.replace(tzinfo=None) - LATE_UTC.replace(tzinfo=None)
        assert naive_gap == timedelta(minutes=90)
        assert estimate_commit_time([EARLY_CEST, LATE_UTC]).hours != 1.5

    def test_spans_follow_instant_order(self):
        commits = [
            AuthorCommit("utc", "Dev", "dev@example.com", LATE_UTC, LATE_UTC),
            AuthorCommit("cest", "Dev", "dev@example.com", EARLY_CEST, EARLY_CEST),
        ]
        spans = list(build_author_spans(commits, make_estimator()))
        assert [(s.since_commit, s.until_commit) for s in spans] == [
            (None, "cest"), ("cest", "utc"),
        ]
        assert all(s.initial_commit == "cest" for s in spans)
        assert spans[1].hours == pytest.approx(0.5)
        assert spans[1].is_session_initial_span is False
