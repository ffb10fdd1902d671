from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import duckdb

from git_density.domain.models import DensityReport, HoursReport, RepoSummary


_DEFAULT_DB_DIR = Path.home() / ".git-density"
_DEFAULT_DB_PATH = _DEFAULT_DB_DIR / "runs.db"

_RUN_SUMMARY_COLUMNS = [
    "run_id", "repo_path", "created_at", "total_commits",
    "total_hours", "author_count", "hunk_count",
]


class RunStore:
    """Persists --all run results to DuckDB."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            self._db_path = _DEFAULT_DB_PATH
        else:
            self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(str(self._db_path))
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS runs (
                run_id              VARCHAR PRIMARY KEY,
                repo_path           VARCHAR NOT NULL,
                created_at          TIMESTAMP NOT NULL,
                since_date          TIMESTAMP,
                until_date          TIMESTAMP,
                total_commits       INTEGER NOT NULL,
                first_commit_date   TIMESTAMP,
                last_commit_date    TIMESTAMP,
                max_commit_diff_minutes        INTEGER NOT NULL,
                first_commit_addition_minutes  INTEGER NOT NULL,
                total_hours         DOUBLE NOT NULL,
                author_count        INTEGER NOT NULL,
                file_count          INTEGER NOT NULL,
                hunk_count          INTEGER NOT NULL,
                lines_added         INTEGER NOT NULL,
                lines_deleted       INTEGER NOT NULL,
                blocks_by_nature    VARCHAR NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS author_hours (
                run_id       VARCHAR NOT NULL,
                author_email VARCHAR NOT NULL,
                author_name  VARCHAR NOT NULL,
                hours        DOUBLE NOT NULL,
                commit_count INTEGER NOT NULL,
                PRIMARY KEY (run_id, author_email)
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS author_spans (
                run_id       VARCHAR NOT NULL,
                author_email VARCHAR NOT NULL,
                span_idx     INTEGER NOT NULL,
                initial_commit VARCHAR NOT NULL,
                since_commit   VARCHAR,
                until_commit   VARCHAR NOT NULL,
                hours          DOUBLE NOT NULL,
                is_initial_span         BOOLEAN NOT NULL,
                is_session_initial_span BOOLEAN NOT NULL,
                PRIMARY KEY (run_id, author_email, span_idx)
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS file_hunks (
                run_id      VARCHAR NOT NULL,
                commit_hash VARCHAR NOT NULL,
                file_idx    INTEGER NOT NULL,
                file_path   VARCHAR NOT NULL,
                hunk_idx    INTEGER NOT NULL,
                change_kind VARCHAR NOT NULL,
                old_line_start      INTEGER NOT NULL,
                old_number_of_lines INTEGER NOT NULL,
                new_line_start      INTEGER NOT NULL,
                new_number_of_lines INTEGER NOT NULL,
                lines_added   INTEGER NOT NULL,
                lines_deleted INTEGER NOT NULL,
                PRIMARY KEY (run_id, commit_hash, file_idx, hunk_idx)
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS hunk_blocks (
                run_id      VARCHAR NOT NULL,
                commit_hash VARCHAR NOT NULL,
                file_idx    INTEGER NOT NULL,
                file_path   VARCHAR NOT NULL,
                hunk_idx    INTEGER NOT NULL,
                block_idx   INTEGER NOT NULL,
                nature      VARCHAR NOT NULL,
                lines_deleted   INTEGER NOT NULL,
                lines_added     INTEGER NOT NULL,
                lines_untouched INTEGER NOT NULL,
                PRIMARY KEY (run_id, commit_hash, file_idx, hunk_idx, block_idx)
            )
        """)

    def save_run(
        self,
        run_id: str,
        repo_path: str,
        summary: RepoSummary,
        hours: HoursReport,
        density: DensityReport,
    ) -> None:
        """Persist all analysis results in a single transaction."""
        now = datetime.now(timezone.utc)

        self._conn.begin()
        try:
            self._conn.execute(
                """INSERT INTO runs VALUES (
                    ?, ?, ?, ?, ?, ?, ?, ?,
                    ?, ?, ?, ?,
                    ?, ?, ?, ?, ?
                )""",
                [
                    run_id,
                    repo_path,
                    now,
                    hours.since,
                    hours.until,
                    hours.total_commits,
                    summary.first_commit_date,
                    summary.last_commit_date,
                    # hours
                    hours.max_commit_diff_minutes,
                    hours.first_commit_addition_minutes,
                    hours.total_hours,
                    len(hours.authors),
                    # density
                    density.total_files,
                    density.total_hunks,
                    density.total_lines_added,
                    density.total_lines_deleted,
                    json.dumps(density.blocks_by_nature),
                ],
            )

            for ah in hours.authors:
                self._conn.execute(
                    "INSERT INTO author_hours VALUES (?, ?, ?, ?, ?)",
                    [run_id, ah.author_email, ah.author_name, ah.hours, ah.commit_count],
                )
                for idx, span in enumerate(ah.spans):
                    self._conn.execute(
                        "INSERT INTO author_spans VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        [run_id, ah.author_email, idx, span.initial_commit,
                         span.since_commit, span.until_commit, span.hours,
                         span.is_initial_span, span.is_session_initial_span],
                    )

            for commit in density.commits:
                # A path can appear twice, e.g. when a file becomes a symlink
                for file_idx, fd in enumerate(commit.files):
                    file_path = fd.file_patch.new_path
                    for hunk_idx, hb in enumerate(fd.hunks):
                        h = hb.hunk
                        self._conn.execute(
                            "INSERT INTO file_hunks VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                            [run_id, commit.commit_hash, file_idx, file_path, hunk_idx,
                             fd.file_patch.change_kind.value,
                             h.old_line_start, h.old_number_of_lines,
                             h.new_line_start, h.new_number_of_lines,
                             h.number_of_lines_added, h.number_of_lines_deleted],
                        )
                        for b in hb.blocks:
                            self._conn.execute(
                                "INSERT INTO hunk_blocks VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                                [run_id, commit.commit_hash, file_idx, file_path, hunk_idx,
                                 b.index, b.nature.value,
                                 len(b.line_numbers_deleted),
                                 len(b.line_numbers_added),
                                 len(b.line_numbers_untouched)],
                            )

            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def list_runs(self) -> list[dict]:
        """Return past runs ordered by created_at descending."""
        result = self._conn.execute(
            """SELECT run_id, repo_path, created_at, total_commits,
                      total_hours, author_count, hunk_count
               FROM runs
               ORDER BY created_at DESC"""
        ).fetchall()
        return [dict(zip(_RUN_SUMMARY_COLUMNS, row)) for row in result]

    def get_run(self, run_id: str) -> dict | None:
        """Return full runs row as dict, or None if not found."""
        result = self._conn.execute(
            "SELECT * FROM runs WHERE run_id = ?", [run_id]
        ).fetchone()
        if result is None:
            return None
        cols = [desc[0] for desc in self._conn.description]
        return dict(zip(cols, result))

    def list_repos(self) -> list[str]:
        """Return distinct repo_path values sorted alphabetically."""
        rows = self._conn.execute(
            "SELECT DISTINCT repo_path FROM runs ORDER BY repo_path"
        ).fetchall()
        return [r[0] for r in rows]

    def list_runs_for_repo(self, repo_path: str) -> list[dict]:
        """Return runs for a specific repo, ordered by created_at descending."""
        result = self._conn.execute(
            """SELECT run_id, repo_path, created_at, total_commits,
                      total_hours, author_count, hunk_count
               FROM runs
               WHERE repo_path = ?
               ORDER BY created_at DESC""",
            [repo_path],
        ).fetchall()
        return [dict(zip(_RUN_SUMMARY_COLUMNS, row)) for row in result]

    def _query_child(self, table: str, run_id: str, order_by: str) -> list[dict]:
        """Generic helper to query a child table by run_id."""
        result = self._conn.execute(
            f"SELECT * FROM {table} WHERE run_id = ? ORDER BY {order_by}", [run_id]  # noqa: S608
        ).fetchall()
        if not result:
            return []
        cols = [desc[0] for desc in self._conn.description]
        return [dict(zip(cols, row)) for row in result]

    def get_author_hours(self, run_id: str) -> list[dict]:
        return self._query_child("author_hours", run_id, "hours, author_email")

    def get_author_spans(self, run_id: str) -> list[dict]:
        return self._query_child("author_spans", run_id, "author_email, span_idx")

    def get_file_hunks(self, run_id: str) -> list[dict]:
        return self._query_child("file_hunks", run_id, "commit_hash, file_idx, hunk_idx")

    def get_hunk_blocks(self, run_id: str) -> list[dict]:
        return self._query_child(
            "hunk_blocks", run_id, "commit_hash, file_idx, hunk_idx, block_idx",
        )

    def close(self) -> None:
        """Close the DuckDB connection."""
        self._conn.close()
