import argparse
import logging
import sys

from git_density.application.use_cases import (
    analyze_commit_density,
    analyze_density,
    analyze_hours,
    get_repo_summary,
    parse_time_bound,
    summarize_density,
)
from git_density.infrastructure.configuration import (
    HoursTypeConfiguration,
    load_configuration,
)
from git_density.infrastructure.git_cli_reader import GitCliReader
from git_density.infrastructure.record_export import (
    density_records,
    line_records,
    span_record,
    write_records,
)


def _parse_bound(value: str):
    """argparse adapter for 'yyyy-MM-dd HH:mm' bounds."""
    try:
        return parse_time_bound(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _parse_minutes(value: str) -> int:
    try:
        minutes = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid number of minutes '{value}'") from None
    if minutes < 0:
        raise argparse.ArgumentTypeError(f"Minutes must not be negative: {minutes}")
    return minutes


def _error_exit(msg: str) -> None:
    """Print error message to stderr and exit with code 1."""
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def _header_fmt(fmt_spec: str) -> str:
    """Extract header-safe format from a value format spec, e.g. ">8.2f" → ">8"."""
    stripped = fmt_spec.rstrip("df%")
    dot = stripped.find(".")
    if dot != -1:
        stripped = stripped[:dot]
    return stripped


def _print_table(rows, columns, limit=20, suffix="rows") -> None:
    """Generic table printer.

    Args:
        rows: list of objects to print.
        columns: list of (header, format_spec, value_fn) tuples.
        limit: max rows to print.
        suffix: word used in "... and N more {suffix}" message.
    """
    if not rows:
        return

    header_line = "  ".join(f"{h:{_header_fmt(spec)}}" for h, spec, _ in columns)
    print(header_line)
    print("-" * len(header_line))

    for r in rows[:limit]:
        print("  ".join(f"{fn(r):{spec}}" for _h, spec, fn in columns))

    if len(rows) > limit:
        print(f"  ... and {len(rows) - limit} more {suffix}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="analyze-density",
        description="Change structure and commit-time estimation from git history",
    )
    parser.add_argument(
        "repo_path", nargs="?", default=None,
        help="Path to a local git repository",
    )
    parser.add_argument(
        "--since", type=_parse_bound, metavar="'yyyy-MM-dd HH:mm'",
        help="Only consider commits committed at or after this time (UTC)",
    )
    parser.add_argument(
        "--until", type=_parse_bound, metavar="'yyyy-MM-dd HH:mm'",
        help="Only consider commits committed before this time (UTC)",
    )
    parser.add_argument(
        "--max-diff", dest="max_diff", type=_parse_minutes, metavar="MINUTES",
        help="Session-break threshold in minutes (default: 120)",
    )
    parser.add_argument(
        "--first-add", dest="first_add", type=_parse_minutes, metavar="MINUTES",
        help="Credit for a session's first commit in minutes (default: 120)",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="JSON configuration file with hoursTypes",
    )
    parser.add_argument(
        "--spans", action="store_true",
        help="Show commit-to-commit spans per author",
    )
    parser.add_argument(
        "--density", action="store_true",
        help="Show hunk/block analysis for all commits in the window",
    )
    parser.add_argument(
        "--commit", metavar="REF",
        help="Show hunk/block analysis for a single commit",
    )
    parser.add_argument(
        "--export", metavar="PATH",
        help="Write records to a .json or .csv file",
    )
    parser.add_argument(
        "--lines", action="store_true",
        help="With --export, write one record per classified line instead of per block",
    )
    parser.add_argument(
        "--all", dest="run_all", action="store_true",
        help="Run hours and density analysis and store results in DuckDB",
    )
    parser.add_argument(
        "--db", metavar="PATH", default=None,
        help="DuckDB file path (default: ~/.git-density/runs.db)",
    )
    parser.add_argument(
        "--list-runs", action="store_true",
        help="Show past runs from DuckDB, then exit",
    )
    parser.add_argument(
        "--serve", action="store_true",
        help="Launch web dashboard (requires pip install git-density[web])",
    )
    parser.add_argument(
        "--port", type=int, default=8000, metavar="PORT",
        help="API port for --serve (Streamlit uses PORT+1, default: 8000)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    return parser


def _hours_types(args, config) -> list[HoursTypeConfiguration]:
    if args.max_diff is None and args.first_add is None:
        return config.hours_types
    base = config.hours_types[0]
    return [HoursTypeConfiguration(
        max_diff=base.max_diff if args.max_diff is None else args.max_diff,
        first_commit_add=base.first_commit_add if args.first_add is None else args.first_add,
    )]


def main() -> None:
    args = _build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_configuration(args.config)
    except ValueError as e:
        _error_exit(str(e))
    db_path = args.db or config.db_path

    # Handle --list-runs early (no repo_path required)
    if args.list_runs:
        from git_density.infrastructure.run_store import RunStore

        store = RunStore(db_path=db_path)
        runs = store.list_runs()
        store.close()
        _print_runs(runs)
        return

    # Handle --serve early (no repo_path required)
    if args.serve:
        try:
            from git_density.web.server import launch
        except ImportError:
            _error_exit(
                "web dependencies not installed. "
                "Run: pip install git-density[web]"
            )
        launch(db_path=db_path, api_port=args.port)
        return

    if args.repo_path is None:
        _error_exit("repo_path is required")
    if args.since and args.until and args.since >= args.until:
        _error_exit("--since must be before --until")
    if args.commit and args.run_all:
        _error_exit("--commit cannot be combined with --all")

    try:
        git_reader = GitCliReader(args.repo_path)
    except ValueError as e:
        _error_exit(str(e))

    try:
        summary = get_repo_summary(git_reader, args.repo_path)
    except Exception as e:
        _error_exit(f"reading repository: {e}")

    print(f"Repository:   {summary.repo_path}")
    print(f"Commits:      {summary.commit_count}")
    if summary.first_commit_date:
        print(f"First commit: {summary.first_commit_date.strftime('%Y-%m-%d %H:%M:%S %z')}")
        print(f"Last commit:  {summary.last_commit_date.strftime('%Y-%m-%d %H:%M:%S %z')}")
    else:
        print("No commits found.")
        return

    hours_types = _hours_types(args, config)

    if args.run_all:
        _run_all(args, git_reader, summary, hours_types[0], db_path)
        return

    if args.commit:
        try:
            commit_hash = git_reader.resolve_ref(args.commit)
            commit = analyze_commit_density(git_reader, commit_hash)
        except (ValueError, RuntimeError) as e:
            _error_exit(str(e))
        density = summarize_density(args.repo_path, [commit])
        print()
        _print_density(density)
        if args.export:
            _export(_density_rows(args, density), args.export)
        return

    reports = []
    for ht in hours_types:
        report = analyze_hours(
            git_reader, args.repo_path,
            max_commit_diff_minutes=ht.max_diff,
            first_commit_addition_minutes=ht.first_commit_add,
            since=args.since, until=args.until,
        )
        reports.append(report)
        print()
        _print_hours(report)
        if args.spans:
            print()
            _print_spans(report)

    density = None
    if args.density:
        density = analyze_density(
            git_reader, args.repo_path, since=args.since, until=args.until,
        )
        print()
        _print_density(density)

    if args.export:
        if density is not None:
            _export(_density_rows(args, density), args.export)
        else:
            _export(_span_rows(reports[0]), args.export)


def _density_rows(args, density) -> list[dict]:
    if args.lines:
        return line_records(density)
    return density_records(density)


def _span_rows(report) -> list[dict]:
    return [
        {"AuthorEmail": a.author_email, **span_record(s)}
        for a in report.authors
        for s in a.spans
    ]


def _export(records, path: str) -> None:
    try:
        count = write_records(records, path)
    except (ValueError, OSError) as e:
        _error_exit(f"exporting records: {e}")
    print(f"\nExported {count} records to {path}")


def _run_all(args, git_reader, summary, hours_type, db_path) -> None:
    """Run hours and density analysis, print all output, store in DuckDB."""
    import uuid

    from git_density.infrastructure.run_store import RunStore

    hours_report = analyze_hours(
        git_reader, args.repo_path,
        max_commit_diff_minutes=hours_type.max_diff,
        first_commit_addition_minutes=hours_type.first_commit_add,
        since=args.since, until=args.until,
    )
    print()
    _print_hours(hours_report)
    if args.spans:
        print()
        _print_spans(hours_report)

    density = analyze_density(
        git_reader, args.repo_path, since=args.since, until=args.until,
    )
    print()
    _print_density(density)

    run_id = str(uuid.uuid4())
    store = RunStore(db_path=db_path)
    try:
        store.save_run(run_id, args.repo_path, summary, hours_report, density)
    finally:
        store.close()
    print(f"\nRun stored: {run_id}")

    if args.export:
        _export(_density_rows(args, density), args.export)


def _print_hours(report) -> None:
    print(
        f"--- Hours Estimate (max diff {report.max_commit_diff_minutes} min, "
        f"first commit +{report.first_commit_addition_minutes} min, "
        f"{report.total_commits} commits) ---\n"
    )
    print(f"Total hours:  {report.total_hours:.2f}")
    print(f"Authors:      {len(report.authors)}")
    print()

    if not report.authors:
        print("No commits found in this window.")
        return

    _print_table(
        report.authors,
        [
            ("Author", "<40", lambda a: a.author_email[:40]),
            ("Commits", ">7", lambda a: a.commit_count),
            ("Hours", ">8.2f", lambda a: a.hours),
        ],
        suffix="authors",
    )


def _print_spans(report) -> None:
    print("--- Author Spans ---\n")
    for author in report.authors:
        print(f"{author.author_email}:")
        for s in author.spans:
            since = s.since_commit[:10] if s.since_commit else "(initial)"
            flags = []
            if s.is_initial_span:
                flags.append("initial")
            if s.is_session_initial_span:
                flags.append("session-start")
            print(
                f"  {since:<10} -> {s.until_commit[:10]:<10}  "
                f"{s.hours:>6.2f}h  {', '.join(flags)}"
            )


def _print_density(report) -> None:
    print(
        f"--- Change Density ({len(report.commits)} commits, "
        f"{report.total_files} files, {report.total_hunks} hunks) ---\n"
    )
    print(f"Lines added:    {report.total_lines_added}")
    print(f"Lines deleted:  {report.total_lines_deleted}")
    print()
    print("Blocks by nature:")
    for nature, count in report.blocks_by_nature.items():
        print(f"  {nature:<12} {count:>6}")

    rows = [
        (c.commit_hash, fd)
        for c in report.commits
        for fd in c.files
    ]
    if not rows:
        return
    print()
    _print_table(
        rows,
        [
            ("Commit", "<10", lambda r: r[0][:10]),
            ("File", "<50", lambda r: r[1].file_patch.new_path[-50:]),
            ("Kind", "<18", lambda r: r[1].file_patch.change_kind.value),
            ("Hunks", ">5", lambda r: len(r[1].hunks)),
            ("Blocks", ">6", lambda r: r[1].block_count),
            ("Added", ">5", lambda r: r[1].file_patch.lines_added),
            ("Deleted", ">7", lambda r: r[1].file_patch.lines_deleted),
        ],
        suffix="files",
    )


def _print_runs(runs) -> None:
    if not runs:
        print("No runs found.")
        return
    print(f"{'Run ID':<36}  {'Repository':<30}  {'Created':<19}  {'Commits':>7}  {'Hours':>8}")
    print("-" * 108)
    for r in runs:
        created = str(r["created_at"])[:19]
        print(
            f"{r['run_id']:<36}  {r['repo_path'][-30:]:<30}  {created:<19}  "
            f"{r['total_commits']:>7}  {r['total_hours']:>8.2f}"
        )
