import os
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

BASE = datetime(2024, 6, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository."""
    subprocess.run(
        ["git", "init", str(tmp_path)],
        capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "-C", str(tmp_path), "config", "user.name", "Test User"],
        capture_output=True, check=True,
    )
    subprocess.run(
        ["git", "-C", str(tmp_path), "config", "user.email", "test@example.com"],
        capture_output=True, check=True,
    )
    return tmp_path


def git(repo: Path, *args: str, env: dict | None = None) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        capture_output=True, check=True, text=True, env=env,
    )
    return result.stdout.strip()


def commit_all(
    repo: Path,
    message: str,
    date: datetime = BASE,
    author_name: str = "Test User",
    author_email: str = "test@example.com",
) -> str:
    """Stage everything and commit at *date*; returns the commit hash."""
    date_str = date.strftime("%Y-%m-%dT%H:%M:%S %z")
    git(repo, "add", "-A")
    env = {
        **os.environ,
        "GIT_AUTHOR_DATE": date_str,
        "GIT_COMMITTER_DATE": date_str,
        "GIT_AUTHOR_NAME": author_name,
        "GIT_AUTHOR_EMAIL": author_email,
        "GIT_COMMITTER_NAME": author_name,
        "GIT_COMMITTER_EMAIL": author_email,
    }
    git(repo, "commit", "-m", message, env=env)
    return git(repo, "rev-parse", "HEAD")


def commit_file(
    repo: Path,
    file_path: str,
    content: str,
    message: str,
    date: datetime = BASE,
    author_name: str = "Test User",
    author_email: str = "test@example.com",
) -> str:
    """Write *content* to *file_path* and commit it at *date*."""
    full_path = repo / file_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    full_path.write_text(content)
    return commit_all(repo, message, date, author_name, author_email)


@pytest.fixture
def session_repo(tmp_git_repo: Path) -> Path:
    """Two authors, five commits on one day.

    Alice: 09:00, 09:30, 10:00, 14:00  -> 0.5 + 0.5 + 2.0 (new session) = 3.0h
    Bob:   09:59 (single commit)       -> 0.0h
    """
    alice = {"author_name": "Alice", "author_email": "alice@example.com"}
    bob = {"author_name": "Bob", "author_email": "bob@example.com"}
    commit_file(tmp_git_repo, "a.py", "one\ntwo\nthree\n", "Alice: create a",
                date=BASE, **alice)
    commit_file(tmp_git_repo, "a.py", "one\nTWO\nthree\n", "Alice: edit a",
                date=BASE + timedelta(minutes=30), **alice)
    commit_file(tmp_git_repo, "b.py", "print('b')\n", "Bob: create b",
                date=BASE + timedelta(minutes=59), **bob)
    commit_file(tmp_git_repo, "a.py", "one\nTWO\nthree\nfour\n", "Alice: append a",
                date=BASE + timedelta(minutes=60), **alice)
    commit_file(tmp_git_repo, "a.py", "TWO\nthree\nfour\n", "Alice: trim a",
                date=BASE + timedelta(hours=5), **alice)
    return tmp_git_repo


@pytest.fixture
def file_ops_repo(tmp_git_repo: Path) -> dict:
    """Commits covering empty add, pure rename and empty delete."""
    hashes = {}
    hashes["init"] = commit_file(tmp_git_repo, "keep.txt", "x\n", "init", date=BASE)
    (tmp_git_repo / "empty.txt").write_text("")
    hashes["add_empty"] = commit_all(tmp_git_repo, "add empty", BASE + timedelta(minutes=1))
    git(tmp_git_repo, "mv", "keep.txt", "moved.txt")
    hashes["rename"] = commit_all(tmp_git_repo, "rename", BASE + timedelta(minutes=2))
    git(tmp_git_repo, "rm", "-q", "empty.txt")
    hashes["delete_empty"] = commit_all(tmp_git_repo, "delete empty", BASE + timedelta(minutes=3))
    return {"repo": tmp_git_repo, **hashes}
