from __future__ import annotations

import dataclasses
import subprocess
from datetime import datetime
from pathlib import Path

from git_density.domain.models import AuthorCommit, ChangeKind, CommitInfo, FilePatch

_FIELD_SEP = "\x1f"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%aI", "%cI", "%aN", "%aE"])
_INFO_FORMAT = _FIELD_SEP.join(["%H", "%P", "%aN", "%aE", "%aI", "%cN", "%cE", "%cI", "%B"])
_DIFF_OPTS = ("-M", "--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/")


class GitCliReader:
    def __init__(self, repo_path: str) -> None:
        path = Path(repo_path).resolve()
        if not (path / ".git").is_dir():
            raise ValueError(f"Not a git repository: {path}")
        self._path = str(path)

    def _run(self, *args: str, strip: bool = True) -> str:
        result = subprocess.run(
            ["git", "-C", self._path, "-c", "core.quotepath=false", *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        if result.returncode != 0:
            raise RuntimeError(result.stderr.strip())
        return result.stdout.strip() if strip else result.stdout

    def commit_count(self) -> int:
        try:
            output = self._run("rev-list", "--count", "HEAD")
        except RuntimeError:
            return 0
        return int(output)

    def first_commit_date(self) -> datetime | None:
        try:
            output = self._run("log", "--format=%aI")
        except RuntimeError:
            return None
        if not output:
            return None
        # Last line is the earliest commit (git log outputs newest first)
        return datetime.fromisoformat(output.splitlines()[-1])

    def last_commit_date(self) -> datetime | None:
        try:
            output = self._run("log", "--format=%aI", "--max-count=1")
        except RuntimeError:
            return None
        if not output:
            return None
        return datetime.fromisoformat(output)

    def resolve_ref(self, ref: str) -> str:
        """Resolve a git ref (commit, tag, branch) to a full commit hash."""
        try:
            output = self._run("rev-parse", "--verify", f"{ref}^{{commit}}")
        except RuntimeError:
            raise ValueError(f"Cannot resolve ref: {ref}") from None
        if not output:
            raise ValueError(f"Cannot resolve ref: {ref}")
        return output

    def author_commits(
        self, since: datetime | None = None, until: datetime | None = None
    ) -> list[AuthorCommit]:
        """Commits whose committer date lies in [since, until), oldest first."""
        try:
            output = self._run("log", "--reverse", f"--format={_LOG_FORMAT}")
        except RuntimeError:
            return []
        if not output:
            return []
        commits = _parse_log(output)
        return [
            c for c in commits
            if (since is None or c.committer_date >= since)
            and (until is None or c.committer_date < until)
        ]

    def commit_hashes(
        self, since: datetime | None = None, until: datetime | None = None
    ) -> list[str]:
        return [c.commit_hash for c in self.author_commits(since, until)]

    def commit_info(self, commit_hash: str) -> CommitInfo:
        """Parents, identities and timestamps of one commit."""
        info = _parse_commit_info(
            self._run("show", "-s", f"--format={_INFO_FORMAT}", commit_hash)
        )
        if info.parent_hashes:
            parent_date = self._run("show", "-s", "--format=%cI", info.parent_hashes[0])
            info = dataclasses.replace(
                info, parent_committer_date=datetime.fromisoformat(parent_date),
            )
        return info

    def commit_patches(self, commit_hash: str) -> list[FilePatch]:
        """Per-file patches of a commit against its first parent."""
        revs = self._run("rev-list", "--parents", "-n", "1", commit_hash).split()
        if len(revs) > 1:
            output = self._run("diff", *_DIFF_OPTS, revs[1], revs[0], strip=False)
        else:
            output = self._run(
                "diff-tree", "-p", "--root", "--no-commit-id", *_DIFF_OPTS,
                commit_hash, strip=False,
            )
        return _parse_patch_output(output)


def _parse_log(output: str) -> list[AuthorCommit]:
    commits: list[AuthorCommit] = []
    for line in output.splitlines():
        parts = line.split(_FIELD_SEP)
        if len(parts) != 5:
            continue
        commit_hash, author_date, committer_date, name, email = parts
        commits.append(
            AuthorCommit(
                commit_hash=commit_hash,
                author_name=name,
                author_email=email,
                author_date=datetime.fromisoformat(author_date),
                committer_date=datetime.fromisoformat(committer_date),
            )
        )
    return commits


def _parse_commit_info(output: str) -> CommitInfo:
    parts = output.split(_FIELD_SEP, 8)
    if len(parts) != 9:
        raise RuntimeError(f"Unexpected commit format: {output[:80]!r}")
    (commit_hash, parents, author_name, author_email, author_date,
     committer_name, committer_email, committer_date, message) = parts
    return CommitInfo(
        commit_hash=commit_hash,
        parent_hashes=tuple(parents.split()),
        author_name=author_name,
        author_email=author_email,
        author_date=datetime.fromisoformat(author_date),
        committer_name=committer_name,
        committer_email=committer_email,
        committer_date=datetime.fromisoformat(committer_date),
        message=message.strip(),
    )


# ---------------------------------------------------------------------------
# Unified diff output -> FilePatch
# ---------------------------------------------------------------------------

def _strip_side_prefix(path: str) -> str | None:
    """'a/src/x.py' -> 'src/x.py'; '/dev/null' -> None."""
    path = path.rstrip("\t")
    if path == "/dev/null":
        return None
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


def _paths_from_header(header: str) -> tuple[str, str]:
    rest = header[len("diff --git "):]
    # Without a rename both sides are equal: "a/<p> b/<p>"
    n = (len(rest) - 5) // 2
    if rest.startswith("a/") and rest[2 + n:2 + n + 3] == " b/" and rest[2:2 + n] == rest[5 + n:]:
        return rest[2:2 + n], rest[5 + n:]
    old, _, new = rest.partition(" b/")
    return old[2:] if old.startswith("a/") else old, new


def _parse_section(lines: list[str]) -> FilePatch:
    old_path: str | None = None
    new_path: str | None = None
    status = ChangeKind.MODIFIED
    body_start = len(lines)

    for i, line in enumerate(lines[1:], start=1):
        if line.startswith("@@"):
            body_start = i
            break
        if line.startswith("new file mode"):
            status = ChangeKind.ADDED
        elif line.startswith("deleted file mode"):
            status = ChangeKind.DELETED
        elif line.startswith("rename from "):
            old_path = line[len("rename from "):]
            status = ChangeKind.RENAMED
        elif line.startswith("rename to "):
            new_path = line[len("rename to "):]
        elif line.startswith("Binary files ") or line == "GIT binary patch":
            # No line-level content; classified like an empty file
            break
        elif line.startswith("--- "):
            old_path = _strip_side_prefix(line[4:]) or old_path
        elif line.startswith("+++ "):
            new_path = _strip_side_prefix(line[4:]) or new_path

    header_old, header_new = _paths_from_header(lines[0])
    new_path = new_path or old_path or header_new
    old_path = old_path or new_path or header_old

    # "\ No newline at end of file" markers are not part of either file
    body = [ln for ln in lines[body_start:] if not ln.startswith("\\")]
    while body and body[-1] == "":
        body.pop()
    added = sum(1 for ln in body if ln.startswith("+"))
    deleted = sum(1 for ln in body if ln.startswith("-"))
    patch = "\n".join(body) + "\n" if body else ""

    return FilePatch(
        old_path=old_path,
        new_path=new_path,
        change_kind=ChangeKind.classify(status, added, deleted),
        patch=patch,
        lines_added=added,
        lines_deleted=deleted,
    )


def _parse_patch_output(output: str) -> list[FilePatch]:
    patches: list[FilePatch] = []
    section: list[str] | None = None

    for line in output.split("\n"):
        if line.startswith("diff --git "):
            if section is not None:
                patches.append(_parse_section(section))
            section = [line]
        elif section is not None:
            section.append(line)

    if section is not None:
        patches.append(_parse_section(section))
    return patches
