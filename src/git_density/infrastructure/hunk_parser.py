"""Split unified-diff text into hunks and classify hunk body lines.

Functions:
- split_patch: raw patch text for one file -> Hunk records (header + body)
- classify_lines: hunk body -> ClassifiedLine per physical line
- compute_lines_added_deleted: fill a hunk's added/deleted line numbers
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterator

from git_density.domain.models import ClassifiedLine, Hunk, LineType


# Either start may be omitted ("@@ -4,7 +8 @@"); the counts are always present.
HUNK_HEADER_RE = re.compile(
    r"^@@\s+-(?:(?P<old_start>[0-9]+),)?(?P<old_num>[0-9]+)"
    r"\s+\+(?:(?P<new_start>[0-9]+),)?(?P<new_num>[0-9]+)\s+@@.*$",
    re.MULTILINE,
)


def _group_int(match: re.Match, name: str) -> int:
    value = match.group(name)
    return int(value) if value is not None else 0


def split_patch(patch: str) -> Iterator[Hunk]:
    """Yield one Hunk per ``@@`` header found in *patch*.

    A hunk's body is the text between the end of its header line and the
    start of the next header (or the end of input), with a single leading
    newline removed. Text before the first header is ignored. Patches
    without any recognizable header yield nothing.
    """
    matches = list(HUNK_HEADER_RE.finditer(patch))
    for i, m in enumerate(matches):
        body_end = matches[i + 1].start() if i + 1 < len(matches) else len(patch)
        body = patch[m.end():body_end]
        if body.startswith("\n"):
            body = body[1:]
        yield Hunk(
            old_line_start=_group_int(m, "old_start"),
            old_number_of_lines=_group_int(m, "old_num"),
            new_line_start=_group_int(m, "new_start"),
            new_number_of_lines=_group_int(m, "new_num"),
            patch=body,
        )


def _body_lines(body: str) -> list[str]:
    lines = body.split("\n")
    # A trailing newline terminates the last line, it does not open a new one.
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def classify_lines(body: str, old_start: int, new_start: int) -> Iterator[ClassifiedLine]:
    """Walk a hunk body and number every line.

    Deleted lines consume an old-file number, added lines a new-file number,
    and every other line (including empty ones) is context and consumes both.
    *old_start* and *new_start* must be the hunk's final header values.
    """
    idx_old = old_start
    idx_new = new_start
    for line in _body_lines(body):
        first = line[:1]
        if first == "-":
            yield ClassifiedLine(line, LineType.DELETED, idx_old, None)
            idx_old += 1
        elif first == "+":
            yield ClassifiedLine(line, LineType.ADDED, None, idx_new)
            idx_new += 1
        else:
            yield ClassifiedLine(line, LineType.CONTEXT, idx_old, idx_new)
            idx_old += 1
            idx_new += 1


def hunk_lines(hunk: Hunk) -> Iterator[ClassifiedLine]:
    return classify_lines(hunk.patch, hunk.old_line_start, hunk.new_line_start)


def compute_lines_added_deleted(hunk: Hunk) -> Hunk:
    """Return a copy of *hunk* with its added/deleted line numbers filled in."""
    added: list[int] = []
    deleted: list[int] = []
    for line in hunk_lines(hunk):
        if line.line_type is LineType.ADDED:
            added.append(line.new_line_number)
        elif line.line_type is LineType.DELETED:
            deleted.append(line.old_line_number)
    return dataclasses.replace(
        hunk, lines_added=tuple(added), lines_deleted=tuple(deleted),
    )
