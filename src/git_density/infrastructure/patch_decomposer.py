"""Turn one changed file's patch into hunks, classified lines and blocks."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator

from git_density.domain.models import (
    FileDecomposition,
    FilePatch,
    Hunk,
    HunkBlocks,
)
from git_density.infrastructure.block_segmenter import segment_blocks
from git_density.infrastructure.hunk_parser import (
    compute_lines_added_deleted,
    hunk_lines,
    split_patch,
)

logger = logging.getLogger(__name__)

_INVALID_PATH_CHARS = frozenset("\0")


def _combine(root: str, relative: str) -> str:
    for path in (root, relative):
        bad = _INVALID_PATH_CHARS.intersection(path)
        if bad:
            raise ValueError(f"Illegal characters in path: {path!r}")
    return os.path.abspath(os.path.join(root, relative))


def _trim_path_sep(path: str) -> str:
    return path.strip("/\\")


def resolve_hunk_paths(
    source_dir: str, target_dir: str, old_path: str, new_path: str,
) -> tuple[str, str, Exception | None]:
    """Combine the root directories with a file's old/new relative paths.

    Returns (source_path, target_path, error). When combining fails, the
    paths are concatenated by hand and the causing exception is returned.
    """
    try:
        return _combine(source_dir, old_path), _combine(target_dir, new_path), None
    except ValueError as e:
        source = _trim_path_sep(source_dir) + os.sep + _trim_path_sep(old_path)
        target = _trim_path_sep(target_dir) + os.sep + _trim_path_sep(new_path)
        return source, target, e


def _resolve_or_warn(
    file_patch: FilePatch, source_dir: str, target_dir: str, log: logging.Logger,
) -> tuple[str, str]:
    source, target, error = resolve_hunk_paths(
        source_dir, target_dir, file_patch.old_path, file_patch.new_path,
    )
    if error is not None:
        log.warning(
            "Obtaining the paths for a hunk failed, returning manually "
            "concatenated paths (%s). source_dir: %s, target_dir: %s, "
            "old_path: %r, new_path: %r",
            error, source_dir, target_dir, file_patch.old_path, file_patch.new_path,
        )
    return source, target


def hunks_for_patch(
    file_patch: FilePatch,
    source_dir: str | None = None,
    target_dir: str | None = None,
    log: logging.Logger | None = None,
) -> Iterator[Hunk]:
    """Yield the hunks of *file_patch* with resolved paths and line numbers.

    Files without an actual content diff (new empty file, pure rename,
    deleted empty file) yield exactly one empty hunk.
    """
    log = log or logger
    if source_dir is None:
        source_dir = tempfile.gettempdir()
    if target_dir is None:
        target_dir = tempfile.gettempdir()

    source, target = _resolve_or_warn(file_patch, source_dir, target_dir, log)

    if not file_patch.change_kind.has_content_diff:
        yield Hunk(0, 0, 0, 0, "", source_file_path=source, target_file_path=target)
        return

    found = False
    for hunk in split_patch(file_patch.patch):
        found = True
        hunk = Hunk(
            hunk.old_line_start, hunk.old_number_of_lines,
            hunk.new_line_start, hunk.new_number_of_lines,
            hunk.patch,
            source_file_path=source,
            target_file_path=target,
        )
        # Line numbers depend on the final start values set above.
        yield compute_lines_added_deleted(hunk)

    if not found:
        log.debug(
            "No hunk header found in %s patch for %s",
            file_patch.change_kind.value, file_patch.new_path,
        )


def decompose_patch(
    file_patch: FilePatch,
    source_dir: str | None = None,
    target_dir: str | None = None,
    log: logging.Logger | None = None,
) -> FileDecomposition:
    """Run split -> classify -> segment for one file."""
    hunks = [
        HunkBlocks(hunk=h, blocks=list(segment_blocks(hunk_lines(h))))
        for h in hunks_for_patch(file_patch, source_dir, target_dir, log)
    ]
    return FileDecomposition(file_patch=file_patch, hunks=hunks)
