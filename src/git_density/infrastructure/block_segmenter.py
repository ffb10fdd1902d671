"""Group a hunk's classified lines into blocks of a single nature."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from git_density.domain.models import Block, BlockNature, ClassifiedLine, LineType


def _nature_of(lines: list[ClassifiedLine]) -> BlockNature:
    kinds = {ln.line_type for ln in lines}
    if kinds == {LineType.CONTEXT}:
        return BlockNature.UNTOUCHED
    if kinds == {LineType.DELETED}:
        return BlockNature.DELETED_ONLY
    if kinds == {LineType.ADDED}:
        return BlockNature.ADDED_ONLY
    return BlockNature.REPLACED


def _starts_new_block(prev: ClassifiedLine, line: ClassifiedLine) -> bool:
    if prev.is_context != line.is_context:
        return True
    # Within a change run, deletions precede additions. A deletion after an
    # addition therefore opens the next replace operation.
    return prev.line_type is LineType.ADDED and line.line_type is LineType.DELETED


def segment_blocks(lines: Iterable[ClassifiedLine]) -> Iterator[Block]:
    """Yield blocks that partition *lines* in order.

    Boundaries fall wherever the line category flips between context and
    change, and where an added line is followed by a deleted one.
    """
    current: list[ClassifiedLine] = []
    index = 0
    for line in lines:
        if current and _starts_new_block(current[-1], line):
            yield Block(_nature_of(current), index, tuple(current))
            index += 1
            current = []
        current.append(line)
    if current:
        yield Block(_nature_of(current), index, tuple(current))
