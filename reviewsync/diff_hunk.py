"""Unified diff parsing.

Turns the `patch` text of one file (the `@@ -a,b +c,d @@` format used by
git and by GitHub's `pulls/{pr}/files` and review comment `diff_hunk`
fields) into DiffHunk models.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Iterable
from typing import Literal

from .models import DiffChangeType, DiffHunk, DiffLine

HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_length>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_length>\d+))? @@"
)

# Lines git prints ahead of the first hunk of a file.
FILE_PREAMBLE_PREFIXES = (
    "diff --git ",
    "index ",
    "--- ",
    "+++ ",
    "new file mode ",
    "deleted file mode ",
    "old mode ",
    "new mode ",
    "similarity index ",
    "dissimilarity index ",
    "rename from ",
    "rename to ",
    "copy from ",
    "copy to ",
    "Binary files ",
)

MARKER_TYPES = {
    " ": DiffChangeType.CONTEXT,
    "+": DiffChangeType.ADD,
    "-": DiffChangeType.DELETE,
}


class MalformedDiffError(ValueError):
    """Raised when diff text cannot be parsed into hunks.

    Position arithmetic for the whole file is unreliable after this, so the
    error is never swallowed by the parser.
    """


class _HunkBuilder:
    """Accumulates lines for one hunk while tracking old/new counters."""

    def __init__(self, old_start: int, old_length: int, new_start: int, new_length: int):
        self.old_start = old_start
        self.old_length = old_length
        self.new_start = new_start
        self.new_length = new_length
        self.old_line = old_start
        self.new_line = new_start
        self.lines: list[DiffLine] = []

    def add(self, change_type: DiffChangeType, text: str) -> None:
        if change_type == DiffChangeType.CONTEXT:
            line = DiffLine(
                type=change_type,
                text=text,
                old_line_number=self.old_line,
                new_line_number=self.new_line,
            )
            self.old_line += 1
            self.new_line += 1
        elif change_type == DiffChangeType.DELETE:
            line = DiffLine(type=change_type, text=text, old_line_number=self.old_line)
            self.old_line += 1
        else:
            line = DiffLine(type=change_type, text=text, new_line_number=self.new_line)
            self.new_line += 1
        self.lines.append(line)

    @property
    def expects_more(self) -> bool:
        """True while the header's declared lengths are not yet consumed."""
        return (
            self.old_line < self.old_start + self.old_length
            or self.new_line < self.new_start + self.new_length
        )

    def build(self) -> DiffHunk:
        return DiffHunk(
            old_start=self.old_start,
            old_length=self.old_length,
            new_start=self.new_start,
            new_length=self.new_length,
            lines=tuple(self.lines),
        )


def parse_hunk_header(line: str) -> tuple[int, int, int, int]:
    """Parse `@@ -a[,b] +c[,d] @@` into (a, b, c, d). Omitted lengths are 1."""
    m = HUNK_HEADER_RE.match(line)
    if not m:
        raise MalformedDiffError(f"Unrecognized hunk header: {line!r}")

    old_length = m.group("old_length")
    new_length = m.group("new_length")
    return (
        int(m.group("old_start")),
        int(old_length) if old_length is not None else 1,
        int(m.group("new_start")),
        int(new_length) if new_length is not None else 1,
    )


def parse_diff_hunks(patch: str) -> list[DiffHunk]:
    """Parse one file's unified diff into hunks.

    Git file headers before the first hunk are skipped, as are
    `\\ No newline at end of file` markers. An empty line inside a hunk is
    read as a blank context line, since some tools strip the leading space;
    past the hunk's declared lengths it is ignored.

    Raises:
        MalformedDiffError: on a bad `@@` header, a line without a
            recognized marker, or hunk content before any header.
    """
    hunks: list[DiffHunk] = []
    current: _HunkBuilder | None = None

    for raw in (patch or "").splitlines():
        if raw.startswith("@@"):
            if current is not None:
                hunks.append(current.build())
            current = _HunkBuilder(*parse_hunk_header(raw))
            continue

        if current is None:
            if not raw or raw.startswith(FILE_PREAMBLE_PREFIXES):
                continue
            raise MalformedDiffError(f"Diff content before first hunk header: {raw!r}")

        if raw.startswith("\\"):
            # "\ No newline at end of file"
            continue

        if not raw:
            if current.expects_more:
                current.add(DiffChangeType.CONTEXT, "")
            continue

        change_type = MARKER_TYPES.get(raw[0])
        if change_type is None:
            raise MalformedDiffError(f"Unrecognized diff line marker: {raw!r}")
        current.add(change_type, raw[1:])

    if current is not None:
        hunks.append(current.build())

    return hunks


@functools.lru_cache(maxsize=512)
def parse_patch_cached(patch: str) -> tuple[DiffHunk, ...]:
    """Memoized parse_diff_hunks. Hunks are immutable, so sharing is safe."""
    return tuple(parse_diff_hunks(patch))


def format_hunk_header(hunk: DiffHunk) -> str:
    """Serialize a hunk's header in `@@ -a,b +c,d @@` form."""
    return f"@@ -{hunk.old_start},{hunk.old_length} +{hunk.new_start},{hunk.new_length} @@"


def format_hunks(hunks: Iterable[DiffHunk]) -> str:
    """Serialize hunks back into unified diff text."""
    out: list[str] = []
    for hunk in hunks:
        out.append(format_hunk_header(hunk))
        out.extend(line.raw for line in hunk.lines)
    return "\n".join(out)


def get_side_content(hunks: Iterable[DiffHunk], side: Literal["base", "head"]) -> str:
    """Rebuild the base or head text covered by the hunks.

    Only the lines present in the diff are available, so for a partial diff
    this is the concatenation of the visible regions, not the whole file.
    """
    skip = DiffChangeType.ADD if side == "base" else DiffChangeType.DELETE
    return "\n".join(
        line.text for hunk in hunks for line in hunk.lines if line.type != skip
    )
