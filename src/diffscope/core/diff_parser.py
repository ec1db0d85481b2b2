"""Unified diff parsing into per-file line records."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)

FILE_HEADER_PREFIX = 'diff --git'
FILE_HEADER_PATTERN = re.compile(r'diff --git a/(.+) b/(.+)')
HUNK_HEADER_PATTERN = re.compile(r'@@ -(\d+),?(\d*) \+(\d+),?(\d*) @@')


class LineKind(str, Enum):
    """Kind of a line inside a hunk."""
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


@dataclass
class DiffLine:
    """A single line of a file diff."""
    kind: LineKind
    content: str
    new_line_number: Optional[int] = None
    old_line_number: Optional[int] = None
    is_hunk_header: bool = False


@dataclass
class FileDiff:
    """All lines of one file in a diff."""
    path: str
    old_path: Optional[str] = None  # Only set on rename
    lines: List[DiffLine] = field(default_factory=list)
    is_new: bool = False
    is_deleted: bool = False

    @property
    def added_count(self) -> int:
        return sum(1 for line in self.lines if line.kind is LineKind.ADDED)

    @property
    def removed_count(self) -> int:
        return sum(1 for line in self.lines if line.kind is LineKind.REMOVED)


class _LineCounters:
    """Running old/new line numbers while walking a hunk."""

    def __init__(self):
        self.old_line_number = 0
        self.new_line_number = 0


class DiffParser:
    """Parses `git diff` output into FileDiff records.

    Malformed fragments never raise: a file header without the ``a/... b/...``
    form is skipped along with every line up to the next header, and a
    malformed hunk header is dropped without resetting the line counters.
    """

    def parse(self, raw_diff: str) -> List[FileDiff]:
        """Parse raw unified diff text."""
        files: List[FileDiff] = []
        current: Optional[FileDiff] = None
        counters = _LineCounters()

        for line in raw_diff.split('\n'):
            if line.startswith(FILE_HEADER_PREFIX):
                if current is not None:
                    files.append(current)
                current = self._create_file_diff(line)
            elif current is not None:
                self._process_line(line, current, counters)

        if current is not None:
            files.append(current)

        return files

    @staticmethod
    def changed_paths(files: List[FileDiff]) -> List[str]:
        """New-side paths of the files that still exist after the change."""
        return [file_diff.path for file_diff in files if not file_diff.is_deleted]

    def _create_file_diff(self, header: str) -> Optional[FileDiff]:
        match = FILE_HEADER_PATTERN.match(header)
        if not match:
            logger.debug("Skipping malformed file header: %r", header)
            return None

        old_path, new_path = match.group(1), match.group(2)
        return FileDiff(
            path=new_path,
            old_path=old_path if old_path != new_path else None,
        )

    def _process_line(self, line: str, file_diff: FileDiff, counters: _LineCounters):
        if line.startswith('new file mode'):
            file_diff.is_new = True
        elif line.startswith('deleted file mode'):
            file_diff.is_deleted = True
        elif line.startswith('@@'):
            self._process_hunk_header(line, file_diff, counters)
        elif line.startswith('+') and not line.startswith('+++'):
            file_diff.lines.append(DiffLine(
                kind=LineKind.ADDED,
                content=line[1:],
                new_line_number=counters.new_line_number,
            ))
            counters.new_line_number += 1
        elif line.startswith('-') and not line.startswith('---'):
            file_diff.lines.append(DiffLine(
                kind=LineKind.REMOVED,
                content=line[1:],
                old_line_number=counters.old_line_number,
            ))
            counters.old_line_number += 1
        elif line.startswith(' '):
            file_diff.lines.append(DiffLine(
                kind=LineKind.CONTEXT,
                content=line[1:],
                new_line_number=counters.new_line_number,
                old_line_number=counters.old_line_number,
            ))
            counters.old_line_number += 1
            counters.new_line_number += 1

    def _process_hunk_header(self, line: str, file_diff: FileDiff, counters: _LineCounters):
        match = HUNK_HEADER_PATTERN.match(line)
        if not match:
            logger.debug("Dropping malformed hunk header in %s: %r", file_diff.path, line)
            return

        counters.old_line_number = int(match.group(1))
        counters.new_line_number = int(match.group(3))
        file_diff.lines.append(DiffLine(
            kind=LineKind.CONTEXT,
            content=line,
            is_hunk_header=True,
        ))
