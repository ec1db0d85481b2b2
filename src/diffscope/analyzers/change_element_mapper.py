"""Change Element Mapper - Maps changed diff lines to the declarations containing them."""

from typing import List, Optional, Set

from ..core.diff_parser import FileDiff, LineKind
from .symbol_extractor import SymbolDeclaration, SymbolKind

MAPPED_KINDS = {SymbolKind.CLASS, SymbolKind.FUNCTION}


class ChangeElementMapper:
    """Maps a file's changed lines to its class and function declarations."""

    def map_changes(self, file_diff: FileDiff,
                    declarations: List[SymbolDeclaration]) -> List[SymbolDeclaration]:
        """Declarations whose line range contains a changed line.

        Added lines use their new-side number. A removed line has no new-side
        number, so it is anchored at the new-side number of the line that
        follows it in the same hunk.
        """
        changed = self.changed_lines(file_diff)
        if not changed:
            return []

        modified = []
        for declaration in declarations:
            if declaration.kind not in MAPPED_KINDS:
                continue
            last = max(declaration.end_line, declaration.definition_line)
            if any(declaration.definition_line <= line <= last for line in changed):
                modified.append(declaration)
        return modified

    def changed_lines(self, file_diff: FileDiff) -> Set[int]:
        """New-side line numbers touched by the diff."""
        changed: Set[int] = set()
        next_line: Optional[int] = None

        # Walk backwards so each removed line sees the line after it
        for line in reversed(file_diff.lines):
            if line.is_hunk_header:
                next_line = None
                continue
            if line.kind == LineKind.REMOVED:
                if next_line is not None:
                    changed.add(next_line)
                continue
            if line.kind == LineKind.ADDED and line.new_line_number is not None:
                changed.add(line.new_line_number)
            if line.new_line_number is not None:
                next_line = line.new_line_number

        return changed
