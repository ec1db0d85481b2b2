"""Review Service - Orders, maps and scans the files of a change."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..analyzers.change_element_mapper import ChangeElementMapper
from ..analyzers.extraction_cache import ExtractionCache
from ..analyzers.import_graph_builder import DependencyGraph, DependencyGraphBuilder
from ..analyzers.symbol_extractor import FileSymbols, SymbolDeclaration, SymbolExtractor
from ..analyzers.topological_orderer import (
    OrderDirection, TopologicalOrderer, alphabetical_order
)
from ..analyzers.usage_analyzer import UsageReport, UsageScanner, defined_symbols_from
from ..config import ReviewConfiguration
from ..errors import SourceAccessError
from ..parsers.tree_sitter_parser import SyntaxParser, TreeSitterParser
from .diff_parser import DiffParser, FileDiff
from .source_control import SourceControlProvider

logger = logging.getLogger(__name__)


class FileOrder(str, Enum):
    """Order in which the files of a change are presented."""
    ALPHABETICAL = "alphabetical"
    TOP_DOWN = "top-down"
    BOTTOM_UP = "bottom-up"


_DIRECTIONS = {
    FileOrder.TOP_DOWN: OrderDirection.TOP_DOWN,
    FileOrder.BOTTOM_UP: OrderDirection.BOTTOM_UP,
}


@dataclass
class ReviewResult:
    """Files of a change in review order."""
    files: List[FileDiff]
    order: FileOrder
    graph: Optional[DependencyGraph] = None
    is_approximate: bool = False  # A cycle was broken to produce the order
    fell_back: bool = False  # Dependency ordering failed; files are alphabetical
    modified_declarations: Dict[str, List[SymbolDeclaration]] = field(default_factory=dict)


class ReviewService:
    """Composes diff parsing, dependency ordering, extraction and usage scanning."""

    def __init__(self, provider: SourceControlProvider, parser: Optional[SyntaxParser] = None,
                 config: Optional[ReviewConfiguration] = None,
                 cache: Optional[ExtractionCache] = None):
        self.provider = provider
        self.config = config or ReviewConfiguration()
        self.parser = parser or TreeSitterParser()
        self.cache = cache if cache is not None else ExtractionCache()

        self.diff_parser = DiffParser()
        self.graph_builder = DependencyGraphBuilder(self.parser, self.config)
        self.orderer = TopologicalOrderer()
        self.extractor = SymbolExtractor(provider, self.parser, self.cache, self.config)
        self.mapper = ChangeElementMapper()
        self.scanner = UsageScanner(provider, self.parser, self.config)

    def get_diff(self, base: str, compare: str) -> List[FileDiff]:
        """Parsed diff between two revisions.

        Raises:
            SourceAccessError: the diff text could not be retrieved.
        """
        raw_diff = self.provider.unified_diff(base, compare)
        return self.diff_parser.parse(raw_diff)

    def get_ordered_files(self, base: str, compare: str,
                          order: FileOrder = FileOrder.ALPHABETICAL) -> ReviewResult:
        """The changed files in review order, with their modified declarations."""
        files = self.get_diff(base, compare)
        alphabetical = alphabetical_order([f.path for f in files])
        result = ReviewResult(files=self._sort_by_position(files, alphabetical), order=order)

        if order != FileOrder.ALPHABETICAL:
            try:
                graph = self.build_graph(compare)
                ordering = self.orderer.analyze(
                    graph, _DIRECTIONS[order], subset=[f.path for f in files]
                )
                result.files = self._sort_by_position(files, ordering.paths)
                result.graph = graph
                result.is_approximate = ordering.is_approximate
            except Exception as e:
                logger.warning("Dependency ordering failed, using alphabetical order: %s", e)
                result.fell_back = True

        result.modified_declarations = self.modified_declarations(files, compare)
        return result

    def build_graph(self, revision: str) -> DependencyGraph:
        """Dependency graph of every tracked source file at ``revision``."""
        file_contents: Dict[str, str] = {}
        for path in self.provider.list_tracked_files(revision):
            if not self.config.is_source_file(path):
                continue
            try:
                file_contents[path] = self.provider.content(revision, path)
            except SourceAccessError as e:
                logger.warning("Failed to get content for %s: %s", path, e)

        return self.graph_builder.build(file_contents)

    def modified_declarations(self, files: List[FileDiff],
                              revision: str) -> Dict[str, List[SymbolDeclaration]]:
        """Class and function declarations touched by each changed file."""
        by_path = {f.path: f for f in files}
        modified = {}
        for entry in self.extract_symbols(files, revision):
            declarations = self.mapper.map_changes(by_path[entry.path], entry.symbols)
            if declarations:
                modified[entry.path] = declarations
        return modified

    def extract_symbols(self, files: List[FileDiff], revision: str) -> List[FileSymbols]:
        """Declarations of the files that still exist at ``revision``."""
        return self.extractor.extract(DiffParser.changed_paths(files), revision)

    def find_external_usages(self, base: str, compare: str) -> UsageReport:
        """Usages, outside the changed files, of the declarations they contain."""
        files = self.get_diff(base, compare)
        file_symbols = self.extract_symbols(files, compare)
        return self.scanner.scan(
            defined_symbols_from(file_symbols), compare,
            exclude=DiffParser.changed_paths(files),
        )

    @staticmethod
    def _sort_by_position(files: List[FileDiff], ordered_paths: List[str]) -> List[FileDiff]:
        # Files missing from the order keep their diff order after the rest
        position = {path: index for index, path in enumerate(ordered_paths)}
        unordered = len(position)
        return sorted(files, key=lambda f: position.get(f.path, unordered))
