"""Usage Analyzer - Finds usages of changed declarations across the codebase."""

import logging
import posixpath
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from tree_sitter import Node

from ..config import ReviewConfiguration
from ..core.source_control import SourceControlProvider
from ..errors import SourceAccessError
from ..parsers.tree_sitter_parser import (
    SyntaxParser, TreeSitterParser, node_text, start_line, string_value
)
from .import_graph_builder import is_relative_specifier, resolve_relative_import
from .symbol_extractor import FileSymbols, SymbolKind

logger = logging.getLogger(__name__)

IDENTIFIER_TYPES = {
    'identifier',
    'type_identifier',
    'property_identifier',
    'shorthand_property_identifier',
    'shorthand_property_identifier_pattern',
}

# Nodes whose `name` field declares a local binding rather than using one
DECLARATION_TYPES = {
    'class_declaration',
    'abstract_class_declaration',
    'class',
    'function_declaration',
    'generator_function_declaration',
    'function_signature',
    'function_expression',
    'method_definition',
    'method_signature',
    'abstract_method_signature',
    'interface_declaration',
    'type_alias_declaration',
    'enum_declaration',
    'variable_declarator',
    'required_parameter',
    'optional_parameter',
}

TYPE_PARENT_TYPES = {
    'type_annotation',
    'generic_type',
    'type_arguments',
    'nested_type_identifier',
    'implements_clause',
    'extends_type_clause',
}

ALIAS_PREFIXES = ('@/', '~/')


class UsageKind(str, Enum):
    """How a reference uses a symbol."""
    IMPORT = "import"
    CALL = "call"
    PROPERTY_ACCESS = "propertyAccess"
    INSTANTIATION = "instantiation"
    TYPE_REFERENCE = "typeReference"
    OTHER = "other"


class ImpactLevel(str, Enum):
    """Coarse impact of changed symbols on a file."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


IMPACT_RANK = {ImpactLevel.HIGH: 3, ImpactLevel.MEDIUM: 2, ImpactLevel.LOW: 1}
HIGH_IMPACT_KINDS = {UsageKind.IMPORT, UsageKind.INSTANTIATION, UsageKind.TYPE_REFERENCE}


@dataclass
class DefinedSymbol:
    """A changed declaration and the file that declares it."""
    name: str
    kind: SymbolKind
    defined_in: str


@dataclass
class SymbolReference:
    """A single usage location."""
    name: str
    file: str
    line: int
    column: int
    usage_kind: UsageKind
    defined_in: str = ""
    context: str = ""  # Trimmed source line


@dataclass
class AffectedFile:
    """All usages of changed symbols in one file."""
    path: str
    usages: List[SymbolReference]
    impact_level: ImpactLevel


@dataclass
class UsageReport:
    """Result of scanning a revision for usages."""
    affected_files: List[AffectedFile] = field(default_factory=list)
    total_files_scanned: int = 0
    duration_ms: float = 0.0

    @property
    def total_usages(self) -> int:
        return sum(len(affected.usages) for affected in self.affected_files)


def defined_symbols_from(file_symbols: List[FileSymbols]) -> List[DefinedSymbol]:
    """Flatten extraction results into scan input."""
    return [
        DefinedSymbol(name=symbol.name, kind=symbol.kind, defined_in=entry.path)
        for entry in file_symbols
        for symbol in entry.symbols
    ]


class UsageScanner:
    """Scans a revision for syntactic references to a set of symbols."""

    def __init__(self, provider: SourceControlProvider, parser: Optional[SyntaxParser] = None,
                 config: Optional[ReviewConfiguration] = None):
        self.provider = provider
        self.parser = parser or TreeSitterParser()
        self.config = config or ReviewConfiguration()

    def scan(self, defined_symbols: List[DefinedSymbol], revision: str,
             exclude: Optional[List[str]] = None) -> UsageReport:
        """Find the files of ``revision`` that use ``defined_symbols``.

        Files declaring the symbols, and any path in ``exclude``, are not scanned.
        """
        start_time = time.perf_counter()

        definitions: Dict[str, List[DefinedSymbol]] = {}
        for symbol in defined_symbols:
            definitions.setdefault(symbol.name, []).append(symbol)
        skipped = {symbol.defined_in for symbol in defined_symbols}
        skipped.update(exclude or [])

        try:
            tracked = self.provider.list_tracked_files(revision)
        except SourceAccessError as e:
            logger.warning("Failed to list files at %s: %s", revision, e)
            tracked = []

        files_to_scan = [
            path for path in tracked
            if self.config.is_source_file(path) and self.parser.supports(path)
            and path not in skipped
        ]
        logger.info("Scanning %d files for usages of %d symbols",
                    len(files_to_scan), len(definitions))

        affected_files: List[AffectedFile] = []
        if definitions and files_to_scan:
            with ThreadPoolExecutor(max_workers=self.config.scan_workers) as executor:
                scanned = executor.map(
                    lambda path: self._scan_file(path, revision, definitions), files_to_scan
                )
                for path, usages in zip(files_to_scan, scanned):
                    if usages:
                        affected_files.append(AffectedFile(
                            path=path,
                            usages=usages,
                            impact_level=self.calculate_impact_level(usages),
                        ))

        affected_files.sort(key=lambda f: (-IMPACT_RANK[f.impact_level], -len(f.usages)))

        return UsageReport(
            affected_files=affected_files,
            total_files_scanned=len(files_to_scan),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    def calculate_impact_level(self, usages: List[SymbolReference]) -> ImpactLevel:
        """Classify a file's usages as high, medium or low impact."""
        kinds = {usage.usage_kind for usage in usages}
        if kinds & HIGH_IMPACT_KINDS or len(usages) > self.config.high_usage_threshold:
            return ImpactLevel.HIGH
        if UsageKind.CALL in kinds or len(usages) > self.config.medium_usage_threshold:
            return ImpactLevel.MEDIUM
        return ImpactLevel.LOW

    def _scan_file(self, path: str, revision: str,
                   definitions: Dict[str, List[DefinedSymbol]]) -> List[SymbolReference]:
        try:
            content = self.provider.content(revision, path)
            tree = self.parser.parse(path, content)
            return self.find_usages(path, content, tree.root_node, definitions)
        except Exception as e:
            logger.warning("Failed to scan %s: %s", path, e)
            return []

    def find_usages(self, path: str, content: str, root: Node,
                    definitions: Dict[str, List[DefinedSymbol]]) -> List[SymbolReference]:
        """Walk a parsed file and collect references to known names."""
        lines = content.split('\n')
        usages: List[SymbolReference] = []

        stack = [root]
        while stack:
            node = stack.pop()

            if node.type == 'import_statement':
                usages.extend(self._import_usages(path, node, lines, definitions))
                continue

            if node.type in IDENTIFIER_TYPES:
                name = node_text(node)
                if name in definitions and not self._is_declaration_name(node):
                    usages.append(self._reference(
                        name, path, node, self.determine_usage_kind(node),
                        definitions[name][0].defined_in, lines,
                    ))

            stack.extend(reversed(node.children))

        return usages

    def determine_usage_kind(self, node: Node) -> UsageKind:
        """Classify an identifier by its immediate parent."""
        parent = node.parent
        if parent is None:
            return UsageKind.OTHER

        if parent.type == 'call_expression' and _is_field(parent, 'function', node):
            return UsageKind.CALL
        if parent.type == 'member_expression':
            return UsageKind.PROPERTY_ACCESS
        if parent.type == 'new_expression' and _is_field(parent, 'constructor', node):
            return UsageKind.INSTANTIATION
        if node.type == 'type_identifier' or parent.type in TYPE_PARENT_TYPES:
            return UsageKind.TYPE_REFERENCE
        return UsageKind.OTHER

    def _import_usages(self, path: str, node: Node, lines: List[str],
                       definitions: Dict[str, List[DefinedSymbol]]) -> List[SymbolReference]:
        specifier = string_value(node.child_by_field_name('source'))
        if specifier is None:
            return []

        usages = []
        for name_node in _imported_name_nodes(node):
            name = node_text(name_node)
            for definition in definitions.get(name, []):
                if self.imports_from(specifier, definition.defined_in, path):
                    usages.append(self._reference(
                        name, path, name_node, UsageKind.IMPORT, definition.defined_in, lines,
                    ))
                    break
        return usages

    def imports_from(self, specifier: str, defined_in: str, importer: str) -> bool:
        """Whether a module specifier in ``importer`` can refer to ``defined_in``."""
        if is_relative_specifier(specifier):
            resolved = resolve_relative_import(
                importer, specifier, {defined_in}, self.config.resolution_extensions
            )
            return resolved is not None

        # Package and alias specifiers: loose substring match
        for prefix in ALIAS_PREFIXES:
            if specifier.startswith(prefix):
                specifier = specifier[len(prefix):]
                break
        if not specifier:
            return False
        stem = posixpath.splitext(defined_in)[0]
        return specifier in defined_in or stem in specifier

    def _is_declaration_name(self, node: Node) -> bool:
        parent = node.parent
        return (parent is not None and parent.type in DECLARATION_TYPES
                and _is_field(parent, 'name', node))

    def _reference(self, name: str, path: str, node: Node, kind: UsageKind,
                   defined_in: str, lines: List[str]) -> SymbolReference:
        line = start_line(node)
        context = lines[line - 1].strip() if 0 < line <= len(lines) else ""
        return SymbolReference(
            name=name,
            file=path,
            line=line,
            column=node.start_point[1] + 1,
            usage_kind=kind,
            defined_in=defined_in,
            context=context,
        )


def _is_field(parent: Node, field_name: str, node: Node) -> bool:
    child = parent.child_by_field_name(field_name)
    return (child is not None and child.start_byte == node.start_byte
            and child.end_byte == node.end_byte)


def _imported_name_nodes(import_statement: Node) -> List[Node]:
    """Nodes naming what an import takes from its module: default and named imports."""
    nodes = []
    for clause in import_statement.named_children:
        if clause.type != 'import_clause':
            continue
        for child in clause.named_children:
            if child.type == 'identifier':
                nodes.append(child)
            elif child.type == 'named_imports':
                for specifier in child.named_children:
                    if specifier.type == 'import_specifier':
                        name_node = specifier.child_by_field_name('name')
                        if name_node is not None:
                            nodes.append(name_node)
    return nodes
