"""Import Graph Builder - Builds dependency graphs from import statements."""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional, Sequence

import networkx as nx
from tree_sitter import Node

from ..config import ReviewConfiguration
from ..parsers.tree_sitter_parser import (
    SyntaxParser, TreeSitterParser, node_text, start_line, string_value
)
from .symbol_extractor import SymbolDeclaration, extract_declarations

logger = logging.getLogger(__name__)


@dataclass
class ImportRecord:
    """An import, re-export or require() found in a file."""
    specifier: str
    imported_names: List[str] = field(default_factory=list)
    line: int = 0
    is_reexport: bool = False

    @property
    def is_relative(self) -> bool:
        return is_relative_specifier(self.specifier)


@dataclass
class FileAnalysis:
    """A file's own imports, exports and declarations."""
    path: str
    imports: List[ImportRecord] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    declarations: List[SymbolDeclaration] = field(default_factory=list)


@dataclass
class DependencyEdge:
    """``source`` imports ``target``."""
    source: str
    target: str
    imported_names: List[str] = field(default_factory=list)


@dataclass
class DependencyGraph:
    """File dependency graph; node order is insertion order."""
    nodes: Dict[str, FileAnalysis]
    edges: List[DependencyEdge]
    digraph: nx.DiGraph = field(default_factory=nx.DiGraph, repr=False)

    def __post_init__(self):
        if self.digraph.number_of_nodes() == 0:
            self.digraph.add_nodes_from(self.nodes)
            for edge in self.edges:
                self.digraph.add_edge(edge.source, edge.target)

    def dependencies_of(self, path: str) -> List[str]:
        """Files ``path`` imports directly."""
        if path not in self.digraph:
            return []
        return list(self.digraph.successors(path))

    def dependents_of(self, path: str) -> List[str]:
        """Files importing ``path`` directly."""
        if path not in self.digraph:
            return []
        return list(self.digraph.predecessors(path))

    def cycles(self) -> List[List[str]]:
        """Groups of files that import each other, directly or transitively."""
        groups = []
        for component in nx.strongly_connected_components(self.digraph):
            members = [path for path in self.nodes if path in component]
            if len(members) > 1 or self.digraph.has_edge(members[0], members[0]):
                groups.append(members)
        return groups


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith('./') or specifier.startswith('../')


def resolve_relative_import(importer: str, specifier: str, candidates: Collection[str],
                            extensions: Sequence[str]) -> Optional[str]:
    """Resolve a relative module specifier against a set of known files.

    Tries the normalized path itself, then each extension as a suffix, then
    ``index.<ext>`` inside the path, returning the first candidate present.
    """
    if not is_relative_specifier(specifier):
        return None

    base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
    if base == '..' or base.startswith('../'):
        return None

    attempts = [base]
    attempts.extend(f"{base}{ext}" for ext in extensions)
    attempts.extend(f"{base}/index{ext}" for ext in extensions)
    for candidate in attempts:
        if candidate in candidates:
            return candidate
    return None


def collect_imports(root: Node) -> List[ImportRecord]:
    """Imports, re-exports and require()/import() calls with literal specifiers."""
    imports: List[ImportRecord] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == 'import_statement':
            record = _import_record(node)
            if record is not None:
                imports.append(record)
            continue
        if node.type == 'export_statement':
            record = _reexport_record(node)
            if record is not None:
                imports.append(record)
        elif node.type == 'call_expression':
            record = _call_record(node)
            if record is not None:
                imports.append(record)
        stack.extend(reversed(node.named_children))
    return imports


def _import_record(node: Node) -> Optional[ImportRecord]:
    specifier = string_value(node.child_by_field_name('source'))
    if specifier is None:
        # import x = require('...')
        for child in node.named_children:
            if child.type == 'import_require_clause':
                specifier = string_value(child.child_by_field_name('source'))
    if specifier is None:
        return None

    names: List[str] = []
    for child in node.named_children:
        if child.type == 'import_clause':
            names.extend(imported_names(child))
    return ImportRecord(specifier=specifier, imported_names=names, line=start_line(node))


def imported_names(import_clause: Node) -> List[str]:
    """Names an import clause takes from its module."""
    names = []
    for child in import_clause.named_children:
        if child.type == 'identifier':
            names.append('default')
        elif child.type == 'namespace_import':
            names.append('*')
        elif child.type == 'named_imports':
            for specifier in child.named_children:
                if specifier.type == 'import_specifier':
                    name_node = specifier.child_by_field_name('name')
                    names.append(string_value(name_node) or node_text(name_node))
    return names


def _reexport_record(node: Node) -> Optional[ImportRecord]:
    specifier = string_value(node.child_by_field_name('source'))
    if specifier is None:
        return None

    names: List[str] = []
    for child in node.named_children:
        if child.type == 'export_clause':
            for export_specifier in child.named_children:
                if export_specifier.type == 'export_specifier':
                    name_node = export_specifier.child_by_field_name('name')
                    names.append(string_value(name_node) or node_text(name_node))
    if not names:
        names.append('*')
    return ImportRecord(specifier=specifier, imported_names=names,
                        line=start_line(node), is_reexport=True)


def _call_record(node: Node) -> Optional[ImportRecord]:
    function = node.child_by_field_name('function')
    if function is None:
        return None
    if not (function.type == 'import' or (function.type == 'identifier' and node_text(function) == 'require')):
        return None

    arguments = node.child_by_field_name('arguments')
    if arguments is None or arguments.named_child_count != 1:
        return None
    specifier = string_value(arguments.named_children[0])
    if specifier is None:
        return None
    return ImportRecord(specifier=specifier, line=start_line(node))


class DependencyGraphBuilder:
    """Builds a file dependency graph from in-memory file contents."""

    def __init__(self, parser: Optional[SyntaxParser] = None,
                 config: Optional[ReviewConfiguration] = None):
        self.parser = parser or TreeSitterParser()
        self.config = config or ReviewConfiguration()

    def build(self, file_contents: Dict[str, str]) -> DependencyGraph:
        """Build the graph; every input file becomes a node."""
        nodes: Dict[str, FileAnalysis] = {}
        for path, content in file_contents.items():
            nodes[path] = self.analyze_file(path, content)

        edges: List[DependencyEdge] = []
        for path, analysis in nodes.items():
            for record in analysis.imports:
                if not record.is_relative:
                    continue
                target = resolve_relative_import(
                    path, record.specifier, nodes, self.config.resolution_extensions
                )
                if target is None:
                    logger.debug("Unresolved import %r in %s", record.specifier, path)
                    continue
                edges.append(DependencyEdge(
                    source=path,
                    target=target,
                    imported_names=list(record.imported_names),
                ))

        logger.debug("Built dependency graph: %d files, %d edges", len(nodes), len(edges))
        return DependencyGraph(nodes=nodes, edges=edges)

    def analyze_file(self, path: str, content: str) -> FileAnalysis:
        """Parse one file into its imports, exports and declarations."""
        try:
            tree = self.parser.parse(path, content)
        except Exception as e:
            logger.warning("Failed to analyze %s: %s", path, e)
            return FileAnalysis(path=path)

        declarations = extract_declarations(tree.root_node)
        exports = []
        for declaration in declarations:
            if declaration.is_exported and declaration.owning_class is None \
                    and declaration.name not in exports:
                exports.append(declaration.name)

        return FileAnalysis(
            path=path,
            imports=collect_imports(tree.root_node),
            exports=exports,
            declarations=declarations,
        )
