"""Symbol Extractor - Extracts top-level declarations from changed files."""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple, TypeVar

from tree_sitter import Node

from ..config import ReviewConfiguration
from ..core.source_control import SourceControlProvider
from ..errors import SourceAccessError
from ..parsers.tree_sitter_parser import (
    SyntaxParser, TreeSitterParser, end_line, node_name, node_text, start_line, string_value
)
from .extraction_cache import CacheKey, ExtractionCache

logger = logging.getLogger(__name__)

T = TypeVar('T')

CLASS_TYPES = {'class_declaration', 'abstract_class_declaration'}
FUNCTION_TYPES = {'function_declaration', 'generator_function_declaration', 'function_signature'}
VARIABLE_TYPES = {'lexical_declaration', 'variable_declaration'}
BINDING_TYPES = {'interface_declaration', 'type_alias_declaration', 'enum_declaration'}
FUNCTION_VALUE_TYPES = {'arrow_function', 'function_expression', 'function', 'generator_function'}
METHOD_TYPES = {'method_definition', 'method_signature', 'abstract_method_signature'}


class SymbolKind(str, Enum):
    """Kinds of extracted declarations."""
    CLASS = "class"
    FUNCTION = "function"
    EXPORTED_BINDING = "exportedBinding"


@dataclass(frozen=True)
class SymbolDeclaration:
    """A declaration found in a file."""
    name: str
    kind: SymbolKind
    definition_line: int
    is_exported: bool
    owning_class: Optional[str] = None  # Set for class methods
    end_line: int = 0


@dataclass
class FileSymbols:
    """Declarations of one file."""
    path: str
    symbols: List[SymbolDeclaration]


def extract_declarations(root: Node) -> List[SymbolDeclaration]:
    """Collect the declarations made by the top-level statements of a tree."""
    symbols: List[SymbolDeclaration] = []
    for statement in root.named_children:
        if statement.type == 'export_statement':
            _collect_export(statement, symbols)
        else:
            _collect_declaration(statement, symbols, is_exported=False)
    return symbols


def _collect_export(statement: Node, symbols: List[SymbolDeclaration]):
    is_default = any(child.type == 'default' for child in statement.children)

    declaration = statement.child_by_field_name('declaration')
    if declaration is not None:
        count = len(symbols)
        _collect_declaration(declaration, symbols, is_exported=True)
        if is_default and len(symbols) == count:
            symbols.append(_binding('default', statement))
        return

    value = statement.child_by_field_name('value')
    if is_default and value is not None:
        name = node_text(value) if value.type == 'identifier' else 'default'
        symbols.append(_binding(name, statement))
        return

    for child in statement.named_children:
        if child.type == 'export_clause':
            for specifier in child.named_children:
                if specifier.type != 'export_specifier':
                    continue
                exported = specifier.child_by_field_name('alias')
                if exported is None:
                    exported = specifier.child_by_field_name('name')
                name = string_value(exported) or node_text(exported)
                if name:
                    symbols.append(_binding(name, specifier))
        elif child.type == 'namespace_export' and child.named_children:
            alias = child.named_children[-1]
            symbols.append(_binding(string_value(alias) or node_text(alias), child))


def _collect_declaration(node: Node, symbols: List[SymbolDeclaration], is_exported: bool):
    if node.type in CLASS_TYPES:
        _collect_class(node, symbols, is_exported)

    elif node.type in FUNCTION_TYPES:
        name = node_name(node)
        if name:
            symbols.append(SymbolDeclaration(
                name=name,
                kind=SymbolKind.FUNCTION,
                definition_line=start_line(node),
                is_exported=is_exported,
                end_line=end_line(node),
            ))

    elif node.type in VARIABLE_TYPES:
        for declarator in node.named_children:
            if declarator.type != 'variable_declarator':
                continue
            name_node = declarator.child_by_field_name('name')
            if name_node is None or name_node.type != 'identifier':
                continue
            value = declarator.child_by_field_name('value')
            if value is not None and value.type in FUNCTION_VALUE_TYPES:
                kind = SymbolKind.FUNCTION
            elif is_exported:
                kind = SymbolKind.EXPORTED_BINDING
            else:
                continue
            symbols.append(SymbolDeclaration(
                name=node_text(name_node),
                kind=kind,
                definition_line=start_line(declarator),
                is_exported=is_exported,
                end_line=end_line(declarator),
            ))

    elif node.type in BINDING_TYPES:
        name = node_name(node)
        if name:
            symbols.append(SymbolDeclaration(
                name=name,
                kind=SymbolKind.EXPORTED_BINDING,
                definition_line=start_line(node),
                is_exported=is_exported,
                end_line=end_line(node),
            ))

    elif node.type == 'ambient_declaration':
        # declare class / declare function ...
        for child in node.named_children:
            _collect_declaration(child, symbols, is_exported)


def _collect_class(node: Node, symbols: List[SymbolDeclaration], is_exported: bool):
    class_name = node_name(node)
    if not class_name:
        return

    symbols.append(SymbolDeclaration(
        name=class_name,
        kind=SymbolKind.CLASS,
        definition_line=start_line(node),
        is_exported=is_exported,
        end_line=end_line(node),
    ))

    body = node.child_by_field_name('body')
    if body is None:
        return

    for member in body.named_children:
        if member.type not in METHOD_TYPES:
            continue
        name_node = member.child_by_field_name('name')
        if name_node is None or name_node.type == 'computed_property_name':
            continue
        method_name = string_value(name_node) or node_text(name_node)
        if method_name == 'constructor':
            continue
        symbols.append(SymbolDeclaration(
            name=method_name,
            kind=SymbolKind.FUNCTION,
            definition_line=start_line(member),
            is_exported=is_exported,  # Methods inherit the class's export flag
            owning_class=class_name,
            end_line=end_line(member),
        ))


def _binding(name: str, node: Node) -> SymbolDeclaration:
    return SymbolDeclaration(
        name=name,
        kind=SymbolKind.EXPORTED_BINDING,
        definition_line=start_line(node),
        is_exported=True,
        end_line=end_line(node),
    )


def create_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Split items into consecutive batches of at most ``batch_size``."""
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class SymbolExtractor:
    """Extracts declarations from files at a revision, batched and cached."""

    def __init__(self, provider: SourceControlProvider, parser: Optional[SyntaxParser] = None,
                 cache: Optional[ExtractionCache] = None,
                 config: Optional[ReviewConfiguration] = None):
        self.provider = provider
        self.parser = parser or TreeSitterParser()
        self.cache = cache if cache is not None else ExtractionCache()
        self.config = config or ReviewConfiguration()

    def extract(self, files: List[str], revision: str) -> List[FileSymbols]:
        """Extract declarations from ``files`` at ``revision``.

        Files without declarations are left out of the result, which keeps the
        order of ``files``.
        """
        requested: List[str] = []
        seen: Set[str] = set()
        resolved: Dict[str, Tuple[SymbolDeclaration, ...]] = {}
        uncached: List[Tuple[str, str, CacheKey]] = []

        for path in files:
            if path in seen:
                continue
            seen.add(path)
            if not (self.config.is_source_file(path) and self.parser.supports(path)):
                logger.debug("Skipping unsupported file %s", path)
                continue
            try:
                content = self.provider.content(revision, path)
            except SourceAccessError as e:
                logger.warning("Failed to get content for %s: %s", path, e)
                continue

            requested.append(path)
            key = CacheKey.for_content(path, content)
            cached = self.cache.get(key)
            if cached is not None:
                resolved[path] = cached
            else:
                uncached.append((path, content, key))

        if uncached:
            logger.debug("Extracting %d uncached files in batches of %d",
                         len(uncached), self.config.batch_size)
            with ThreadPoolExecutor(max_workers=self.config.batch_size) as executor:
                for batch in create_batches(uncached, self.config.batch_size):
                    futures = {
                        executor.submit(self._extract_uncached, path, content, key): path
                        for path, content, key in batch
                    }
                    # The whole batch is joined before the next one starts
                    wait(futures)
                    for future, path in futures.items():
                        resolved[path] = future.result()

        results = []
        for path in requested:
            symbols = resolved.get(path)
            if symbols:
                results.append(FileSymbols(path=path, symbols=list(symbols)))
        return results

    def _extract_uncached(self, path: str, content: str,
                          key: CacheKey) -> Tuple[SymbolDeclaration, ...]:
        try:
            tree = self.parser.parse(path, content)
            symbols = tuple(extract_declarations(tree.root_node))
        except Exception as e:
            logger.warning("Failed to extract symbols from %s: %s", path, e)
            return ()

        self.cache.put(key, symbols)
        return symbols
