"""Tree-sitter based parsing of JavaScript and TypeScript sources."""

import importlib
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from tree_sitter import Language, Node, Parser, Tree

from ..errors import SyntaxParseError

logger = logging.getLogger(__name__)

# File extension -> grammar name
LANGUAGE_MAP: Dict[str, str] = {
    '.ts': 'typescript',
    '.mts': 'typescript',
    '.cts': 'typescript',
    '.tsx': 'tsx',
    '.js': 'javascript',
    '.jsx': 'javascript',
    '.mjs': 'javascript',
    '.cjs': 'javascript',
}

# Grammar name -> (module, function returning the language capsule)
_GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    'typescript': ('tree_sitter_typescript', 'language_typescript'),
    'tsx': ('tree_sitter_typescript', 'language_tsx'),
    'javascript': ('tree_sitter_javascript', 'language'),
}


def detect_language(path: str) -> Optional[str]:
    """Grammar name for a file path, or None when unsupported."""
    return LANGUAGE_MAP.get(os.path.splitext(path)[1].lower())


def node_text(node: Optional[Node]) -> str:
    """Source text spanned by a node."""
    if node is None or node.text is None:
        return ""
    return node.text.decode('utf8')


def node_name(node: Node) -> Optional[str]:
    """Text of a node's ``name`` field, if it has one."""
    name_node = node.child_by_field_name('name')
    if name_node is None:
        return None
    return node_text(name_node)


def start_line(node: Node) -> int:
    """1-based line of a node's first character."""
    return node.start_point[0] + 1


def end_line(node: Node) -> int:
    """1-based line of a node's last character."""
    return node.end_point[0] + 1


def string_value(node: Optional[Node]) -> Optional[str]:
    """Unquoted value of a string literal node."""
    if node is None or node.type != 'string':
        return None
    return node_text(node)[1:-1]


class SyntaxParser(ABC):
    """Produces syntax trees from source text."""

    @abstractmethod
    def parse(self, path: str, text: str) -> Tree:
        """Parse ``text`` as the dialect implied by ``path``."""

    @abstractmethod
    def supports(self, path: str) -> bool:
        """Return True if ``path`` can be parsed."""


class TreeSitterParser(SyntaxParser):
    """Parser using Tree-sitter grammars for JavaScript, TypeScript and TSX.

    Grammar ``Language`` objects are shared; ``Parser`` instances are kept per
    thread so the parser can be used from worker pools.
    """

    def __init__(self, languages: Optional[List[str]] = None):
        self.languages: Dict[str, Any] = {}
        self._local = threading.local()

        for lang in languages or list(_GRAMMAR_MODULES):
            try:
                module_name, factory = _GRAMMAR_MODULES[lang]
                module = importlib.import_module(module_name)
                self.languages[lang] = Language(getattr(module, factory)())
            except KeyError:
                logger.warning("No grammar mapped for language '%s'", lang)
            except (ImportError, AttributeError, TypeError, ValueError) as e:
                logger.warning("Failed to initialize %s support: %s", lang, e)

    def supports(self, path: str) -> bool:
        return detect_language(path) in self.languages

    def parse(self, path: str, text: str) -> Tree:
        language = detect_language(path)
        if language is None or language not in self.languages:
            raise SyntaxParseError(f"Language of {path} not supported", path=path)

        try:
            return self._parser_for(language).parse(text.encode('utf8'))
        except (ValueError, UnicodeEncodeError) as e:
            raise SyntaxParseError(f"Failed to parse {path}: {e}", path=path) from e

    def _parser_for(self, language: str) -> Parser:
        parsers = getattr(self._local, 'parsers', None)
        if parsers is None:
            parsers = self._local.parsers = {}
        if language not in parsers:
            parsers[language] = Parser(self.languages[language])
        return parsers[language]
