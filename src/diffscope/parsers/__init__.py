"""Language-specific parsers and syntax trees."""

from .tree_sitter_parser import SyntaxParser, TreeSitterParser, detect_language

__all__ = ["SyntaxParser", "TreeSitterParser", "detect_language"]
