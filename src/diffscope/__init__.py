"""Dependency-aware ordering and impact analysis for code review."""

from .config import ReviewConfiguration
from .core import DiffParser, FileOrder, GitSourceProvider, ReviewResult, ReviewService
from .errors import DiffScopeError, OrderingError, SourceAccessError, SyntaxParseError

__version__ = "0.1.0"

__all__ = [
    "ReviewConfiguration",
    "DiffParser", "FileOrder", "GitSourceProvider", "ReviewResult", "ReviewService",
    "DiffScopeError", "OrderingError", "SourceAccessError", "SyntaxParseError",
]
