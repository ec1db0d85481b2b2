"""Diff parsing, source control access and review composition."""

from .diff_parser import DiffParser, DiffLine, FileDiff, LineKind
from .source_control import SourceControlProvider, GitSourceProvider
from .review_service import ReviewService, ReviewResult, FileOrder

__all__ = [
    "DiffParser", "DiffLine", "FileDiff", "LineKind",
    "SourceControlProvider", "GitSourceProvider",
    "ReviewService", "ReviewResult", "FileOrder",
]
