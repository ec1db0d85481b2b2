"""Exceptions raised across diffscope."""


class DiffScopeError(Exception):
    """Base class for diffscope errors."""


class SourceAccessError(DiffScopeError):
    """File content or revision metadata could not be retrieved."""

    def __init__(self, message: str, revision: str = "", path: str = ""):
        super().__init__(message)
        self.revision = revision
        self.path = path


class SyntaxParseError(DiffScopeError):
    """The syntax parser cannot handle a file."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class OrderingError(DiffScopeError):
    """The dependency graph cannot be traversed."""
