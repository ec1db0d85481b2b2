"""Access to revisions of a tracked file tree."""

from abc import ABC, abstractmethod
from typing import List

import git

from ..errors import SourceAccessError


class SourceControlProvider(ABC):
    """Read-only view of a repository's revisions."""

    @abstractmethod
    def content(self, revision: str, path: str) -> str:
        """Return the text of ``path`` at ``revision``."""

    @abstractmethod
    def list_tracked_files(self, revision: str) -> List[str]:
        """Return every tracked path at ``revision``."""

    @abstractmethod
    def unified_diff(self, revision_a: str, revision_b: str) -> str:
        """Return the unified diff between two revisions."""


class GitSourceProvider(SourceControlProvider):
    """Source control provider backed by a local git repository."""

    def __init__(self, repo_path: str = "."):
        self.repo_path = repo_path
        try:
            self.repo = git.Repo(repo_path)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as exc:
            raise SourceAccessError(f"Not a git repository: {repo_path}") from exc

    def content(self, revision: str, path: str) -> str:
        try:
            return self._git().show(f"{revision}:{path}", strip_newline_in_stdout=False)
        except git.GitCommandError as exc:
            raise SourceAccessError(
                f"Failed to get contents of {path} at {revision}",
                revision=revision, path=path,
            ) from exc

    def list_tracked_files(self, revision: str) -> List[str]:
        try:
            output = self._git().ls_tree('-r', '-z', '--name-only', revision)
        except git.GitCommandError as exc:
            raise SourceAccessError(
                f"Failed to list files at {revision}", revision=revision,
            ) from exc
        return [name for name in output.split('\0') if name.strip()]

    def unified_diff(self, revision_a: str, revision_b: str) -> str:
        try:
            return self._git().diff(
                '--no-color', '--unified=3', f"{revision_a}...{revision_b}",
                strip_newline_in_stdout=False,
            )
        except git.GitCommandError as exc:
            raise SourceAccessError(
                f"git diff {revision_a}...{revision_b} failed",
                revision=f"{revision_a}...{revision_b}",
            ) from exc

    def list_branches(self) -> List[str]:
        """Local branch names."""
        return [head.name for head in self.repo.heads]

    def _git(self) -> git.Git:
        # Fresh per call; keeps non-ASCII paths unquoted in headers and listings
        return git.Git(self.repo.working_dir)(c='core.quotepath=false')
