"""Pytest configuration and fixtures for diffscope tests."""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple

import git
import pytest

from diffscope.core.source_control import SourceControlProvider
from diffscope.errors import SourceAccessError
from diffscope.parsers.tree_sitter_parser import SyntaxParser, TreeSitterParser


class InMemorySourceProvider(SourceControlProvider):
    """Source control provider serving revisions from dictionaries."""

    def __init__(self, revisions: Dict[str, Dict[str, str]],
                 diffs: Dict[Tuple[str, str], str] = None):
        self.revisions = revisions
        self.diffs = diffs or {}

    def content(self, revision: str, path: str) -> str:
        try:
            return self.revisions[revision][path]
        except KeyError:
            raise SourceAccessError(f"{path} not found at {revision}",
                                    revision=revision, path=path)

    def list_tracked_files(self, revision: str) -> List[str]:
        if revision not in self.revisions:
            raise SourceAccessError(f"Unknown revision {revision}", revision=revision)
        return list(self.revisions[revision])

    def unified_diff(self, revision_a: str, revision_b: str) -> str:
        try:
            return self.diffs[(revision_a, revision_b)]
        except KeyError:
            raise SourceAccessError(f"No diff for {revision_a}...{revision_b}")


class CountingParser(SyntaxParser):
    """Parser spy that counts parse calls per path."""

    def __init__(self, delegate: SyntaxParser):
        self.delegate = delegate
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def parse(self, path, text):
        with self._lock:
            self.calls.append(path)
        return self.delegate.parse(path, text)

    def supports(self, path):
        return self.delegate.supports(path)


@pytest.fixture(scope="session")
def tree_sitter_parser() -> TreeSitterParser:
    """One parser shared by the session; grammar loading is slow."""
    return TreeSitterParser()


@pytest.fixture
def counting_parser(tree_sitter_parser) -> CountingParser:
    return CountingParser(tree_sitter_parser)


@pytest.fixture
def parse(tree_sitter_parser):
    """Parse source text and return the root node."""
    def _parse(source: str, path: str = "sample.ts"):
        return tree_sitter_parser.parse(path, source).root_node
    return _parse


BASE_FILES = {
    "README.md": "# sample\n",
    "src/types.ts": (
        "export interface User {\n"
        "  name: string;\n"
        "}\n"
    ),
    "src/utils.ts": (
        "import { User } from './types';\n"
        "\n"
        "export function formatName(user: User) {\n"
        "  return user.name;\n"
        "}\n"
    ),
    "src/app.ts": (
        "import { formatName } from './utils';\n"
        "\n"
        "export class App {\n"
        "  render() {\n"
        "    return formatName({ name: 'a' });\n"
        "  }\n"
        "}\n"
    ),
    "src/consumer.ts": (
        "import { formatName } from './utils';\n"
        "\n"
        "export const label = formatName({ name: 'b' });\n"
    ),
    "src/legacy.ts": "export const legacy = 1;\n",
}

FEATURE_CHANGES = {
    "src/utils.ts": (
        "import { User } from './types';\n"
        "\n"
        "export function formatName(user: User) {\n"
        "  return user.name.trim();\n"
        "}\n"
    ),
    "src/app.ts": (
        "import { formatName } from './utils';\n"
        "\n"
        "export class App {\n"
        "  render() {\n"
        "    return formatName({ name: 'app' });\n"
        "  }\n"
        "}\n"
    ),
}

FEATURE_DELETIONS = ["src/legacy.ts"]


@dataclass
class SampleRepo:
    path: Path
    base: str
    compare: str


def _write_files(root: Path, files: Dict[str, str]):
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)


@pytest.fixture
def git_repo(tmp_path: Path) -> SampleRepo:
    """A git repository with a base branch and a `feature` branch."""
    repo = git.Repo.init(tmp_path)
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")

    _write_files(tmp_path, BASE_FILES)
    repo.git.add(A=True)
    repo.git.commit(m="Initial commit")
    base = repo.active_branch.name

    repo.git.checkout("-b", "feature")
    _write_files(tmp_path, FEATURE_CHANGES)
    for name in FEATURE_DELETIONS:
        (tmp_path / name).unlink()
    repo.git.add(A=True)
    repo.git.commit(m="Trim names")

    return SampleRepo(path=tmp_path, base=base, compare="feature")
