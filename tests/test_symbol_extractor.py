"""Tests for declaration extraction and the extraction cache."""

import threading

import pytest

from diffscope.analyzers.extraction_cache import CacheKey, ExtractionCache
from diffscope.analyzers.symbol_extractor import (
    SymbolExtractor, SymbolKind, create_batches, extract_declarations
)
from diffscope.config import ReviewConfiguration
from diffscope.parsers.tree_sitter_parser import TreeSitterParser

from conftest import CountingParser, InMemorySourceProvider


def _names(declarations):
    return [(d.name, d.kind, d.is_exported, d.owning_class) for d in declarations]


class TestExtractDeclarations:

    def test_classes_and_methods(self, parse):
        root = parse(
            "export class AuthService {\n"
            "  constructor(private api: Api) {}\n"
            "  login(user: string) {\n"
            "    return true;\n"
            "  }\n"
            "  logout() {}\n"
            "}\n"
        )
        declarations = extract_declarations(root)

        assert _names(declarations) == [
            ("AuthService", SymbolKind.CLASS, True, None),
            ("login", SymbolKind.FUNCTION, True, "AuthService"),
            ("logout", SymbolKind.FUNCTION, True, "AuthService"),
        ]
        assert declarations[0].definition_line == 1
        assert declarations[0].end_line == 7
        assert (declarations[1].definition_line, declarations[1].end_line) == (3, 5)

    def test_functions_and_function_values(self, parse):
        root = parse(
            "export function formatDate(d: Date) { return d; }\n"
            "function helper() {}\n"
            "export const handler = async () => {};\n"
            "const inner = function () {};\n"
            "const notAFunction = 42;\n"
        )

        assert _names(extract_declarations(root)) == [
            ("formatDate", SymbolKind.FUNCTION, True, None),
            ("helper", SymbolKind.FUNCTION, False, None),
            ("handler", SymbolKind.FUNCTION, True, None),
            ("inner", SymbolKind.FUNCTION, False, None),
        ]

    def test_exported_bindings(self, parse):
        root = parse(
            "export const API_URL = 'https://example.com';\n"
            "export interface Props { name: string }\n"
            "export type Id = string;\n"
            "export enum Color { Red, Green }\n"
            "interface Internal {}\n"
        )

        assert _names(extract_declarations(root)) == [
            ("API_URL", SymbolKind.EXPORTED_BINDING, True, None),
            ("Props", SymbolKind.EXPORTED_BINDING, True, None),
            ("Id", SymbolKind.EXPORTED_BINDING, True, None),
            ("Color", SymbolKind.EXPORTED_BINDING, True, None),
            ("Internal", SymbolKind.EXPORTED_BINDING, False, None),
        ]

    def test_export_clause_uses_exported_name(self, parse):
        root = parse(
            "const a = 1;\n"
            "const b = 2;\n"
            "export { a, b as renamed };\n"
        )
        exported = [d.name for d in extract_declarations(root) if d.is_exported]

        assert exported == ["a", "renamed"]

    def test_default_exports(self, parse):
        anonymous = extract_declarations(parse("export default function () {}\n"))
        named = extract_declarations(parse("class Widget {}\nexport default Widget;\n"))

        assert [d.name for d in anonymous] == ["default"]
        assert [(d.name, d.is_exported) for d in named] == [("Widget", False), ("Widget", True)]

    def test_javascript_file(self, parse):
        root = parse(
            "export class Cart {\n  add(item) {}\n}\n"
            "export const total = (items) => items.length;\n",
            path="cart.js",
        )

        assert [d.name for d in extract_declarations(root)] == ["Cart", "add", "total"]

    def test_nested_declarations_are_ignored(self, parse):
        root = parse("function outer() {\n  function inner() {}\n  class Local {}\n}\n")

        assert [d.name for d in extract_declarations(root)] == ["outer"]


def test_create_batches():
    assert create_batches([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert create_batches([], 3) == []


class TestExtractionCache:

    def test_key_includes_path(self):
        assert CacheKey.for_content("a.ts", "x") != CacheKey.for_content("b.ts", "x")
        assert CacheKey.for_content("a.ts", "x") == CacheKey.for_content("a.ts", "x")

    def test_stats_and_clear(self):
        cache = ExtractionCache()
        key = CacheKey.for_content("a.ts", "x")

        assert cache.get(key) is None
        cache.put(key, [])
        assert cache.get(key) == ()
        assert key in cache
        assert cache.stats() == {'entries': 1, 'hits': 1, 'misses': 1}

        cache.clear()
        assert len(cache) == 0
        assert cache.stats() == {'entries': 0, 'hits': 0, 'misses': 0}


class TestSymbolExtractor:

    @pytest.fixture
    def provider(self):
        return InMemorySourceProvider({
            "head": {
                "src/a.ts": "export function a() {}\n",
                "src/b.ts": "export class B {}\n",
                "src/empty.ts": "const x = 1;\n",
                "README.md": "# readme\n",
            },
        })

    def test_results_keep_request_order(self, provider, counting_parser):
        extractor = SymbolExtractor(provider, counting_parser)

        results = extractor.extract(["src/b.ts", "README.md", "src/empty.ts", "src/a.ts"], "head")

        assert [entry.path for entry in results] == ["src/b.ts", "src/a.ts"]
        assert "README.md" not in counting_parser.calls

    def test_identical_content_is_not_reparsed(self, provider, counting_parser):
        extractor = SymbolExtractor(provider, counting_parser)

        first = extractor.extract(["src/a.ts", "src/b.ts"], "head")
        calls = len(counting_parser.calls)
        second = extractor.extract(["src/a.ts", "src/b.ts"], "head")

        assert first == second
        assert len(counting_parser.calls) == calls == 2
        assert extractor.cache.stats()['hits'] == 2

    def test_empty_results_are_cached(self, provider, counting_parser):
        extractor = SymbolExtractor(provider, counting_parser)

        extractor.extract(["src/empty.ts"], "head")
        extractor.extract(["src/empty.ts"], "head")

        assert counting_parser.calls == ["src/empty.ts"]

    def test_missing_file_is_skipped(self, provider, counting_parser):
        extractor = SymbolExtractor(provider, counting_parser)

        results = extractor.extract(["src/gone.ts", "src/a.ts"], "head")

        assert [entry.path for entry in results] == ["src/a.ts"]

    def test_duplicates_are_extracted_once(self, provider, counting_parser):
        extractor = SymbolExtractor(provider, counting_parser)

        results = extractor.extract(["src/a.ts", "src/a.ts"], "head")

        assert [entry.path for entry in results] == ["src/a.ts"]
        assert counting_parser.calls == ["src/a.ts"]

    def test_many_files_across_batches(self, counting_parser):
        files = {f"src/f{i}.ts": f"export function f{i}() {{}}\n" for i in range(25)}
        extractor = SymbolExtractor(
            InMemorySourceProvider({"head": files}), counting_parser,
            config=ReviewConfiguration(batch_size=4),
        )

        results = extractor.extract(list(files), "head")

        assert [entry.path for entry in results] == list(files)
        assert [entry.symbols[0].name for entry in results] == [f"f{i}" for i in range(25)]
        assert sorted(counting_parser.calls) == sorted(files)

    def test_batches_run_concurrently_and_are_joined(self, tree_sitter_parser):
        batch_size = 3

        class BatchTracker:
            def __init__(self):
                self.lock = threading.Lock()
                self.in_flight = 0
                self.peak = 0
                self.events = []
                # Every member of a batch must be parsing at the same time to pass
                self.barrier = threading.Barrier(batch_size, timeout=10)

            def parse(self, path, text):
                with self.lock:
                    self.in_flight += 1
                    self.peak = max(self.peak, self.in_flight)
                    self.events.append(("start", path))
                self.barrier.wait()
                try:
                    return tree_sitter_parser.parse(path, text)
                finally:
                    with self.lock:
                        self.in_flight -= 1
                        self.events.append(("end", path))

            def supports(self, path):
                return True

        files = {f"src/f{i}.ts": f"export function f{i}() {{}}\n" for i in range(9)}
        tracker = BatchTracker()
        extractor = SymbolExtractor(
            InMemorySourceProvider({"head": files}), tracker,
            config=ReviewConfiguration(batch_size=batch_size),
        )

        results = extractor.extract(list(files), "head")

        assert [entry.path for entry in results] == list(files)
        assert tracker.peak == batch_size

        position = {event: index for index, event in enumerate(tracker.events)}
        batches = create_batches(list(files), batch_size)
        for current, following in zip(batches, batches[1:]):
            last_end = max(position[("end", path)] for path in current)
            first_start = min(position[("start", path)] for path in following)
            assert last_end < first_start

    def test_parse_failure_is_isolated_and_not_cached(self, provider, counting_parser):
        class FailingParser:
            def __init__(self):
                self.calls = []

            def parse(self, path, text):
                self.calls.append(path)
                if path == "src/a.ts":
                    raise RuntimeError("boom")
                return counting_parser.parse(path, text)

            def supports(self, path):
                return True

        parser = FailingParser()
        extractor = SymbolExtractor(provider, parser)

        results = extractor.extract(["src/a.ts", "src/b.ts"], "head")
        extractor.extract(["src/a.ts"], "head")

        assert [entry.path for entry in results] == ["src/b.ts"]
        assert len(parser.calls) == 3

    def test_files_the_parser_cannot_handle_are_skipped(self):
        parser = CountingParser(TreeSitterParser(languages=["javascript"]))
        extractor = SymbolExtractor(InMemorySourceProvider({"head": {
            "src/a.ts": "export function a() {}\n",
            "src/b.js": "export function b() {}\n",
        }}), parser)

        results = extractor.extract(["src/a.ts", "src/b.js"], "head")

        assert [entry.path for entry in results] == ["src/b.js"]
        assert parser.calls == ["src/b.js"]
