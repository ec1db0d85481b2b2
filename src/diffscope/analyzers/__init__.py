"""Dependency ordering, symbol extraction and usage analysis."""

from .import_graph_builder import (
    DependencyGraphBuilder, DependencyGraph, DependencyEdge, FileAnalysis, ImportRecord
)
from .topological_orderer import (
    TopologicalOrderer, OrderDirection, OrderingResult, alphabetical_order
)
from .extraction_cache import ExtractionCache, CacheKey
from .symbol_extractor import SymbolExtractor, SymbolDeclaration, SymbolKind, FileSymbols
from .change_element_mapper import ChangeElementMapper
from .usage_analyzer import (
    UsageScanner, UsageReport, AffectedFile, SymbolReference, DefinedSymbol,
    UsageKind, ImpactLevel
)

__all__ = [
    "DependencyGraphBuilder", "DependencyGraph", "DependencyEdge", "FileAnalysis", "ImportRecord",
    "TopologicalOrderer", "OrderDirection", "OrderingResult", "alphabetical_order",
    "ExtractionCache", "CacheKey",
    "SymbolExtractor", "SymbolDeclaration", "SymbolKind", "FileSymbols",
    "ChangeElementMapper",
    "UsageScanner", "UsageReport", "AffectedFile", "SymbolReference", "DefinedSymbol",
    "UsageKind", "ImpactLevel",
]
