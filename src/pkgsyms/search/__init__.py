"""Workspace symbol search: package discovery, extraction, and aggregation."""

from __future__ import annotations

from pkgsyms.search.aggregator import ResultAggregator, Symbol, UnitFailure
from pkgsyms.search.crawler import DirectoryCrawler, DirEntry, LocalFilesystem, PackageUnit
from pkgsyms.search.extractor import Declaration, DeclarationKind, Extractor, GoExtractor
from pkgsyms.search.orchestrator import SearchResult, SymbolSearch, search_symbols
from pkgsyms.search.pool import ExtractionPool, SourceLayout

__all__ = [
    "Declaration",
    "DeclarationKind",
    "DirEntry",
    "DirectoryCrawler",
    "ExtractionPool",
    "Extractor",
    "GoExtractor",
    "LocalFilesystem",
    "PackageUnit",
    "ResultAggregator",
    "SearchResult",
    "SourceLayout",
    "Symbol",
    "SymbolSearch",
    "UnitFailure",
    "search_symbols",
]
