"""Workspace symbol search: crawl, extract, and aggregate in one run."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from pathlib import Path

from pkgsyms.config import SymbolsConfig
from pkgsyms.exceptions import CrawlError
from pkgsyms.search.aggregator import (
    ProgressCallback,
    ResultAggregator,
    Symbol,
    UnitFailure,
    symbols_to_json,
)
from pkgsyms.search.crawler import DirectoryCrawler, Filesystem, LocalFilesystem
from pkgsyms.search.extractor import Extractor, GoExtractor
from pkgsyms.search.pool import ExtractionPool, SourceLayout


@dataclass
class SearchResult:
    """Outcome of one search run.

    Attributes:
        symbols: Matched symbols, in no guaranteed order.
        failures: Units that could not be listed or extracted.
        completed: Number of extraction jobs that finished.
        total: Number of extraction jobs dispatched.
        layout: Source layout detected for the root.
    """

    symbols: list[Symbol] = field(default_factory=list)
    failures: list[UnitFailure] = field(default_factory=list)
    completed: int = 0
    total: int = 0
    layout: SourceLayout = SourceLayout.FLAT

    def to_json(self) -> str:
        return symbols_to_json(self.symbols)


class SymbolSearch:
    """Finds declarations matching a query across every package under a root.

    Each call to ``run`` owns a fresh aggregator, so one instance can serve
    concurrent runs.

    Usage::

        search = SymbolSearch(GoExtractor())
        result = asyncio.run(search.run(Path("/workspace"), "widget"))
        print(result.to_json())
    """

    def __init__(
        self,
        extractor: Extractor,
        config: SymbolsConfig | None = None,
        filesystem: Filesystem | None = None,
    ) -> None:
        self._extractor = extractor
        self._config = config or SymbolsConfig()
        self._fs = filesystem or LocalFilesystem()

    async def run(
        self,
        root_directory: Path,
        query: str = "",
        progress: ProgressCallback | None = None,
    ) -> SearchResult:
        """Search every package under root_directory.

        Args:
            root_directory: Workspace root. A ``src`` subdirectory switches
                to the src layout.
            query: Case-insensitive substring. Empty matches everything.
            progress: Called with (completed, total) after each package.

        Returns:
            The aggregated SearchResult.

        Raises:
            CrawlError: If the root cannot be walked at all.
            Exception: Whatever the progress callback raised, once the
                remaining packages have drained.
        """
        root = Path(root_directory).resolve()
        query = query.lower()
        aggregator = ResultAggregator(progress)

        layout = SourceLayout.detect(root)
        roots = layout.source_roots(root)
        await self._check_roots(roots)

        crawler = DirectoryCrawler(
            self._fs,
            max_listings=self._config.listing_concurrency,
            queue_size=self._config.queue_size,
        )
        async with ExtractionPool(
            self._extractor,
            aggregator,
            root,
            layout,
            query,
            max_parses=self._config.parse_concurrency,
            queue_size=self._config.queue_size,
        ) as pool:
            async with aclosing(crawler.crawl(roots)) as units:
                async for unit in units:
                    if unit.error is not None:
                        aggregator.record_failure(unit.import_path, "list", unit.error)
                    if not unit.import_path:
                        continue
                    aggregator.add_dispatched()
                    await pool.submit(unit)
            await pool.join()

        return SearchResult(
            symbols=aggregator.symbols,
            failures=aggregator.failures,
            completed=aggregator.completed,
            total=aggregator.total,
            layout=layout,
        )

    async def _check_roots(self, roots: list[Path]) -> None:
        for root in roots:
            if not root.is_dir():
                raise CrawlError(f"Not a directory: {root}", root=str(root))
            try:
                await asyncio.to_thread(self._fs.list_dir, root)
            except OSError as exc:
                raise CrawlError(f"Cannot read {root}: {exc}", root=str(root)) from exc


async def search_symbols(
    root_directory: Path,
    query: str = "",
    config: SymbolsConfig | None = None,
    progress: ProgressCallback | None = None,
) -> str:
    """Run a search with the Go extractor and return the JSON result."""
    config = config or SymbolsConfig()
    search = SymbolSearch(GoExtractor(config.build_tags), config)
    result = await search.run(root_directory, query, progress)
    return result.to_json()
