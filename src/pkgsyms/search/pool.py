"""Bounded-concurrency extraction of symbols from discovered packages."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from pkgsyms.search.aggregator import ResultAggregator, Symbol
from pkgsyms.search.crawler import PackageUnit
from pkgsyms.search.extractor import Declaration, DeclarationKind, Extractor

_KIND_NAMES: dict[DeclarationKind, str] = {
    DeclarationKind.FUNCTION: "func",
    DeclarationKind.TYPE: "type",
    DeclarationKind.INTERFACE: "interface",
}


class SourceLayout(Enum):
    """Where package directories live relative to the search root."""

    FLAT = "flat"
    SRC_PREFIXED = "src"

    @classmethod
    def detect(cls, root: Path) -> SourceLayout:
        """Use the src layout when root has a src subdirectory."""
        return cls.SRC_PREFIXED if (root / "src").is_dir() else cls.FLAT

    def source_roots(self, root: Path) -> list[Path]:
        return [root / "src"] if self is SourceLayout.SRC_PREFIXED else [root]

    def package_dir(self, root: Path, import_path: str) -> Path:
        base = root / "src" if self is SourceLayout.SRC_PREFIXED else root
        return base.joinpath(*import_path.split("/"))


def match_declarations(declarations: Iterable[Declaration], query: str) -> list[Symbol]:
    """Convert declarations whose lowercased name contains query into symbols.

    Args:
        declarations: Candidate declarations.
        query: Already-lowercased substring. Empty matches everything.
    """
    return [
        Symbol(
            name=d.name,
            kind=_KIND_NAMES[d.kind],
            package=d.package,
            path=str(d.file),
            line=d.line,
        )
        for d in declarations
        if query in d.name.lower()
    ]


class ExtractionPool:
    """Runs the extractor over submitted package units.

    A fixed number of workers pull units from a bounded queue, so at most
    ``max_parses`` extractions run at once and ``submit`` blocks when the
    queue is full. Every submitted unit is reported to the aggregator
    exactly once, whether or not extraction succeeded.
    """

    def __init__(
        self,
        extractor: Extractor,
        aggregator: ResultAggregator,
        root: Path,
        layout: SourceLayout,
        query: str,
        max_parses: int = 8,
        queue_size: int = 256,
    ) -> None:
        self._extractor = extractor
        self._aggregator = aggregator
        self._root = root
        self._layout = layout
        self._query = query
        self._max_parses = max_parses
        self._jobs: asyncio.Queue[PackageUnit] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task[None]] = []
        self._error: Exception | None = None

    async def __aenter__(self) -> ExtractionPool:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker()) for _ in range(self._max_parses)
        ]

    async def submit(self, unit: PackageUnit) -> None:
        """Queue a unit for extraction, waiting while the queue is full."""
        await self._jobs.put(unit)

    async def join(self) -> None:
        """Wait until every submitted unit has been processed.

        Raises:
            Exception: The first error a worker hit outside the extractor,
                such as a failing progress callback.
        """
        await self._jobs.join()
        if self._error is not None:
            raise self._error

    async def close(self) -> None:
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def extract(self, unit: PackageUnit) -> list[Symbol]:
        """Extract, filter, and record the symbols of a single unit."""
        directory = self._layout.package_dir(self._root, unit.import_path)
        symbols: list[Symbol] = []
        try:
            declarations = await asyncio.to_thread(self._extractor.extract, directory)
            symbols = match_declarations(declarations, self._query)
        except Exception as exc:  # noqa: BLE001
            self._aggregator.record_failure(unit.import_path, "extract", exc)
        self._aggregator.append(symbols)
        self._aggregator.increment_and_report()
        return symbols

    async def _worker(self) -> None:
        while True:
            unit = await self._jobs.get()
            try:
                await self.extract(unit)
            except Exception as exc:  # noqa: BLE001
                if self._error is None:
                    self._error = exc
            finally:
                self._jobs.task_done()
