"""Per-run accumulation of matched symbols, failures, and progress."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True, slots=True)
class Symbol:
    """A declaration that matched the query, as reported to the caller.

    Attributes:
        name: Declared identifier.
        kind: One of "func", "type", "interface".
        package: Name of the enclosing package.
        path: Path of the source file.
        line: 0-based line of the identifier.
        character: Always 0; columns are not reported.
    """

    name: str
    kind: str
    package: str
    path: str
    line: int
    character: int = 0


@dataclass(frozen=True, slots=True)
class UnitFailure:
    """A package unit that could not be listed or extracted.

    Attributes:
        import_path: Path of the unit relative to its source root.
        stage: "list" or "extract".
        message: Description of the underlying error.
    """

    import_path: str
    stage: str
    message: str


def symbols_to_json(symbols: Iterable[Symbol]) -> str:
    """Serialize symbols as a pretty-printed JSON array."""
    return json.dumps([asdict(s) for s in symbols], indent=2, ensure_ascii=False)


class ResultAggregator:
    """Collects the output of every extraction job in one run.

    All mutation happens under a single lock. The completed counter is
    bumped and reported inside the same critical section, so progress
    callbacks see strictly increasing, gap-free counts.
    """

    def __init__(self, progress: ProgressCallback | None = None) -> None:
        self._lock = threading.Lock()
        self._progress = progress
        self._symbols: list[Symbol] = []
        self._failures: list[UnitFailure] = []
        self._completed = 0
        self._total = 0

    def append(self, symbols: Iterable[Symbol]) -> None:
        batch = list(symbols)
        with self._lock:
            self._symbols.extend(batch)

    def add_dispatched(self) -> int:
        """Count one more dispatched job and return the new total."""
        with self._lock:
            self._total += 1
            return self._total

    def increment_and_report(self) -> int:
        """Count one finished job, report progress, and return the new count."""
        with self._lock:
            self._completed += 1
            if self._progress is not None:
                self._progress(self._completed, self._total)
            return self._completed

    def record_failure(self, import_path: str, stage: str, error: BaseException | str) -> None:
        with self._lock:
            self._failures.append(UnitFailure(import_path, stage, str(error)))

    @property
    def symbols(self) -> list[Symbol]:
        with self._lock:
            return list(self._symbols)

    @property
    def failures(self) -> list[UnitFailure]:
        with self._lock:
            return list(self._failures)

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def total(self) -> int:
        return self._total

    def to_json(self) -> str:
        return symbols_to_json(self.symbols)
