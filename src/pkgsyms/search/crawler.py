"""Concurrent package discovery under one or more source roots."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

# Import paths that are never searched, relative to a source root.
_PRUNED_IMPORT_PATHS: frozenset[str] = frozenset({"builtin"})


@dataclass(frozen=True, slots=True)
class DirEntry:
    """One entry returned by a directory listing.

    Attributes:
        name: Base name of the entry.
        is_dir: True if the entry is a directory (symlinks are not followed).
    """

    name: str
    is_dir: bool


class Filesystem(Protocol):
    """Lists directory entries. Raises OSError when a listing fails."""

    def list_dir(self, path: Path) -> list[DirEntry]: ...


class LocalFilesystem:
    """Filesystem backed by os.scandir."""

    def list_dir(self, path: Path) -> list[DirEntry]:
        with os.scandir(path) as it:
            return [DirEntry(name=e.name, is_dir=e.is_dir(follow_symlinks=False)) for e in it]


@dataclass(frozen=True, slots=True)
class PackageUnit:
    """A directory discovered under a source root.

    Attributes:
        root: The source root the directory was found under.
        import_path: Path relative to root, "/"-separated. Empty for the root.
        error: The listing failure, if the directory could not be read.
    """

    root: Path
    import_path: str
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def is_excluded(base_name: str, import_path: str) -> bool:
    """Return True if a directory must be neither reported nor descended into."""
    if not base_name or base_name[0] in "._" or base_name == "testdata":
        return True
    return import_path in _PRUNED_IMPORT_PATHS


class DirectoryCrawler:
    """Walks source roots and streams every package directory it finds.

    A fixed pool of workers drains a queue of pending directories, and a
    semaphore caps how many listings run at once. Units are handed out
    through a bounded queue, so a slow consumer stalls the walk.

    Usage::

        crawler = DirectoryCrawler(LocalFilesystem(), max_listings=20)
        async for unit in crawler.crawl([Path("/workspace/src")]):
            ...
    """

    def __init__(
        self,
        filesystem: Filesystem | None = None,
        max_listings: int = 20,
        queue_size: int = 256,
    ) -> None:
        self._fs = filesystem or LocalFilesystem()
        self._max_listings = max_listings
        self._queue_size = queue_size

    async def crawl(self, roots: Sequence[Path]) -> AsyncIterator[PackageUnit]:
        """Yield a PackageUnit for every discovered directory.

        The root directories themselves are only yielded when their listing
        fails. The stream ends once every root has been fully walked.

        Args:
            roots: Source roots to walk.

        Yields:
            Discovered units, in no particular order.
        """
        units: asyncio.Queue[PackageUnit | None] = asyncio.Queue(maxsize=self._queue_size)
        producer = asyncio.create_task(self._walk(roots, units))
        try:
            while (unit := await units.get()) is not None:
                yield unit
        finally:
            if not producer.done():
                # Consumer stopped early; nothing will drain the queue.
                producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                pass

    async def _walk(
        self, roots: Sequence[Path], units: asyncio.Queue[PackageUnit | None]
    ) -> None:
        pending: asyncio.Queue[tuple[Path, Path]] = asyncio.Queue()
        for root in roots:
            pending.put_nowait((root, root))

        slots = asyncio.Semaphore(self._max_listings)
        workers = [
            asyncio.create_task(self._worker(pending, units, slots))
            for _ in range(self._max_listings)
        ]
        try:
            await pending.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        await units.put(None)

    async def _worker(
        self,
        pending: asyncio.Queue[tuple[Path, Path]],
        units: asyncio.Queue[PackageUnit | None],
        slots: asyncio.Semaphore,
    ) -> None:
        while True:
            root, directory = await pending.get()
            try:
                await self._visit(root, directory, pending, units, slots)
            finally:
                pending.task_done()

    async def _visit(
        self,
        root: Path,
        directory: Path,
        pending: asyncio.Queue[tuple[Path, Path]],
        units: asyncio.Queue[PackageUnit | None],
        slots: asyncio.Semaphore,
    ) -> None:
        import_path = "" if directory == root else directory.relative_to(root).as_posix()
        if import_path and is_excluded(directory.name, import_path):
            return

        entries: list[DirEntry] = []
        error: Exception | None = None
        async with slots:
            try:
                entries = await asyncio.to_thread(self._fs.list_dir, directory)
            except Exception as exc:  # noqa: BLE001
                error = exc

        if import_path or error is not None:
            await units.put(PackageUnit(root=root, import_path=import_path, error=error))

        for entry in entries:
            if entry.is_dir:
                pending.put_nowait((root, directory / entry.name))
