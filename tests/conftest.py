"""Shared test fixtures."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from pkgsyms.search.crawler import DirEntry, LocalFilesystem
from pkgsyms.search.extractor import Declaration, DeclarationKind


class StubExtractor:
    """Returns canned declarations per directory and tracks concurrency."""

    def __init__(
        self,
        by_dir: dict[Path, list[Declaration]] | None = None,
        failing: set[Path] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._by_dir = {p.resolve(): decls for p, decls in (by_dir or {}).items()}
        self._failing = {p.resolve() for p in (failing or set())}
        self._delay = delay
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls: list[Path] = []

    def extract(self, directory: Path) -> list[Declaration]:
        with self._lock:
            self.calls.append(directory)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self._delay:
                time.sleep(self._delay)
            key = directory.resolve()
            if key in self._failing:
                raise OSError(f"cannot parse {directory}")
            return list(self._by_dir.get(key, []))
        finally:
            with self._lock:
                self.active -= 1


class RecordingFilesystem(LocalFilesystem):
    """Local filesystem that records listings and can fail chosen paths."""

    def __init__(self, failing: set[Path] | None = None, delay: float = 0.0) -> None:
        self._failing = {p.resolve() for p in (failing or set())}
        self._delay = delay
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.listed: list[Path] = []

    def list_dir(self, path: Path) -> list[DirEntry]:
        with self._lock:
            self.listed.append(path)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self._delay:
                time.sleep(self._delay)
            if path.resolve() in self._failing:
                raise PermissionError(13, "Permission denied", str(path))
            return super().list_dir(path)
        finally:
            with self._lock:
                self.active -= 1


def decl(
    name: str,
    kind: DeclarationKind,
    package: str,
    file: Path,
    line: int = 0,
) -> Declaration:
    return Declaration(name=name, kind=kind, package=package, file=file, line=line, column=5)


@pytest.fixture
def scenario_tree(tmp_path: Path) -> tuple[Path, StubExtractor]:
    """pkgA declares DoThing and Widget; pkgB declares Gadget."""
    pkg_a = tmp_path / "pkgA"
    pkg_b = tmp_path / "pkgB"
    pkg_a.mkdir()
    pkg_b.mkdir()
    (pkg_a / "a.src").write_text(
        "func DoThing() {}\n\ntype Widget interface{}\n", encoding="utf-8"
    )
    (pkg_b / "b.src").write_text("type Gadget struct{}\n", encoding="utf-8")

    extractor = StubExtractor(
        {
            pkg_a: [
                decl("DoThing", DeclarationKind.FUNCTION, "pkga", pkg_a / "a.src", 0),
                decl("Widget", DeclarationKind.INTERFACE, "pkga", pkg_a / "a.src", 2),
            ],
            pkg_b: [decl("Gadget", DeclarationKind.TYPE, "pkgb", pkg_b / "b.src", 0)],
        }
    )
    return tmp_path, extractor


@pytest.fixture
def go_workspace(tmp_path: Path) -> Path:
    """A small flat Go workspace with two packages."""
    shapes = tmp_path / "shapes"
    shapes.mkdir()
    (shapes / "shapes.go").write_text(
        "package shapes\n"
        "\n"
        "type Shape interface {\n"
        "\tArea() float64\n"
        "}\n"
        "\n"
        "type Square struct{ side float64 }\n"
        "\n"
        "func (s Square) Area() float64 { return s.side * s.side }\n"
        "\n"
        "func NewSquare(side float64) Square { return Square{side} }\n",
        encoding="utf-8",
    )
    util = tmp_path / "internal" / "util"
    util.mkdir(parents=True)
    (util / "util.go").write_text(
        "package util\n\nfunc Clamp(v, lo, hi int) int { return v }\n",
        encoding="utf-8",
    )
    return tmp_path
