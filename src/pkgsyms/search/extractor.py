"""Declaration extraction from Go package directories using tree-sitter."""

from __future__ import annotations

import platform
import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import tree_sitter_go
from tree_sitter import Language, Parser


class DeclarationKind(Enum):
    """Syntactic category of a top-level declaration."""

    FUNCTION = "function"
    TYPE = "type"
    INTERFACE = "interface"


@dataclass(frozen=True, slots=True)
class Declaration:
    """A top-level named declaration found in a source file.

    Attributes:
        name: Declared identifier.
        kind: Function, type, or interface declaration.
        package: Name of the enclosing package.
        file: Path of the source file.
        line: 0-based line of the identifier.
        column: 0-based column of the identifier.
    """

    name: str
    kind: DeclarationKind
    package: str
    file: Path
    line: int
    column: int


class Extractor(Protocol):
    """Turns a directory into the declarations of its source files.

    Implementations fail soft: files that cannot be read or parsed
    contribute nothing instead of raising.
    """

    def extract(self, directory: Path) -> list[Declaration]: ...


class GoExtractor:
    """Extracts package-level funcs, methods, and types from *.go files.

    Build tags are only consulted when some are configured. Then, as with
    the go tool, the host GOOS and GOARCH, ``unix``, ``gc`` and the
    ``go1.N`` release tags count as set too, and a file is skipped when its
    ``//go:build`` line or its ``_GOOS_GOARCH`` name suffix rules it out.
    """

    def __init__(self, build_tags: Iterable[str] | None = None) -> None:
        self._build_tags = frozenset(build_tags or ())
        self._active_tags = (
            self._build_tags | implicit_build_tags() if self._build_tags else frozenset()
        )
        self._language = Language(tree_sitter_go.language())

    @property
    def build_tags(self) -> frozenset[str]:
        return self._build_tags

    def extract(self, directory: Path) -> list[Declaration]:
        """Parse every Go file directly inside directory.

        Args:
            directory: Package directory to parse.

        Returns:
            Declarations from all readable files, in file-name order.
        """
        try:
            files = sorted(
                p for p in directory.iterdir() if p.suffix == ".go" and p.is_file()
            )
        except OSError:
            return []

        # Parsers are not thread-safe, so each call gets its own.
        parser = Parser(self._language)
        declarations: list[Declaration] = []
        for path in files:
            try:
                content = path.read_bytes()
            except OSError:
                continue
            if self._active_tags and not (
                filename_constraint_satisfied(path.name, self._active_tags)
                and build_constraint_satisfied(content, self._active_tags)
            ):
                continue
            declarations.extend(self.parse_source(content, path, parser))
        return declarations

    def parse_source(
        self, content: bytes, path: Path, parser: Parser | None = None
    ) -> list[Declaration]:
        """Extract the top-level declarations of one Go source file."""
        parser = parser or Parser(self._language)
        root = parser.parse(content).root_node

        package = ""
        for node in root.children:
            if node.type == "package_clause":
                ident = _child_by_type(node, "package_identifier")
                if ident is not None:
                    package = _node_text(ident, content)
                break

        declarations: list[Declaration] = []
        for node in root.children:
            if node.type in ("function_declaration", "method_declaration"):
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    declarations.append(
                        _declaration(name_node, DeclarationKind.FUNCTION, package, path, content)
                    )
            elif node.type == "type_declaration":
                for spec in node.children:
                    if spec.type not in ("type_spec", "type_alias"):
                        continue
                    name_node = spec.child_by_field_name("name")
                    if name_node is None:
                        continue
                    type_node = spec.child_by_field_name("type")
                    kind = (
                        DeclarationKind.INTERFACE
                        if type_node is not None and type_node.type == "interface_type"
                        else DeclarationKind.TYPE
                    )
                    declarations.append(_declaration(name_node, kind, package, path, content))
        return declarations


def build_constraint_satisfied(content: bytes, tags: Iterable[str]) -> bool:
    """Evaluate a file's ``//go:build`` line against a set of tags.

    Files without a constraint, or with one that does not parse, are
    always included.
    """
    expr = _find_constraint(content)
    if expr is None:
        return True
    try:
        return _ConstraintParser(expr, frozenset(tags)).evaluate()
    except ValueError:
        return True


_KNOWN_OS = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
    "ios", "js", "linux", "nacl", "netbsd", "openbsd", "plan9", "solaris",
    "wasip1", "windows", "zos",
})
_UNIX_OS = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
    "ios", "linux", "netbsd", "openbsd", "solaris",
})
_KNOWN_ARCH = frozenset({
    "386", "amd64", "amd64p32", "arm", "armbe", "arm64", "arm64be",
    "loong64", "mips", "mipsle", "mips64", "mips64le", "mips64p32",
    "mips64p32le", "ppc", "ppc64", "ppc64le", "riscv", "riscv64", "s390",
    "s390x", "sparc", "sparc64", "wasm",
})
_MACHINE_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv6l": "arm",
    "armv7l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "loongarch64": "loong64",
}
# Highest go1.N release tag treated as satisfied.
_GO_MINOR_RELEASE = 23


def host_goos() -> str:
    """Map ``sys.platform`` onto a GOOS name."""
    plat = sys.platform
    if plat in ("win32", "cygwin", "msys"):
        return "windows"
    if plat.startswith("sunos"):
        return "solaris"
    for goos in ("freebsd", "openbsd", "netbsd", "dragonfly", "aix"):
        if plat.startswith(goos):
            return goos
    return plat


def host_goarch() -> str:
    """Map ``platform.machine()`` onto a GOARCH name."""
    machine = platform.machine().lower()
    return _MACHINE_ARCH.get(machine, machine)


def implicit_build_tags() -> frozenset[str]:
    """Tags the go tool sets without being asked, for the current host."""
    goos = host_goos()
    tags = {goos, host_goarch(), "gc"}
    tags.update(f"go1.{minor}" for minor in range(1, _GO_MINOR_RELEASE + 1))
    if goos in _UNIX_OS:
        tags.add("unix")
    if goos == "android":
        tags.add("linux")
    if goos == "ios":
        tags.add("darwin")
    if goos == "illumos":
        tags.add("solaris")
    return frozenset(tags)


def filename_constraint_satisfied(name: str, tags: Iterable[str]) -> bool:
    """Check the ``_GOOS``, ``_GOARCH`` or ``_GOOS_GOARCH`` suffix of a file name.

    The part before the first underscore never counts, so ``linux.go`` is
    unconstrained while ``poll_linux.go`` and ``asm_linux_amd64_test.go``
    are not.
    """
    stem = name.removesuffix(".go")
    if "_" not in stem:
        return True
    parts = stem[stem.index("_") :].split("_")
    if parts[-1] == "test":
        parts = parts[:-1]
    tags = frozenset(tags)
    if len(parts) >= 2 and parts[-2] in _KNOWN_OS and parts[-1] in _KNOWN_ARCH:
        return parts[-2] in tags and parts[-1] in tags
    if parts[-1] in _KNOWN_OS or parts[-1] in _KNOWN_ARCH:
        return parts[-1] in tags
    return True


def _find_constraint(content: bytes) -> str | None:
    """Return the //go:build expression from the file header, if any."""
    for raw_line in content.decode("utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if line.startswith("//go:build "):
            return line[len("//go:build ") :].strip()
        if line.startswith("package "):
            break
    return None


_TOKEN_RE = re.compile(r"\s*(\(|\)|!|&&|\|\||[\w.]+)")


class _ConstraintParser:
    """Recursive-descent evaluator for build constraint expressions."""

    def __init__(self, expr: str, tags: frozenset[str]) -> None:
        self._tokens = self._tokenize(expr)
        self._pos = 0
        self._tags = tags

    @staticmethod
    def _tokenize(expr: str) -> list[str]:
        tokens: list[str] = []
        pos = 0
        expr = expr.rstrip()
        while pos < len(expr):
            m = _TOKEN_RE.match(expr, pos)
            if m is None:
                raise ValueError(f"bad build constraint: {expr!r}")
            tokens.append(m.group(1))
            pos = m.end()
        return tokens

    def evaluate(self) -> bool:
        value = self._or()
        if self._pos != len(self._tokens):
            raise ValueError("trailing tokens in build constraint")
        return value

    def _peek(self) -> str | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> str:
        tok = self._peek()
        if tok is None:
            raise ValueError("unexpected end of build constraint")
        self._pos += 1
        return tok

    def _or(self) -> bool:
        value = self._and()
        while self._peek() == "||":
            self._next()
            rhs = self._and()
            value = value or rhs
        return value

    def _and(self) -> bool:
        value = self._not()
        while self._peek() == "&&":
            self._next()
            rhs = self._not()
            value = value and rhs
        return value

    def _not(self) -> bool:
        tok = self._next()
        if tok == "!":
            return not self._not()
        if tok == "(":
            value = self._or()
            if self._next() != ")":
                raise ValueError("unbalanced parentheses in build constraint")
            return value
        if tok in (")", "&&", "||"):
            raise ValueError(f"unexpected {tok!r} in build constraint")
        return tok in self._tags


def _declaration(
    name_node: Any, kind: DeclarationKind, package: str, path: Path, content: bytes
) -> Declaration:
    return Declaration(
        name=_node_text(name_node, content),
        kind=kind,
        package=package,
        file=path,
        line=name_node.start_point[0],
        column=name_node.start_point[1],
    )


def _child_by_type(node: Any, type_name: str) -> Any | None:
    """Return first child of node with the given type."""
    for child in node.children:
        if child.type == type_name:
            return child
    return None


def _node_text(node: Any, content: bytes) -> str:
    """Extract source text for a tree-sitter node."""
    return content[node.start_byte : node.end_byte].decode("utf-8", errors="replace")
