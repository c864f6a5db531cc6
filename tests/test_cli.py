"""Tests for the CLI command."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from pkgsyms import __version__
from pkgsyms.cli import app
from pkgsyms.search.extractor import host_goos

runner = CliRunner()


class TestMain:
    def test_prints_json_array(self, go_workspace: Path) -> None:
        result = runner.invoke(app, [str(go_workspace), "shape", "--quiet"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [(s["name"], s["kind"]) for s in data] == [("Shape", "interface")]
        assert set(data[0]) == {"name", "kind", "package", "path", "line", "character"}

    def test_query_defaults_to_everything(self, go_workspace: Path) -> None:
        result = runner.invoke(app, [str(go_workspace), "-q"])

        assert result.exit_code == 0
        names = {s["name"] for s in json.loads(result.stdout)}
        assert names == {"Shape", "Square", "Area", "NewSquare", "Clamp"}

    def test_missing_root_argument(self) -> None:
        result = runner.invoke(app, [])

        assert result.exit_code != 0

    def test_nonexistent_root(self, tmp_path: Path) -> None:
        result = runner.invoke(app, [str(tmp_path / "absent"), "x", "-q"])

        assert result.exit_code == 1
        assert "not a directory" in result.output.lower()

    def test_invalid_concurrency(self, go_workspace: Path) -> None:
        result = runner.invoke(app, [str(go_workspace), "--parse-concurrency", "0", "-q"])

        assert result.exit_code == 1
        assert "parse_concurrency" in result.output

    def test_tags_are_forwarded(self, tmp_path: Path) -> None:
        pkg = tmp_path / "pkg"
        pkg.mkdir()
        (pkg / "slow.go").write_text(
            "//go:build integration\n\npackage pkg\n\nfunc Slow() {}\n", encoding="utf-8"
        )
        (pkg / "fast.go").write_text(
            "//go:build !integration\n\npackage pkg\n\nfunc Fast() {}\n", encoding="utf-8"
        )

        result = runner.invoke(app, [str(tmp_path), "--tags", "integration", "-q"])

        assert result.exit_code == 0
        assert [s["name"] for s in json.loads(result.stdout)] == ["Slow"]

    def test_progress_mode_exits_cleanly(self, go_workspace: Path) -> None:
        result = runner.invoke(app, [str(go_workspace), "clamp"])

        assert result.exit_code == 0
        assert "Clamp" in result.output

    def test_tags_keep_host_platform_files(self, tmp_path: Path) -> None:
        pkg = tmp_path / "pkg"
        pkg.mkdir()
        (pkg / "host.go").write_text(
            f"//go:build {host_goos()}\n\npackage pkg\n\nfunc OnHost() {{}}\n", encoding="utf-8"
        )

        result = runner.invoke(app, [str(tmp_path), "--tags", "integration", "-q"])

        assert result.exit_code == 0
        assert [s["name"] for s in json.loads(result.stdout)] == ["OnHost"]

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output
