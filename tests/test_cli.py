"""Integration tests for CLI commands."""

from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from dtsbundle import __version__
from dtsbundle.cli import app


runner = CliRunner()


class TestFixCommand:
    """Tests for 'dtsbundle fix'."""

    def test_fix_project(self, sample_project: Path):
        """Fixing a project rewrites the bundle and prints a summary."""
        result = runner.invoke(app, ["fix", str(sample_project)])

        assert result.exit_code == 0
        assert "Bundle summary" in result.stdout
        assert "Wrote" in result.stdout
        bundle = (sample_project / "types" / "index.d.ts").read_text(encoding="utf-8")
        assert 'declare module "ace-code/src/editor"' in bundle

    def test_fix_to_output(self, sample_project: Path):
        target = sample_project / "out.d.ts"
        result = runner.invoke(app, ["fix", str(sample_project), "--output", str(target)])

        assert result.exit_code == 0
        assert target.exists()

    def test_fix_missing_declarations(self, temp_dir: Path):
        result = runner.invoke(app, ["fix", str(temp_dir)])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_fix_bad_config(self, sample_project: Path):
        (sample_project / "dtsbundle.toml").write_text("bogus = 1\n", encoding="utf-8")
        result = runner.invoke(app, ["fix", str(sample_project)])

        assert result.exit_code == 1
        assert "bogus" in result.stdout

    def test_fix_prints_each_diagnostic(self, temp_dir: Path):
        """Diagnostics are listed with their position without --verbose."""
        (temp_dir / "types").mkdir()
        (temp_dir / "types" / "index.d.ts").write_text(
            "declare class C extends Missing {}\n", encoding="utf-8"
        )
        (temp_dir / "ace.d.ts").write_text("", encoding="utf-8")
        result = runner.invoke(app, ["fix", str(temp_dir)])

        assert result.exit_code == 0
        assert "TS2304" in result.stdout
        assert "(1,25): Cannot find name 'Missing'." in result.stdout

    def test_fix_lists_sample_diagnostics(self, sample_project: Path):
        result = runner.invoke(app, ["fix", str(sample_project)])

        assert "TS2507" in result.stdout
        assert "Type 'Options' is not a constructor function type." in result.stdout

    def test_fix_undecodable_bundle(self, sample_project: Path):
        (sample_project / "types" / "index.d.ts").write_bytes(b"\xff\xfe\xfa")
        result = runner.invoke(app, ["fix", str(sample_project)])

        assert result.exit_code == 1
        assert "Could not read" in result.stdout

    def test_fix_generate_without_compiler(self, sample_project: Path):
        with patch("dtsbundle.project.shutil.which", return_value=None):
            result = runner.invoke(app, ["fix", str(sample_project), "--generate"])

        assert result.exit_code == 1
        assert "not found on PATH" in result.stdout


class TestRewriteImportsCommand:
    """Tests for 'dtsbundle rewrite-imports'."""

    def test_rewrite_in_place(self, sample_project: Path):
        bundle = sample_project / "types" / "index.d.ts"
        result = runner.invoke(app, ["rewrite-imports", str(bundle)])

        assert result.exit_code == 0
        assert "File processing complete" in result.stdout
        text = bundle.read_text(encoding="utf-8")
        assert 'require("ace-code/src/lib/oop")' in text
        # Only specifiers change; heritage is left alone.
        assert "class Broken extends Options" in text

    def test_rewrite_to_output(self, sample_project: Path):
        bundle = sample_project / "types" / "index.d.ts"
        target = sample_project / "rewritten.d.ts"
        result = runner.invoke(app, ["rewrite-imports", str(bundle), "-o", str(target)])

        assert result.exit_code == 0
        assert 'declare module "src/editor"' in bundle.read_text(encoding="utf-8")
        assert 'declare module "ace-code/src/editor"' in target.read_text(encoding="utf-8")

    def test_rewrite_undecodable_file(self, temp_dir: Path):
        broken = temp_dir / "broken.d.ts"
        broken.write_bytes(b"\xff\xfe\xfa")
        result = runner.invoke(app, ["rewrite-imports", str(broken)])

        assert result.exit_code == 1
        assert "Could not read" in result.stdout


class TestCheckCommand:
    """Tests for 'dtsbundle check'."""

    def test_check_reports_diagnostics(self, sample_project: Path):
        result = runner.invoke(app, ["check", str(sample_project / "types" / "index.d.ts")])

        assert result.exit_code == 1
        assert "TS2507" in result.stdout
        assert "TS2307" in result.stdout
        assert "3 diagnostic(s)" in result.stdout

    def test_check_clean_file(self, temp_dir: Path):
        clean = temp_dir / "clean.d.ts"
        clean.write_text("declare class A {}\ndeclare class B extends A {}\n", encoding="utf-8")
        result = runner.invoke(app, ["check", str(clean)])

        assert result.exit_code == 0
        assert "No diagnostics" in result.stdout


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout
