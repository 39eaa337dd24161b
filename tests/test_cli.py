"""Tests for the CLI entry points."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from aur_sentinel.cli.main import cli

DATA = Path(__file__).parent / "data"


@pytest.fixture
def runner():
    return CliRunner()


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "aur-sentinel" in result.output

    def test_scan_help(self, runner):
        result = runner.invoke(cli, ["scan", "--help"])
        assert result.exit_code == 0
        assert "--blocklist" in result.output
        assert "--max-depth" in result.output
        assert "--format" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output


class TestScan:
    def test_clean_pkgbuild(self, runner):
        result = runner.invoke(cli, ["scan", str(DATA / "good.PKGBUILD")])
        assert result.exit_code == 0
        assert "No banned terms" in result.output

    def test_findings_exit_code(self, runner):
        result = runner.invoke(cli, ["scan", str(DATA / "bad.PKGBUILD")])
        assert result.exit_code == 2
        assert "curl" in result.output

    def test_json_output(self, runner):
        result = runner.invoke(cli, ["scan", str(DATA / "bad.PKGBUILD"), "--format", "json"])
        assert result.exit_code == 2
        findings = json.loads(result.output)
        assert [f["command"] for f in findings] == ["curl", "bash", "wget", "python3", "sudo"]

    def test_max_depth(self, runner):
        result = runner.invoke(cli, ["scan", str(DATA / "bad.PKGBUILD"), "-f", "json", "--max-depth", "0"])
        assert "wget" not in [f["command"] for f in json.loads(result.output)]

    def test_custom_blocklist(self, runner, tmp_path):
        blocklist = tmp_path / "extra.toml"
        blocklist.write_text(
            '[[term]]\ncommand = "cmake"\ncategory = "destructive"\nreason = "test"\n',
            encoding="utf-8",
        )
        result = runner.invoke(
            cli, ["scan", str(DATA / "good.PKGBUILD"), "-b", str(blocklist), "-f", "json"]
        )
        assert result.exit_code == 2
        assert {f["command"] for f in json.loads(result.output)} == {"cmake"}

    def test_invalid_blocklist(self, runner, tmp_path):
        blocklist = tmp_path / "broken.toml"
        blocklist.write_text("[[term]\n", encoding="utf-8")
        result = runner.invoke(cli, ["scan", str(DATA / "good.PKGBUILD"), "-b", str(blocklist)])
        assert result.exit_code == 1
        assert "Invalid blocklist" in result.output

    def test_parse_error(self, runner, tmp_path):
        pkgbuild = tmp_path / "PKGBUILD"
        pkgbuild.write_text("build() {\n  make\n", encoding="utf-8")
        result = runner.invoke(cli, ["scan", str(pkgbuild)])
        assert result.exit_code == 1
        assert "unterminated body of function 'build'" in result.output

    def test_missing_file(self, runner):
        result = runner.invoke(cli, ["scan", "does-not-exist"])
        assert result.exit_code != 0


class TestInfo:
    def test_json(self, runner):
        result = runner.invoke(cli, ["info", str(DATA / "good.PKGBUILD"), "--format", "json"])
        assert result.exit_code == 0
        metadata = json.loads(result.output)
        assert metadata["pkgname"] == ["libfoo", "libfoo-docs"]
        assert metadata["version"] == "1:2.4.1-3"
        assert "zlib>=1.2.11" in metadata["depends"]

    def test_table(self, runner):
        result = runner.invoke(cli, ["info", str(DATA / "good.PKGBUILD")])
        assert result.exit_code == 0
        assert "pkgbase" in result.output


class TestVersionCommands:
    @pytest.mark.parametrize("a, b, expected", [("1.2.3", "1.10.0", "-1"), ("2.0.0", "2.0.0", "0"), ("1.0.0", "1.0", "1")])
    def test_vercmp(self, runner, a, b, expected):
        result = runner.invoke(cli, ["vercmp", a, b])
        assert result.exit_code == 0
        assert result.output.strip() == expected

    def test_satisfied(self, runner):
        result = runner.invoke(cli, ["satisfies", "python>=3.10.0", "3.12.1"])
        assert result.exit_code == 0

    def test_not_satisfied(self, runner):
        result = runner.invoke(cli, ["satisfies", "python>=3.10.0", "3.9.0"])
        assert result.exit_code == 1
        assert "does not satisfy" in result.output

    def test_bad_dependency(self, runner):
        result = runner.invoke(cli, ["satisfies", ">=1.0", "1.0.0"])
        assert result.exit_code == 2


class TestConf:
    def test_all_directives(self, runner):
        result = runner.invoke(cli, ["conf", str(DATA / "pacman.conf")])
        assert result.exit_code == 0
        assert "HoldPkg = pacman glibc" in result.output
        assert "Color" in result.output

    def test_key(self, runner):
        result = runner.invoke(cli, ["conf", str(DATA / "pacman.conf"), "--key", "ParallelDownloads"])
        assert result.exit_code == 0
        assert result.output.strip() == "5"

    def test_missing_key(self, runner):
        result = runner.invoke(cli, ["conf", str(DATA / "pacman.conf"), "-k", "NoSuchThing"])
        assert result.exit_code == 1

    def test_parse_error(self, runner, tmp_path):
        conf = tmp_path / "pacman.conf"
        conf.write_text("[options]\nHold Pkg = pacman\n", encoding="utf-8")
        result = runner.invoke(cli, ["conf", str(conf)])
        assert result.exit_code == 1
        assert "line 2" in result.output
