"""Tests for the PKGBUILD security scanner."""

import logging
from pathlib import Path

import pytest

from aur_sentinel.core.blocklist import BanCategory, BannedTerm
from aur_sentinel.core.security import Finding, find_banned_terms
from aur_sentinel.models.recipe import Position
from aur_sentinel.parsers.pkgbuild import parse_recipe

DATA = Path(__file__).parent / "data"


def scan(text, **kwargs):
    return find_banned_terms(parse_recipe(text), **kwargs)


def commands(text, **kwargs):
    return [f.command for f in scan(text, **kwargs)]


# ═══════════════════════════════════════════
# Fixture PKGBUILDs
# ═══════════════════════════════════════════


class TestFixturePkgbuilds:
    def test_bad_has_five_findings(self):
        findings = find_banned_terms(parse_recipe((DATA / "bad.PKGBUILD").read_bytes()))
        assert len(findings) == 5
        assert [f.command for f in findings] == ["curl", "bash", "wget", "python3", "sudo"]
        assert [f.position.line for f in findings] == [15, 16, 21, 29, 31]
        assert [f.category for f in findings] == [
            BanCategory.DOWNLOADING,
            BanCategory.SCRIPT_RUNNING,
            BanCategory.DOWNLOADING,
            BanCategory.INLINE_CODE,
            BanCategory.PERMISSIONS,
        ]
        assert [f.depth for f in findings] == [0, 0, 1, 0, 0]

    def test_good_has_none(self):
        assert find_banned_terms(parse_recipe((DATA / "good.PKGBUILD").read_bytes())) == []

    def test_deterministic(self):
        recipe = parse_recipe((DATA / "bad.PKGBUILD").read_bytes())
        assert find_banned_terms(recipe) == find_banned_terms(recipe)


# ═══════════════════════════════════════════
# Default blocklist
# ═══════════════════════════════════════════


class TestDefaultBlocklist:
    @pytest.mark.parametrize(
        "line, category",
        [
            ("curl -LO https://example.com/x", BanCategory.DOWNLOADING),
            ("/usr/bin/wget https://example.com/x", BanCategory.DOWNLOADING),
            ("eval \"$cmd\"", BanCategory.SCRIPT_RUNNING),
            ("zsh install.zsh", BanCategory.SCRIPT_RUNNING),
            ("doas make install", BanCategory.PERMISSIONS),
            ("chmod u+s /usr/bin/foo", BanCategory.PERMISSIONS),
            ("chmod 4755 /usr/bin/foo", BanCategory.PERMISSIONS),
            ("rm -rf /", BanCategory.DESTRUCTIVE),
            ("rm -r -f ~", BanCategory.DESTRUCTIVE),
            ('rm --recursive "$HOME"', BanCategory.DESTRUCTIVE),
            ("dd if=image.bin of=/dev/sda", BanCategory.DESTRUCTIVE),
            ("python -c 'print(1)'", BanCategory.INLINE_CODE),
            ("python3.12 -Bc 'import os'", BanCategory.INLINE_CODE),
            ("perl -pe 's/a/b/' file", BanCategory.INLINE_CODE),
        ],
    )
    def test_flagged(self, line, category):
        findings = scan(line)
        assert len(findings) == 1
        assert findings[0].category is category

    @pytest.mark.parametrize(
        "line",
        [
            'rm -rf "$pkgdir/usr/share/doc"',
            "rm -f /tmp/build.log",
            "chmod 0755 bin/foo",
            "chmod +x configure",
            "dd if=/dev/zero of=/dev/null count=1",
            "python setup.py build",
            "python -m build --wheel",
            "perl Makefile.PL",
            "echo curl",
            "make install",
            "command -v curl",
            "command -V sudo",
            "if command -v sudo >/dev/null; then :; fi",
        ],
    )
    def test_not_flagged(self, line):
        assert scan(line) == []


# ═══════════════════════════════════════════
# Where commands hide
# ═══════════════════════════════════════════


class TestTraversal:
    @pytest.mark.parametrize(
        "text",
        [
            "build() {\n  if true; then\n    for x in a; do\n      sudo true\n    done\n  fi\n}",
            "case $x in\n  a) sudo true ;;\nesac",
            "while true; do sudo true; done",
            "true && sudo true",
            "true | sudo tee /etc/x",
            "( sudo true )",
            "{ sudo true; }",
            "x=$(sudo true)",
            "arr=(a \"$(sudo true)\")",
            "echo `sudo true`",
            "echo \"${X:-$(sudo true)}\"",
            "echo > \"$(sudo true)\"",
            "cat <<EOF\n$(sudo true)\nEOF\n",
            "while read -r l; do :; done < <(sudo cat /etc/shadow)",
            "FOO=$(sudo true) make",
            "local v=(\"$(sudo true)\")",
        ],
    )
    def test_finds_nested_invocation(self, text):
        assert commands(text) == ["sudo"]

    def test_quoted_heredoc_is_data(self):
        assert scan("cat <<'EOF'\nsudo rm -rf /\nEOF\n") == []

    def test_non_literal_command_name_ignored(self):
        assert scan('"$CURL" https://example.com') == []

    def test_one_finding_per_invocation(self):
        assert commands("sudo curl https://example.com") == ["sudo"]


class TestWrappers:
    @pytest.mark.parametrize(
        "line",
        [
            "env curl x",
            "env -i FOO=bar curl x",
            "command curl x",
            "exec curl x",
            "nohup nice -n 10 curl x",
            "timeout 30s curl x",
            "xargs -0 curl",
            "time curl x",
            "command -p curl x",
            "env -u NAME curl x",
            "env -C /tmp curl x",
            "timeout -s KILL 5 curl x",
            "timeout --signal TERM 5 curl x",
            "xargs -n 1 curl",
        ],
    )
    def test_looks_through(self, line):
        findings = scan(line)
        assert [f.command for f in findings] == ["curl"]
        assert findings[0].position.column == 1

    def test_wrapper_without_command(self):
        assert scan("env -i") == []

    def test_wrapper_itself_banned(self):
        blocklist = (BannedTerm("env", BanCategory.PERMISSIONS, "no env"),)
        assert commands("env curl x", blocklist=blocklist) == ["env"]


# ═══════════════════════════════════════════
# Options
# ═══════════════════════════════════════════


class TestMaxDepth:
    TEXT = "sudo true\nx=$(curl a)\ny=$(echo $(wget b))\n"

    def test_unbounded(self):
        findings = scan(self.TEXT)
        assert [(f.command, f.depth) for f in findings] == [("sudo", 0), ("curl", 1), ("wget", 2)]

    @pytest.mark.parametrize("depth, expected", [(0, ["sudo"]), (1, ["sudo", "curl"]), (2, ["sudo", "curl", "wget"])])
    def test_bounded(self, depth, expected):
        assert commands(self.TEXT, max_depth=depth) == expected


class TestCustomBlocklist:
    def test_custom_terms_only(self):
        blocklist = (BannedTerm("make", BanCategory.DESTRUCTIVE, "no make"),)
        findings = scan("curl x\nmake install", blocklist=blocklist)
        assert [f.command for f in findings] == ["make"]
        assert findings[0].reason == "no make"

    def test_empty_blocklist(self):
        assert scan("sudo rm -rf /", blocklist=()) == []


# ═══════════════════════════════════════════
# Findings
# ═══════════════════════════════════════════


class TestFinding:
    def test_ordered_by_position(self):
        findings = scan("x=$(curl a); wget b\nsudo c")
        assert [f.command for f in findings] == ["curl", "wget", "sudo"]
        offsets = [f.position.offset for f in findings]
        assert offsets == sorted(offsets)

    def test_arguments_and_position(self):
        (finding,) = scan("pkgname=x\n  curl -o out 'https://example.com/a b'")
        assert finding.arguments == ("-o", "out", "https://example.com/a b")
        assert finding.position == Position(12, 2, 3)

    def test_to_dict(self):
        finding = Finding("curl", ("x",), Position(0, 1, 1), BanCategory.DOWNLOADING, "downloads", 1)
        assert finding.to_dict() == {
            "command": "curl",
            "arguments": ["x"],
            "line": 1,
            "column": 1,
            "offset": 0,
            "category": "downloading",
            "reason": "downloads",
            "depth": 1,
        }

    def test_str(self):
        finding = Finding("curl", ("x",), Position(0, 3, 5), BanCategory.DOWNLOADING, "downloads")
        assert str(finding) == "3:5: curl x [downloading] downloads"

    def test_findings_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="aur_sentinel.core.security")
        scan("curl x")
        assert "[SECURITY]" in caplog.text

    def test_empty_recipe(self):
        assert scan("") == []
