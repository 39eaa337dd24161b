"""
Security Scanner.

Walks a parsed PKGBUILD and reports every command invocation that matches
a banned term. Nothing in the recipe is ever executed or expanded; command
substitutions are inspected through their parsed bodies.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from aur_sentinel.core.blocklist import DEFAULT_BLOCKLIST, BanCategory, BannedTerm
from aur_sentinel.models.recipe import (
    ArithmeticCommand,
    Assignment,
    CaseClause,
    Command,
    CommandList,
    ForLoop,
    FunctionDef,
    Group,
    HereDocument,
    IfClause,
    Pipeline,
    Position,
    Recipe,
    Redirect,
    Redirected,
    Statement,
    WhileLoop,
    Word,
)

logger = logging.getLogger(__name__)

# Commands that run their first non-option argument as another command.
WRAPPER_COMMANDS = frozenset({"env", "command", "exec", "nohup", "nice", "time", "timeout", "xargs", "builtin"})
_WRAPPER_OPTION_RE = re.compile(r"^(?:-.*|[A-Za-z_][A-Za-z0-9_]*=.*|\d+(?:\.\d+)?[smhd]?)$")
# Options whose value is the next argument.
_WRAPPER_VALUE_OPTIONS = {
    "env": frozenset({"-u", "-C", "--unset", "--chdir"}),
    "timeout": frozenset({"-s", "-k", "--signal", "--kill-after"}),
    "nice": frozenset({"-n", "--adjustment"}),
    "xargs": frozenset({"-a", "-d", "-E", "-I", "-L", "-n", "-P", "-s"}),
    "exec": frozenset({"-a"}),
}
# `command -v curl` only looks curl up.
_LOOKUP_OPTION_RE = re.compile(r"^-[A-Za-z]*[vV]")


@dataclass(frozen=True)
class Finding:
    """
    One banned command invocation.

    Attributes:
        command: The matched command name, after looking through wrappers.
        arguments: Its arguments as written.
        position: Where the invocation starts.
        category: Danger category of the matched term.
        reason: Explanation taken from the matched term.
        depth: Command-substitution nesting depth (0 = top level).
    """

    command: str
    arguments: tuple[str, ...]
    position: Position
    category: BanCategory
    reason: str
    depth: int = 0

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "arguments": list(self.arguments),
            "line": self.position.line,
            "column": self.position.column,
            "offset": self.position.offset,
            "category": self.category.value,
            "reason": self.reason,
            "depth": self.depth,
        }

    def __str__(self) -> str:
        invocation = " ".join((self.command, *self.arguments))
        return f"{self.position}: {invocation} [{self.category.value}] {self.reason}"


def _argument_text(word: Word) -> str:
    """Literal text of a word, or its source with quotes removed."""
    literal = word.literal
    if literal is not None:
        return literal
    return word.raw.replace('"', "").replace("'", "")


class _Scanner:
    def __init__(self, blocklist: Sequence[BannedTerm], max_depth: int | None):
        self.blocklist = blocklist
        self.max_depth = max_depth
        self.findings: list[Finding] = []

    def statements(self, statements: Iterable[Statement], depth: int) -> None:
        for statement in statements:
            self.statement(statement, depth)

    def statement(self, node: Statement, depth: int) -> None:
        match node:
            case Command():
                self.command(node, depth)
            case Assignment():
                self.words(node.words, depth)
            case FunctionDef():
                self.statements(node.body, depth)
            case Pipeline():
                self.statements(node.stages, depth)
            case CommandList():
                self.statements(node.items, depth)
            case IfClause():
                for branch in node.branches:
                    self.statements(branch.condition, depth)
                    self.statements(branch.body, depth)
                self.statements(node.orelse, depth)
            case ForLoop():
                self.words(node.items or (), depth)
                self.statements(node.body, depth)
            case WhileLoop():
                self.statements(node.condition, depth)
                self.statements(node.body, depth)
            case CaseClause():
                self.words((node.subject,), depth)
                for arm in node.arms:
                    self.words(arm.patterns, depth)
                    self.statements(arm.body, depth)
            case Group():
                self.statements(node.body, depth)
            case Redirected():
                self.statement(node.statement, depth)
                self.redirects(node.redirects, depth)
            case ArithmeticCommand():
                pass

    def command(self, node: Command, depth: int) -> None:
        for assignment in node.assignments:
            self.words(assignment.words, depth)

        if node.name is not None:
            arguments = tuple(_argument_text(word) for word in node.arguments)
            hit = self.match(node.name, arguments)
            if hit is not None:
                term, name, args = hit
                self.findings.append(Finding(name, args, node.position, term.category, term.reason, depth))

        self.words(node.words, depth)
        self.redirects(node.redirects, depth)

    def match(self, name: str, arguments: tuple[str, ...]) -> tuple[BannedTerm, str, tuple[str, ...]] | None:
        """First banned term matching the invocation, looking through wrappers."""
        for term in self.blocklist:
            if term.matches(name, arguments):
                return term, name, arguments

        wrapper = name.rsplit("/", 1)[-1]
        if wrapper not in WRAPPER_COMMANDS:
            return None
        takes_value = _WRAPPER_VALUE_OPTIONS.get(wrapper, frozenset())
        rest = list(arguments)
        while rest and _WRAPPER_OPTION_RE.match(rest[0]):
            option = rest.pop(0)
            if wrapper == "command" and _LOOKUP_OPTION_RE.match(option):
                return None
            if option in takes_value and rest:
                rest.pop(0)
        if not rest:
            return None
        return self.match(rest[0], tuple(rest[1:]))

    def words(self, words: Iterable[Word], depth: int) -> None:
        if self.max_depth is not None and depth >= self.max_depth:
            return
        for word in words:
            for substitution in word.substitutions:
                self.statements(substitution.body, depth + 1)

    def redirects(self, redirects: Iterable[Redirect], depth: int) -> None:
        for redirect in redirects:
            target = redirect.target
            self.words((target.body if isinstance(target, HereDocument) else target,), depth)


def find_banned_terms(
    recipe: Recipe,
    blocklist: Sequence[BannedTerm] = DEFAULT_BLOCKLIST,
    *,
    max_depth: int | None = None,
) -> list[Finding]:
    """
    Find every banned command invocation in a recipe.

    Each invocation yields at most one finding, for the first term of the
    blocklist it matches.

    Args:
        recipe: Parsed PKGBUILD.
        blocklist: Banned terms, checked in order.
        max_depth: How many levels of command substitution to descend into.
            None descends without limit; 0 checks top-level commands only.

    Returns:
        Findings ordered by their position in the recipe.
    """
    scanner = _Scanner(blocklist, max_depth)
    scanner.statements(recipe.statements, depth=0)
    findings = sorted(scanner.findings, key=lambda f: f.position.offset)

    for finding in findings:
        logger.info(f"[SECURITY] {recipe.source}:{finding}")
    logger.debug(f"[SECURITY] {recipe.source}: {len(findings)} banned term(s)")
    return findings
