"""
PKGBUILD syntax tree.

Built by ``aur_sentinel.parsers.pkgbuild``. The tree keeps the structure of
the script only: parameter references and substitutions are never expanded,
and nothing is ever evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Position:
    """Location in the recipe text. ``line`` and ``column`` start at 1."""

    offset: int
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


# ═══════════════════════════════════════════
# Word fragments
# ═══════════════════════════════════════════


@dataclass(frozen=True)
class Literal:
    """Plain text, with quotes and escapes already removed."""

    text: str


@dataclass(frozen=True)
class ParameterExpansion:
    """``$name``, ``$1`` or ``${...}``, kept unexpanded."""

    raw: str
    name: str
    substitutions: tuple[CommandSubstitution, ...] = ()


@dataclass(frozen=True)
class CommandSubstitution:
    """
    ``$(...)``, backquotes, or process substitution ``<(...)``/``>(...)``.

    ``raw`` is the exact source span; ``body`` is its parsed content.
    """

    raw: str
    body: tuple[Statement, ...]
    position: Position
    kind: str = "$("


@dataclass(frozen=True)
class ArithmeticExpansion:
    """``$((...))``."""

    raw: str


Fragment = Union[Literal, ParameterExpansion, CommandSubstitution, ArithmeticExpansion]


@dataclass(frozen=True)
class Word:
    """A shell word: its source text plus the fragments it is made of."""

    raw: str
    parts: tuple[Fragment, ...]
    position: Position

    @property
    def literal(self) -> str | None:
        """The word's text if it contains no expansion at all."""
        if all(isinstance(part, Literal) for part in self.parts):
            return "".join(part.text for part in self.parts)
        return None

    @property
    def substitutions(self) -> tuple[CommandSubstitution, ...]:
        """Command substitutions in this word, including those inside ``${...}``."""
        found: list[CommandSubstitution] = []
        for part in self.parts:
            if isinstance(part, CommandSubstitution):
                found.append(part)
            elif isinstance(part, ParameterExpansion):
                found.extend(part.substitutions)
        return tuple(found)

    def __str__(self) -> str:
        return self.raw


# ═══════════════════════════════════════════
# Redirections
# ═══════════════════════════════════════════


@dataclass(frozen=True)
class HereDocument:
    delimiter: str
    body: Word
    strip_tabs: bool = False
    quoted: bool = False


@dataclass(frozen=True)
class Redirect:
    op: str
    target: Word | HereDocument
    fd: str | None = None


# ═══════════════════════════════════════════
# Statements
# ═══════════════════════════════════════════


@dataclass(frozen=True)
class Assignment:
    """``name=value``, ``name+=value`` or ``name=(array elements)``."""

    name: str
    value: Word | tuple[Word, ...]
    position: Position
    append: bool = False

    @property
    def is_array(self) -> bool:
        return isinstance(self.value, tuple)

    @property
    def words(self) -> tuple[Word, ...]:
        return self.value if isinstance(self.value, tuple) else (self.value,)


@dataclass(frozen=True)
class Command:
    """A simple command: prefix assignments, words and redirections."""

    words: tuple[Word, ...]
    position: Position
    assignments: tuple[Assignment, ...] = ()
    redirects: tuple[Redirect, ...] = ()

    @property
    def name(self) -> str | None:
        """The command name, when it is plain text."""
        return self.words[0].literal if self.words else None

    @property
    def arguments(self) -> tuple[Word, ...]:
        return self.words[1:]


@dataclass(frozen=True)
class FunctionDef:
    name: str
    body: tuple[Statement, ...]
    position: Position


@dataclass(frozen=True)
class Pipeline:
    stages: tuple[Statement, ...]
    position: Position
    negated: bool = False


@dataclass(frozen=True)
class CommandList:
    """Statements joined by ``&&``, ``||`` or ``;``."""

    items: tuple[Statement, ...]
    operators: tuple[str, ...]
    position: Position


@dataclass(frozen=True)
class ConditionalBranch:
    condition: tuple[Statement, ...]
    body: tuple[Statement, ...]


@dataclass(frozen=True)
class IfClause:
    branches: tuple[ConditionalBranch, ...]
    orelse: tuple[Statement, ...]
    position: Position


@dataclass(frozen=True)
class ForLoop:
    """``for name in items`` (``items`` None without ``in``) or ``for ((header))``."""

    variable: str | None
    items: tuple[Word, ...] | None
    body: tuple[Statement, ...]
    position: Position
    header: str | None = None


@dataclass(frozen=True)
class WhileLoop:
    condition: tuple[Statement, ...]
    body: tuple[Statement, ...]
    position: Position
    until: bool = False


@dataclass(frozen=True)
class CaseArm:
    patterns: tuple[Word, ...]
    body: tuple[Statement, ...]


@dataclass(frozen=True)
class CaseClause:
    subject: Word
    arms: tuple[CaseArm, ...]
    position: Position


@dataclass(frozen=True)
class Group:
    """``{ ...; }`` or, with ``subshell``, ``( ... )``."""

    body: tuple[Statement, ...]
    position: Position
    subshell: bool = False


@dataclass(frozen=True)
class ArithmeticCommand:
    raw: str
    position: Position


@dataclass(frozen=True)
class Redirected:
    """A compound command followed by redirections, e.g. ``done < list``."""

    statement: Statement
    redirects: tuple[Redirect, ...]
    position: Position


Statement = Union[
    Assignment,
    Command,
    FunctionDef,
    Pipeline,
    CommandList,
    IfClause,
    ForLoop,
    WhileLoop,
    CaseClause,
    Group,
    ArithmeticCommand,
    Redirected,
]


@dataclass(frozen=True)
class Recipe:
    """A fully parsed PKGBUILD."""

    statements: tuple[Statement, ...]
    source: str = "PKGBUILD"

    def functions(self) -> dict[str, FunctionDef]:
        """Top-level function definitions by name."""
        return {s.name: s for s in self.statements if isinstance(s, FunctionDef)}

    def assignments(self) -> tuple[Assignment, ...]:
        """Top-level variable assignments in source order."""
        found: list[Assignment] = []
        for statement in self.statements:
            if isinstance(statement, Assignment):
                found.append(statement)
            elif isinstance(statement, CommandList):
                found.extend(s for s in statement.items if isinstance(s, Assignment))
        return tuple(found)
