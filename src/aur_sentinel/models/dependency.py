"""
Dependency constraints.

Parses dependency specifiers such as ``python2-lxml>=3.1.0`` into a
``Dependency`` and decides whether a candidate version satisfies it.
"""

from dataclasses import dataclass
from enum import Enum

from aur_sentinel.models.version import Version, compare_versions, parse_version

# Longest spellings first so '>=' is never split into '>' and '='.
_OPERATORS = (">=", "<=", ">", "<", "=")
_OPERATOR_CHARS = frozenset("<>=")


class Relation(Enum):
    """How a dependency constrains the version of the package it names."""

    ANYTHING = ""
    AT_LEAST = ">="
    MORE_THAN = ">"
    MUST_BE = "="
    AT_MOST = "<="
    LESS_THAN = "<"


@dataclass(frozen=True)
class Dependency:
    """A package name plus an optional version requirement."""

    name: str
    relation: Relation = Relation.ANYTHING
    version: Version | None = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Dependency name must not be empty")
        if (self.relation is Relation.ANYTHING) != (self.version is None):
            raise ValueError(f"{self.relation.name} does not fit version {self.version!r}")

    def __str__(self) -> str:
        return render_dependency(self)


def parse_dependency(text: str) -> Dependency | None:
    """
    Parse a dependency specifier.

    Args:
        text: Specifier like 'glibc', 'gtk3>=3.24' or 'foobar=1.2.3'.

    Returns:
        The parsed ``Dependency``, or None if the package name is empty.
    """
    text = text.strip()
    cut = next((i for i, char in enumerate(text) if char in _OPERATOR_CHARS), len(text))
    name, rest = text[:cut], text[cut:]
    if not name:
        return None
    if not rest:
        return Dependency(name)

    op = next(op for op in _OPERATORS if rest.startswith(op))
    return Dependency(name, Relation(op), parse_version(rest[len(op):]))


def parse_optdepend(text: str) -> tuple[Dependency | None, str | None]:
    """Split an optdepends entry like 'hunspell: spell checking'."""
    # ': ' rather than ':' so epochs like 'foo>=1:2.0' survive.
    spec, _, description = text.partition(": ")
    return parse_dependency(spec.rstrip(":")), description.strip() or None


def render_dependency(dep: Dependency) -> str:
    """Render a dependency back to its canonical specifier text."""
    if dep.relation is Relation.ANYTHING:
        return dep.name
    return f"{dep.name}{dep.relation.value}{dep.version}"


def satisfies(dep: Dependency, version: Version) -> bool:
    """
    Check whether ``version`` meets the requirement of ``dep``.

    Versions of different shapes do not compare numerically: any x.y.z
    candidate satisfies 'gtk3>=3.25', because '3.25' is opaque and opaque
    versions sort below every SemVer.
    """
    if dep.relation is Relation.ANYTHING:
        return True

    order = compare_versions(version, dep.version)
    match dep.relation:
        case Relation.AT_LEAST:
            return order >= 0
        case Relation.MORE_THAN:
            return order > 0
        case Relation.MUST_BE:
            return order == 0
        case Relation.AT_MOST:
            return order <= 0
        case Relation.LESS_THAN:
            return order < 0
    return False
