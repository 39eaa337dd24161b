"""
Version Model — ordered package versions.

A version is one of two variants:

- ``SemVer``: ``major.minor.patch[-prerelease][+meta]``, compared field by
  field with conventional pre-release semantics.
- ``OpaqueVersion``: any other text, kept verbatim and compared unit by unit.

``parse_version`` never fails; text that does not fit the structured grammar
degrades to ``OpaqueVersion``. Every ``OpaqueVersion`` orders below every
``SemVer``, which keeps the ordering total across both variants.
"""

import re
from dataclasses import dataclass, field
from functools import total_ordering

_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z_~-]+(?:\.[0-9A-Za-z_~-]+)*))?"
    r"(?:\+([0-9A-Za-z.-]+))?$"
)
_UNIT_RE = re.compile(r"\d+|\D+")

Unit = int | str
Chunk = tuple[Unit, ...]


def _split_units(text: str) -> Chunk:
    """'rc10' -> ('rc', 10). Digit runs with a leading zero stay text."""
    units: list[Unit] = []
    for run in _UNIT_RE.findall(text):
        if run.isdigit() and (len(run) == 1 or not run.startswith("0")):
            units.append(int(run))
        else:
            units.append(run)
    return tuple(units)


def _unit_key(unit: Unit) -> tuple:
    # Numeric units sort before textual ones at the same position.
    if isinstance(unit, int):
        return (0, unit, "")
    return (1, 0, unit)


@total_ordering
@dataclass(frozen=True)
class SemVer:
    """A well-formed version. ``meta`` is for display only."""

    major: int
    minor: int
    patch: int
    prerelease: tuple[Chunk, ...] = ()
    meta: str | None = field(default=None, compare=False)

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def _key(self) -> tuple:
        if not self.prerelease:
            # A release is newer than any of its pre-releases.
            tail: tuple = (1,)
        else:
            tail = (0, tuple(tuple(_unit_key(u) for u in chunk) for chunk in self.prerelease))
        return (self.major, self.minor, self.patch, tail)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, (SemVer, OpaqueVersion)):
            return NotImplemented
        return compare_versions(self, other) < 0

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join("".join(str(u) for u in chunk) for chunk in self.prerelease)
        if self.meta is not None:
            text += f"+{self.meta}"
        return text


@total_ordering
@dataclass(frozen=True)
class OpaqueVersion:
    """A version string that does not follow the structured grammar."""

    text: str

    def _key(self) -> tuple:
        # Raw text breaks ties so that only identical strings compare equal.
        return (tuple(_unit_key(u) for u in _split_units(self.text)), self.text)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, (SemVer, OpaqueVersion)):
            return NotImplemented
        return compare_versions(self, other) < 0

    def __str__(self) -> str:
        return self.text


Version = SemVer | OpaqueVersion


def parse_version(text: str) -> Version:
    """
    Parse a version string.

    Args:
        text: Version text, e.g. '3.1.0', '60.0.2-1' or '1:2.0.r14.g1a2b3c-2'.

    Returns:
        A ``SemVer`` when the text is well-formed, otherwise an ``OpaqueVersion``.

    Note:
        Every ``OpaqueVersion`` sorts below every ``SemVer``. Two-component
        versions such as '3.25' are opaque, so '3.24.1' compares newer.
    """
    text = text.strip()
    match = _SEMVER_RE.match(text)
    if not match:
        return OpaqueVersion(text)

    major, minor, patch, pre, meta = match.groups()
    prerelease = tuple(_split_units(chunk) for chunk in pre.split(".")) if pre else ()
    return SemVer(int(major), int(minor), int(patch), prerelease, meta)


def _sort_key(version: Version) -> tuple:
    match version:
        case SemVer():
            return (1, version._key())
        case OpaqueVersion():
            return (0, version._key())
    raise TypeError(f"Not a version: {version!r}")


def compare_versions(a: Version, b: Version) -> int:
    """Return -1, 0 or 1 as ``a`` is older than, equal to or newer than ``b``."""
    ka, kb = _sort_key(a), _sort_key(b)
    return (ka > kb) - (ka < kb)
