"""
Simple package identity — a name plus a version.

Recovers packages from cached tarball filenames
(``linux-is-cool-3.2.14-1-x86_64.pkg.tar.xz``) and from ``name version``
lines as printed by ``pacman -Q``.
"""

import re
from dataclasses import dataclass
from pathlib import PurePath

from aur_sentinel.models.version import Version, compare_versions, parse_version

PACKAGE_SUFFIX_RE = re.compile(r"\.pkg\.tar(?:\.\w+)?$")


@dataclass(frozen=True)
class SimplePackage:
    """A package name with its full version (``pkgver-pkgrel``)."""

    name: str
    version: Version

    def same_version(self, text: str) -> bool:
        """Check whether this package is at the version given as text."""
        return compare_versions(self.version, parse_version(text)) == 0

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dictionary."""
        return {"name": self.name, "version": str(self.version)}

    @classmethod
    def from_dict(cls, data: dict) -> "SimplePackage":
        """Deserialize from dictionary."""
        return cls(name=data["name"], version=parse_version(data["version"]))


def package_from_path(path: str | PurePath) -> SimplePackage | None:
    """
    Extract name and version from a package tarball path.

    Args:
        path: Path such as '/var/cache/pacman/pkg/vim-9.1-1-x86_64.pkg.tar.zst'.

    Returns:
        SimplePackage, or None if the filename is not a package tarball.
    """
    filename = PurePath(path).name
    match = PACKAGE_SUFFIX_RE.search(filename)
    if not match:
        return None

    parts = filename[: match.start()].rsplit("-", 3)
    if len(parts) != 4 or not all(parts):
        return None

    name, pkgver, pkgrel, _arch = parts
    return SimplePackage(name, parse_version(f"{pkgver}-{pkgrel}"))


def package_from_line(line: str) -> SimplePackage | None:
    """Parse a 'name version' line, e.g. 'xchat 2.8.8-19'."""
    fields = line.split()
    if len(fields) != 2:
        return None
    return SimplePackage(fields[0], parse_version(fields[1]))
