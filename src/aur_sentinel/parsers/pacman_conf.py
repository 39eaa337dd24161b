"""
pacman.conf Parser.

Reads the package manager configuration into directive -> values mappings.
Only syntax is checked; unknown directive names are kept as-is so newer
pacman options never break loading.
"""

import logging
import re
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from aur_sentinel.exceptions import ConfigParseError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = "/var/cache/pacman/pkg/"
_KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]*$")
_TRAILING_COMMENT_RE = re.compile(r"\s#.*$")


class PacmanConfig(Mapping):
    """
    Read-only view of a parsed pacman.conf.

    As a mapping it holds every directive of the file, with the values of
    repeated directives accumulated in source order across all sections.
    ``sections`` holds the same data split per ``[section]``.
    """

    def __init__(self, directives: dict[str, list[str]], sections: dict[str, dict[str, list[str]]]):
        self._directives = MappingProxyType({k: tuple(v) for k, v in directives.items()})
        self.sections = MappingProxyType(
            {
                name: MappingProxyType({k: tuple(v) for k, v in values.items()})
                for name, values in sections.items()
            }
        )

    def __getitem__(self, key: str) -> tuple[str, ...]:
        return self._directives[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._directives)

    def __len__(self) -> int:
        return len(self._directives)

    def __repr__(self) -> str:
        return f"PacmanConfig({dict(self._directives)!r})"

    def values_of(self, key: str) -> tuple[str, ...]:
        """Values of a directive, empty when it is absent."""
        return self._directives.get(key, ())

    @property
    def hold_packages(self) -> tuple[str, ...]:
        return self.values_of("HoldPkg")

    @property
    def ignored_packages(self) -> tuple[str, ...]:
        return self.values_of("IgnorePkg")

    @property
    def ignored_groups(self) -> tuple[str, ...]:
        return self.values_of("IgnoreGroup")

    @property
    def cache_dirs(self) -> tuple[str, ...]:
        return self.values_of("CacheDir") or (DEFAULT_CACHE_DIR,)

    @property
    def parallel_downloads(self) -> int:
        values = self.values_of("ParallelDownloads")
        if not values:
            return 1
        try:
            return max(1, int(values[-1]))
        except ValueError:
            logger.warning(f"[PACMAN-CONF] Ignoring non-numeric ParallelDownloads {values[-1]!r}")
            return 1

    @property
    def repositories(self) -> tuple[str, ...]:
        """Repository sections, in file order."""
        return tuple(name for name in self.sections if name != "options")


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (first physical line number, line) with '\\' continuations joined."""
    buffer: list[str] = []
    start = 0
    for line_no, line in enumerate(text.splitlines(), start=1):
        if not buffer:
            start = line_no
            if line.lstrip().startswith("#"):
                yield start, line
                continue

        body = line.rstrip()
        if body.endswith("\\"):
            buffer.append(body[:-1])
            continue

        buffer.append(line)
        yield start, " ".join(buffer)
        buffer = []

    if buffer:
        yield start, " ".join(buffer)


def parse_config(text: str, source: str = "pacman.conf") -> PacmanConfig:
    """
    Parse pacman.conf content.

    Args:
        text: Raw configuration text.
        source: Name used in error messages.

    Returns:
        PacmanConfig with all directives.

    Raises:
        ConfigParseError: On the first structurally invalid line.
    """
    directives: dict[str, list[str]] = {}
    sections: dict[str, dict[str, list[str]]] = {}
    current: dict[str, list[str]] | None = None

    for line_no, line in _logical_lines(text):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        stripped = _TRAILING_COMMENT_RE.sub("", stripped)

        if stripped.startswith("["):
            name = stripped[1:-1].strip() if stripped.endswith("]") else ""
            if not name:
                raise ConfigParseError(source, f"malformed section header {stripped!r}", line_no)
            current = sections.setdefault(name, {})
            continue

        key, sep, value = stripped.partition("=")
        key = key.strip()
        if not _KEY_RE.match(key):
            raise ConfigParseError(source, f"unexpected token {key or '='!r}", line_no)

        values = value.split() if sep else []
        directives.setdefault(key, []).extend(values)
        if current is not None:
            current.setdefault(key, []).extend(values)

    logger.debug(f"[PACMAN-CONF] {source}: {len(directives)} directives, {len(sections)} sections")
    return PacmanConfig(directives, sections)
