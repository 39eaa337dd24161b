"""
Repository Metadata Extractor.

Reads the ``Field : value`` blocks printed by repository queries
(``pacman -Si``, ``pacman -Qi``) and recovers the package version.
"""

import logging

from aur_sentinel.models.version import Version, parse_version

logger = logging.getLogger(__name__)

VERSION_FIELD = "version"


def _normalize(field: str) -> str:
    return " ".join(field.split()).casefold()


def parse_fields(text: str) -> dict[str, str]:
    """
    Parse query output into a field -> value dictionary.

    Field names are case-folded with whitespace collapsed ('Depends On' ->
    'depends on'). The first occurrence of a field wins. Indented lines
    without a separator continue the previous field's value.
    """
    fields: dict[str, str] = {}
    last: str | None = None

    for line in text.splitlines():
        if not line.strip():
            continue

        name, sep, value = line.partition(":")
        if sep and name.strip() and not line[0].isspace():
            last = _normalize(name)
            fields.setdefault(last, value.strip())
        elif last is not None and line[0].isspace():
            fields[last] = f"{fields[last]} {line.strip()}".strip()

    return fields


def extract_version(text: str) -> Version | None:
    """
    Find and parse the version field of query output.

    Args:
        text: Multi-line 'Field : value' text.

    Returns:
        The parsed version, or None if no version field is present.
    """
    for line in text.splitlines():
        name, sep, value = line.partition(":")
        if sep and _normalize(name) == VERSION_FIELD:
            return parse_version(value)

    logger.debug("[REPO] No version field in query output")
    return None
