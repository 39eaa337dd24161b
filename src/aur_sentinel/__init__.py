"""
aur-sentinel - Trust and resolution core of an AUR helper.

Parses versions, dependency constraints, pacman.conf and PKGBUILDs, and
statically scans PKGBUILDs for dangerous commands before they are built.
"""

__version__ = "1.0.0"


def __getattr__(name: str):
    """Lazy import of the main entry points."""
    if name == "parse_recipe":
        from aur_sentinel.parsers.pkgbuild import parse_recipe

        return parse_recipe
    if name == "find_banned_terms":
        from aur_sentinel.core.security import find_banned_terms

        return find_banned_terms
    if name == "parse_version":
        from aur_sentinel.models.version import parse_version

        return parse_version
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["parse_recipe", "find_banned_terms", "parse_version", "__version__"]
