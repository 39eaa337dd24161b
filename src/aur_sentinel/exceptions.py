"""Custom exceptions for aur-sentinel."""


class SentinelError(Exception):
    """Base exception for all aur-sentinel errors."""


class ParseError(SentinelError):
    """
    Raised when input text is structurally invalid.

    Carries enough position context for a precise message such as
    ``pacman.conf line 14: unexpected token``.
    """

    def __init__(
        self,
        source: str,
        message: str,
        line: int,
        column: int | None = None,
        offset: int | None = None,
    ):
        self.source = source
        self.message = message
        self.line = line
        self.column = column
        self.offset = offset
        where = f"{source} line {line}"
        if column is not None:
            where += f", column {column}"
        super().__init__(f"{where}: {message}")


class ConfigParseError(ParseError):
    """Raised when a pacman.conf line cannot be parsed."""


class RecipeParseError(ParseError):
    """Raised when a PKGBUILD cannot be parsed completely."""


class BlocklistError(SentinelError):
    """Raised when a blocklist file is malformed."""
