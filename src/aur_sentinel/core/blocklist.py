"""
Banned terms — the table of dangerous commands the security scanner checks.

The table is plain data: adding a pattern never touches the scanner. Extra
terms can be loaded from TOML::

    [[term]]
    command = "nc"
    category = "downloading"
    reason = "opens raw network connections"
    flags = ["-e|-c"]
"""

from __future__ import annotations

import fnmatch
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from aur_sentinel.exceptions import BlocklistError


class BanCategory(Enum):
    """Why a command is considered dangerous."""

    DOWNLOADING = "downloading"
    SCRIPT_RUNNING = "script-running"
    PERMISSIONS = "permissions"
    DESTRUCTIVE = "destructive"
    INLINE_CODE = "inline-code"


def _has_flag(arguments: Sequence[str], spelling: str) -> bool:
    """'-r|--recursive' is present; bundled short flags like '-rf' count."""
    for flag in spelling.split("|"):
        for arg in arguments:
            if flag.startswith("--"):
                if arg == flag or arg.startswith(flag + "="):
                    return True
            elif arg == flag or (
                len(flag) == 2 and arg.startswith("-") and not arg.startswith("--") and flag[1] in arg[1:]
            ):
                return True
    return False


@dataclass(frozen=True)
class BannedTerm:
    """
    One blocklist entry.

    Attributes:
        command: fnmatch pattern for the command's basename ('python*').
        category: BanCategory of the danger.
        reason: Human-readable explanation shown with each finding.
        flags: Flags that must all be present; alternatives split by '|'.
        argument: Regex that at least one argument must match.
    """

    command: str
    category: BanCategory
    reason: str
    flags: tuple[str, ...] = ()
    argument: str | None = None

    def matches(self, name: str, arguments: Sequence[str]) -> bool:
        if not fnmatch.fnmatchcase(name.rsplit("/", 1)[-1], self.command):
            return False
        if not all(_has_flag(arguments, flag) for flag in self.flags):
            return False
        if self.argument is not None:
            pattern = re.compile(self.argument)
            return any(pattern.search(arg) for arg in arguments)
        return True


_SYSTEM_PATH = r"^(?:/|/\*|~/?|\$\{?HOME\}?/?|/(?:bin|boot|etc|home|lib|lib64|opt|root|sbin|usr|var)/?\*?)$"
_SHELLS = ("sh", "bash", "zsh", "fish", "dash", "ksh", "csh", "tcsh")

DEFAULT_BLOCKLIST: tuple[BannedTerm, ...] = (
    BannedTerm("curl", BanCategory.DOWNLOADING, "downloads files outside of the source array"),
    BannedTerm("wget", BanCategory.DOWNLOADING, "downloads files outside of the source array"),
    BannedTerm("rsync", BanCategory.DOWNLOADING, "copies files from remote machines"),
    BannedTerm("scp", BanCategory.DOWNLOADING, "copies files from remote machines"),
    BannedTerm("sudo", BanCategory.PERMISSIONS, "raises privileges; makepkg never needs root"),
    BannedTerm("su", BanCategory.PERMISSIONS, "switches to another user"),
    BannedTerm("doas", BanCategory.PERMISSIONS, "raises privileges; makepkg never needs root"),
    BannedTerm("pkexec", BanCategory.PERMISSIONS, "raises privileges; makepkg never needs root"),
    BannedTerm("ssh", BanCategory.PERMISSIONS, "opens a session on a remote machine"),
    BannedTerm(
        "chmod",
        BanCategory.PERMISSIONS,
        "sets the setuid or setgid bit",
        argument=r"^(?:[ugoa]*\+[rwxXt]*s[rwxXt]*|[2467][0-7]{3})$",
    ),
    BannedTerm("eval", BanCategory.SCRIPT_RUNNING, "evaluates dynamically built code"),
    *(BannedTerm(shell, BanCategory.SCRIPT_RUNNING, "runs an arbitrary shell script") for shell in _SHELLS),
    BannedTerm("python*", BanCategory.INLINE_CODE, "runs inline Python code", flags=("-c",)),
    BannedTerm("perl", BanCategory.INLINE_CODE, "runs inline Perl code", flags=("-e|-E",)),
    BannedTerm("ruby", BanCategory.INLINE_CODE, "runs inline Ruby code", flags=("-e",)),
    BannedTerm("node", BanCategory.INLINE_CODE, "runs inline JavaScript", flags=("-e|--eval",)),
    BannedTerm(
        "rm",
        BanCategory.DESTRUCTIVE,
        "recursively deletes a system or home directory",
        flags=("-r|-R|--recursive",),
        argument=_SYSTEM_PATH,
    ),
    BannedTerm("dd", BanCategory.DESTRUCTIVE, "writes directly to a device", argument=r"^of=/dev/(?!null$)"),
    BannedTerm("mkfs*", BanCategory.DESTRUCTIVE, "formats a filesystem"),
)


def load_blocklist(text: str, include_defaults: bool = True) -> tuple[BannedTerm, ...]:
    """
    Read banned terms from TOML.

    Args:
        text: TOML document with a '[[term]]' array of tables.
        include_defaults: Prepend DEFAULT_BLOCKLIST to the loaded terms.

    Raises:
        BlocklistError: On invalid TOML or an invalid term.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise BlocklistError(f"Invalid blocklist TOML: {e}") from e

    terms: list[BannedTerm] = []
    for index, entry in enumerate(data.get("term", []), start=1):
        try:
            term = BannedTerm(
                command=entry["command"],
                category=BanCategory(entry["category"]),
                reason=entry["reason"],
                flags=tuple(entry.get("flags", ())),
                argument=entry.get("argument"),
            )
            if term.argument is not None:
                re.compile(term.argument)
        except (KeyError, TypeError, ValueError, re.error) as e:
            raise BlocklistError(f"Invalid blocklist term #{index}: {e}") from e
        terms.append(term)

    return (*DEFAULT_BLOCKLIST, *terms) if include_defaults else tuple(terms)
