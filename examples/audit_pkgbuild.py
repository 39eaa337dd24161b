"""
Example: Audit a PKGBUILD before building it.

Usage:
    python examples/audit_pkgbuild.py path/to/PKGBUILD
"""

import sys
from pathlib import Path

from aur_sentinel import find_banned_terms, parse_recipe
from aur_sentinel.parsers.pkgbuild import recipe_metadata


def main(path: str) -> int:
    # Parse once, then both read metadata and scan the same tree
    recipe = parse_recipe(Path(path).read_bytes(), source=path)
    metadata = recipe_metadata(recipe)

    print(f"{' '.join(metadata['pkgname'])} {metadata['version']}")
    for dep in metadata["depends"]:
        print(f"  depends: {dep}")

    findings = find_banned_terms(recipe)
    for finding in findings:
        print(f"  [!] {finding}")

    print(f"\n{len(findings)} banned term(s) found")
    return 2 if findings else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1]))
