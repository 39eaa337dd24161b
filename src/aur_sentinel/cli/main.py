"""
aur-sentinel CLI — inspect PKGBUILDs, versions and pacman.conf before building.

Usage:
    aur-sentinel scan ./PKGBUILD --format json
    aur-sentinel scan ./PKGBUILD --blocklist extra.toml --max-depth 1
    aur-sentinel info ./PKGBUILD
    aur-sentinel vercmp 1.2.3 1.10.0
    aur-sentinel satisfies "python>=3.10" 3.12.1-1
    aur-sentinel conf /etc/pacman.conf --key HoldPkg
"""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from aur_sentinel.exceptions import SentinelError


def _read_recipe(path: str):
    from aur_sentinel.parsers.pkgbuild import parse_recipe

    try:
        return parse_recipe(Path(path).read_bytes(), source=path)
    except SentinelError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="aur-sentinel")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging.")
def cli(verbose):
    """aur-sentinel: static trust checks for AUR packages."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.argument("pkgbuild", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--blocklist",
    "-b",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="TOML file with extra banned terms.",
)
@click.option("--max-depth", type=click.IntRange(min=0), default=None, help="Command substitution depth to scan.")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
@click.pass_context
def scan(ctx, pkgbuild, blocklist, max_depth, fmt):
    """Scan a PKGBUILD for dangerous commands. Exits with 2 on findings."""
    from aur_sentinel.core.blocklist import DEFAULT_BLOCKLIST, load_blocklist
    from aur_sentinel.core.security import find_banned_terms

    recipe = _read_recipe(pkgbuild)
    terms = DEFAULT_BLOCKLIST
    if blocklist:
        try:
            terms = load_blocklist(Path(blocklist).read_text(encoding="utf-8"))
        except SentinelError as e:
            raise click.ClickException(str(e)) from e

    findings = find_banned_terms(recipe, terms, max_depth=max_depth)

    if fmt == "json":
        click.echo(json.dumps([f.to_dict() for f in findings], indent=2))
    elif findings:
        table = Table(title=f"Banned terms in {pkgbuild}")
        table.add_column("Line", justify="right")
        table.add_column("Command", style="bold red")
        table.add_column("Category")
        table.add_column("Reason")
        for finding in findings:
            table.add_row(str(finding.position.line), finding.command, finding.category.value, finding.reason)
        Console().print(table)
    else:
        Console().print(f"[bold green][OK][/bold green] No banned terms in {pkgbuild}")

    if findings:
        ctx.exit(2)


@cli.command()
@click.argument("pkgbuild", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def info(pkgbuild, fmt):
    """Print the metadata declared by a PKGBUILD."""
    from aur_sentinel.parsers.pkgbuild import recipe_metadata

    metadata = recipe_metadata(_read_recipe(pkgbuild))
    rendered = {
        key: [str(item) for item in value] if isinstance(value, list) else (None if value is None else str(value))
        for key, value in metadata.items()
    }

    if fmt == "json":
        click.echo(json.dumps(rendered, indent=2))
        return

    table = Table(title=pkgbuild)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in rendered.items():
        table.add_row(key, " ".join(value) if isinstance(value, list) else (value or ""))
    Console().print(table)


@cli.command()
@click.argument("first")
@click.argument("second")
def vercmp(first, second):
    """Compare two versions: prints -1, 0 or 1."""
    from aur_sentinel.models.version import compare_versions, parse_version

    click.echo(compare_versions(parse_version(first), parse_version(second)))


@cli.command()
@click.argument("dependency")
@click.argument("version")
@click.pass_context
def satisfies(ctx, dependency, version):
    """Check a dependency such as 'foo>=1.2' against VERSION. Exits 1 if unmet."""
    from aur_sentinel.models.dependency import parse_dependency
    from aur_sentinel.models.dependency import satisfies as dependency_satisfied
    from aur_sentinel.models.version import parse_version

    dep = parse_dependency(dependency)
    if dep is None:
        raise click.BadParameter(f"not a dependency: {dependency!r}", param_hint="DEPENDENCY")

    if dependency_satisfied(dep, parse_version(version)):
        click.echo(f"{version} satisfies {dep}")
    else:
        click.echo(f"{version} does not satisfy {dep}")
        ctx.exit(1)


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--key", "-k", default=None, help="Print only the values of this directive.")
def conf(config_file, key):
    """Print the directives of a pacman.conf file."""
    from aur_sentinel.parsers.pacman_conf import parse_config

    try:
        config = parse_config(Path(config_file).read_text(encoding="utf-8"), source=config_file)
    except SentinelError as e:
        raise click.ClickException(str(e)) from e

    if key is not None:
        if key not in config:
            raise click.ClickException(f"{key} is not set in {config_file}")
        click.echo(" ".join(config[key]))
        return

    for name, values in config.items():
        click.echo(f"{name} = {' '.join(values)}".rstrip())


if __name__ == "__main__":
    cli()
