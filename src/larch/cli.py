"""Larch CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from larch import __version__

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="larch")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Larch - architecture convention checks for Laravel applications."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)


@main.command()
@click.argument("presets", nargs=-1)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--all",
    "aggregate",
    is_flag=True,
    default=False,
    help="Report the first violation of every class instead of stopping at the first one.",
)
@click.option(
    "--scan-mode",
    type=click.Choice(["text", "syntax"]),
    default=None,
    help="How imports and calls are matched (default: from larch.yml, else text).",
)
@_project_option
def check(
    *,
    presets: tuple[str, ...],
    fmt: str | None,
    aggregate: bool,
    scan_mode: str | None,
    project: Path | None,
) -> None:
    """Check the project against convention PRESETS (all when none given).

    Exit codes: 0 = no violations, 1 = violations found,
    2 = configuration or discovery error.
    """
    from larch.config import ConfigError, load_config
    from larch.discovery.index import DiscoveryError
    from larch.reporting.formatters import format_json, format_porcelain, format_rich, render_check
    from larch.rules.engine import check as run_check

    project_root = project or Path.cwd()

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    try:
        config = load_config(project_root)
        if scan_mode is not None:
            config.scan_mode = scan_mode
        result = run_check(
            project_root,
            list(presets),
            config,
            fail_fast=False if aggregate else None,
        )
    except (ConfigError, DiscoveryError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "rich" and sys.stdout.isatty():
        from rich.console import Console

        render_check(result, Console())
    else:
        formatters = {
            "rich": format_rich,
            "json": format_json,
            "porcelain": format_porcelain,
        }
        output = formatters[fmt](result)
        if output:
            click.echo(output)

    if not result.passed:
        sys.exit(1)


@main.command("presets")
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
@_project_option
def presets_cmd(*, as_json: bool, project: Path | None) -> None:
    """List the available convention presets."""
    from larch.config import ConfigError, load_config
    from larch.rules.presets import build_presets

    project_root = project or Path.cwd()
    try:
        table = build_presets(load_config(project_root))
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if as_json:
        data = [
            {
                "name": p.name,
                "description": p.description,
                "namespaces": sorted({rs.namespace for rs in p.rule_sets}),
                "rules": sum(len(rs.rules) for rs in p.rule_sets),
            }
            for p in table.values()
        ]
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    out = Table(title="Presets", box=None, padding=(0, 1))
    out.add_column("name", style="cyan")
    out.add_column("namespace")
    out.add_column("description", style="dim")
    for p in table.values():
        namespaces = ", ".join(sorted({rs.namespace for rs in p.rule_sets}))
        out.add_row(p.name, namespaces, p.description)
    console.print(out)


@main.command()
@click.argument("namespace")
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
@_project_option
def discover(*, namespace: str, as_json: bool, project: Path | None) -> None:
    """List the classes discovered under NAMESPACE."""
    from larch.config import ConfigError, load_config
    from larch.discovery.index import DiscoveryError, ProjectIndex

    project_root = project or Path.cwd()
    try:
        config = load_config(project_root)
        index = ProjectIndex.scan(project_root, config.source_roots, framework=config.framework)
    except (ConfigError, DiscoveryError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    classes = index.classes_in_namespace(namespace)

    if as_json:
        data = [
            {
                "name": c.name,
                "kind": c.kind,
                "abstract": c.is_abstract,
                "file_path": c.file_path,
                "start_line": c.start_line,
                "end_line": c.end_line,
                "parent": c.parent,
                "methods": [m.name for m in c.own_methods()],
            }
            for c in classes
        ]
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    if not classes:
        click.echo(f"No classes found in {namespace}.")
        return
    for c in classes:
        flags = " (abstract)" if c.is_abstract else ""
        click.echo(f"{c.name}  {c.kind}{flags}  {c.file_path}:{c.start_line}")
