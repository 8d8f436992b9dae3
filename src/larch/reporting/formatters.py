"""Output formatters for check results: plain text, JSON, porcelain and Rich."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rich.console import Console

    from larch.rules.engine import CheckResult


def _summary(result: CheckResult) -> str:
    count = len(result.diagnostics)
    elapsed = f"{result.elapsed_ms / 1000:.1f}s"
    presets = len(result.results)
    if count:
        noun = "violation" if count == 1 else "violations"
        return f"{count} {noun} found ({presets} presets checked, {elapsed})"
    return f"No violations found ({presets} presets checked, {elapsed})"


def format_rich(result: CheckResult) -> str:
    """Format a CheckResult as human-readable text (plain text, no Rich dependency).

    Example output::

        Presets: jobs, models
        Files: 25 scanned, 31 classes indexed

        ✗ jobs
        JOB VIOLATION

        RULE: Jobs must implement ShouldQueue interface.
        ...

        1 violation found (2 presets checked, 0.1s)
    """
    lines: list[str] = [
        f"Presets: {', '.join(r.preset for r in result.results)}",
        f"Files: {result.files_scanned} scanned, {result.classes_indexed} classes indexed",
        "",
    ]
    for preset_result in result.results:
        for diagnostic in preset_result.diagnostics:
            lines.append(f"✗ {preset_result.preset}")
            lines.append(diagnostic.render())
            lines.append("")

    prefix = "" if result.diagnostics else "✓ "
    lines.append(prefix + _summary(result))
    return "\n".join(lines)


def format_json(result: CheckResult) -> str:
    """Format a CheckResult as JSON with ``presets`` and ``summary`` objects."""
    presets: list[dict[str, object]] = []
    for preset_result in result.results:
        presets.append(
            {
                "preset": preset_result.preset,
                "passed": preset_result.passed,
                "classes_checked": preset_result.classes_checked,
                "violations": [d.to_dict() for d in preset_result.diagnostics],
            }
        )

    output: dict[str, object] = {
        "presets": presets,
        "summary": {
            "passed": result.passed,
            "violations_count": len(result.diagnostics),
            "files_scanned": result.files_scanned,
            "classes_indexed": result.classes_indexed,
            "elapsed_ms": result.elapsed_ms,
        },
    }
    return json.dumps(output, indent=2, ensure_ascii=False)


def format_porcelain(result: CheckResult) -> str:
    """One line per violation: ``preset:rule_id:file_path:start_line:end_line:class``.

    Returns an empty string when there are no violations.
    """
    lines: list[str] = []
    for preset_result in result.results:
        for d in preset_result.diagnostics:
            lines.append(
                f"{preset_result.preset}:{d.rule_id}:{d.file_path}:"
                f"{d.start_line}:{d.end_line}:{d.class_name}"
            )
    return "\n".join(lines)


def render_check(result: CheckResult, console: Console) -> None:
    """Render a CheckResult on a Rich console, one panel per violation."""
    from rich.panel import Panel
    from rich.text import Text

    console.print(
        f"[bold]Presets:[/bold] {', '.join(r.preset for r in result.results)}   "
        f"[bold]Files:[/bold] {result.files_scanned}   "
        f"[bold]Classes:[/bold] {result.classes_indexed}"
    )
    console.print()

    for preset_result in result.results:
        for diagnostic in preset_result.diagnostics:
            console.print(
                Panel(
                    Text(diagnostic.render()),
                    title=f"{preset_result.preset} • {diagnostic.rule_id}",
                    subtitle=diagnostic.location,
                    border_style="red",
                )
            )
            console.print()

    if result.diagnostics:
        console.print(f"[red]✗ {_summary(result)}[/red]")
    else:
        console.print(f"[green]✓ {_summary(result)}[/green]")
