"""Preset runner: apply rule sets to discovered classes."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from larch.config import load_config
from larch.discovery.index import ProjectIndex
from larch.reporting.diagnostic import ViolationReporter
from larch.rules.predicates import Violation
from larch.rules.presets import PRESET_NAMES, build_presets, get_preset

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from larch.config import LarchConfig
    from larch.reporting.diagnostic import Diagnostic
    from larch.rules.presets import Preset

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class PresetResult:
    """Outcome of running one preset."""

    preset: str
    violations: list[Violation] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    classes_checked: int = 0

    @property
    def passed(self) -> bool:
        return not self.violations


@dataclass
class CheckResult:
    """Outcome of a ``check`` over several presets."""

    results: list[PresetResult] = field(default_factory=list)
    files_scanned: int = 0
    classes_indexed: int = 0
    elapsed_ms: float = 0.0

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [d for r in self.results for d in r.diagnostics]

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------


def run_preset(
    preset: Preset,
    index: ProjectIndex,
    reporter: ViolationReporter,
    *,
    fail_fast: bool = True,
) -> PresetResult:
    """Run *preset* over *index*.

    Each class stops at its first failing predicate.  With *fail_fast* the
    whole run stops at the first violation; otherwise every class is checked
    and each one contributes at most one violation, even when several rule
    sets cover it.  ``classes_checked`` counts distinct classes.  Abstract
    classes, interfaces and traits are skipped.
    """
    result = PresetResult(preset=preset.name)
    checked: set[str] = set()
    failed: set[str] = set()
    for rule_set in preset.rule_sets:
        for cls in index.classes_in_namespace(rule_set.namespace):
            if cls.is_exempt or cls.name in failed or not rule_set.applies_to(cls):
                continue
            checked.add(cls.name)
            result.classes_checked = len(checked)
            for rule in rule_set.rules:
                outcome = rule.check(cls)
                if not isinstance(outcome, Violation):
                    continue
                logger.debug("%s: %s failed %s", preset.name, cls.name, outcome.message_key)
                result.violations.append(outcome)
                result.diagnostics.append(reporter.diagnose(outcome))
                if fail_fast:
                    return result
                failed.add(cls.name)
                break
    return result


def assert_preset(preset: Preset, index: ProjectIndex, reporter: ViolationReporter) -> PresetResult:
    """Run *preset* fail-fast; raises ``ConventionViolation`` on the first violation."""
    result = run_preset(preset, index, reporter, fail_fast=True)
    if result.violations:
        reporter.fail(result.violations[0])
    return result


def check(
    project_root: Path,
    preset_names: Sequence[str] | None = None,
    config: LarchConfig | None = None,
    *,
    fail_fast: bool | None = None,
    reporter: ViolationReporter | None = None,
) -> CheckResult:
    """Scan *project_root* and run the named presets (all when empty).

    Raises ``ConfigError`` for invalid configuration or unknown preset
    names, and ``DiscoveryError`` when no source root exists.
    """
    start = time.monotonic()
    config = config or load_config(project_root)
    presets = build_presets(config)
    names = list(preset_names) if preset_names else list(PRESET_NAMES)
    selected = [get_preset(presets, name) for name in names]
    stop_early = config.fail_fast if fail_fast is None else fail_fast

    index = ProjectIndex.scan(project_root, config.source_roots, framework=config.framework)
    reporter = reporter or ViolationReporter()

    results = []
    for preset in selected:
        preset_result = run_preset(preset, index, reporter, fail_fast=stop_early)
        logger.info(
            "Preset %s: %d class(es) checked, %d violation(s)",
            preset.name,
            preset_result.classes_checked,
            len(preset_result.violations),
        )
        results.append(preset_result)

    return CheckResult(
        results=results,
        files_scanned=index.files_scanned,
        classes_indexed=len(index),
        elapsed_ms=(time.monotonic() - start) * 1000,
    )
