"""Rules: predicates, presets and the preset runner."""

from larch.rules.engine import CheckResult, PresetResult, assert_preset, check, run_preset
from larch.rules.predicates import PASS, Passed, RuleOutcome, Violation
from larch.rules.presets import PRESET_NAMES, Preset, RuleSet, build_presets, get_preset

__all__ = [
    "PASS",
    "PRESET_NAMES",
    "CheckResult",
    "Passed",
    "Preset",
    "PresetResult",
    "RuleOutcome",
    "RuleSet",
    "Violation",
    "assert_preset",
    "build_presets",
    "check",
    "get_preset",
    "run_preset",
]
