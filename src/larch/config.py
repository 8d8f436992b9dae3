"""Project configuration: ``larch.yml`` plus PSR-4 roots from ``composer.json``."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from larch.discovery.framework import FrameworkClass, parse_framework_classes
from larch.discovery.index import SourceRoot

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "larch.yml"
SUPPORTED_CONFIG_VERSIONS: frozenset[int] = frozenset({1})
SCAN_MODES: frozenset[str] = frozenset({"text", "syntax"})
DEFAULT_SOURCE_ROOTS: tuple[SourceRoot, ...] = (SourceRoot("App", "app"),)


class ConfigError(ValueError):
    """Raised when ``larch.yml`` or ``composer.json`` is invalid."""


@dataclass(frozen=True)
class PresetOptions:
    """Per-preset tuning from the ``presets:`` block."""

    exclude: tuple[str, ...] = ()
    besides: tuple[str, ...] = ()


@dataclass
class LarchConfig:
    """Resolved configuration for one project."""

    root_namespace: str = "App"
    source_roots: tuple[SourceRoot, ...] = DEFAULT_SOURCE_ROOTS
    scan_mode: str = "text"
    fail_fast: bool = True
    presets: dict[str, PresetOptions] = field(default_factory=dict)
    framework: dict[str, FrameworkClass] = field(default_factory=dict)

    def options_for(self, preset_name: str) -> PresetOptions:
        return self.presets.get(preset_name, PresetOptions())


# ---------------------------------------------------------------------------
# composer.json
# ---------------------------------------------------------------------------


def read_composer_roots(project_root: Path) -> list[SourceRoot]:
    """Read ``autoload.psr-4`` from ``composer.json``.

    Returns an empty list when the file is absent or declares no PSR-4
    mapping.  Raises :class:`ConfigError` when the file is not valid JSON.
    """
    path = project_root / "composer.json"
    if not path.is_file():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"composer.json: cannot parse: {exc}"
        raise ConfigError(msg) from exc

    if not isinstance(data, dict):
        return []
    autoload = data.get("autoload", {})
    psr4 = autoload.get("psr-4", {}) if isinstance(autoload, dict) else {}
    if not isinstance(psr4, dict):
        return []

    roots: list[SourceRoot] = []
    for prefix, dirs in psr4.items():
        dir_list = dirs if isinstance(dirs, list) else [dirs]
        for directory in dir_list:
            if not isinstance(directory, str):
                continue
            roots.append(
                SourceRoot(prefix=str(prefix).strip("\\"), directory=directory.rstrip("/") or ".")
            )
    return roots


# ---------------------------------------------------------------------------
# larch.yml
# ---------------------------------------------------------------------------


def _string_list(value: object, context: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        msg = f"{context} must be a list of strings"
        raise ConfigError(msg)
    return tuple(v.strip("\\") if "\\" in v else v for v in value)


def _parse_presets(data: object) -> dict[str, PresetOptions]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{CONFIG_FILENAME}: 'presets' must be a mapping"
        raise ConfigError(msg)

    presets: dict[str, PresetOptions] = {}
    for name, entry in data.items():
        entry = entry or {}
        if not isinstance(entry, dict):
            msg = f"{CONFIG_FILENAME}: preset '{name}' must be a mapping"
            raise ConfigError(msg)
        unknown = set(entry) - {"exclude", "besides"}
        if unknown:
            msg = f"{CONFIG_FILENAME}: preset '{name}': unknown key(s) {sorted(unknown)}"
            raise ConfigError(msg)
        presets[str(name)] = PresetOptions(
            exclude=_string_list(entry.get("exclude"), f"{CONFIG_FILENAME}: presets.{name}.exclude"),
            besides=_string_list(entry.get("besides"), f"{CONFIG_FILENAME}: presets.{name}.besides"),
        )
    return presets


def _parse_source_roots(data: object) -> tuple[SourceRoot, ...]:
    if not isinstance(data, dict) or not data:
        msg = f"{CONFIG_FILENAME}: 'source_roots' must be a non-empty mapping of namespace to directory"
        raise ConfigError(msg)
    roots: list[SourceRoot] = []
    for prefix, directory in data.items():
        if not isinstance(directory, str) or not directory:
            msg = f"{CONFIG_FILENAME}: source root for '{prefix}' must be a directory path"
            raise ConfigError(msg)
        roots.append(SourceRoot(prefix=str(prefix).strip("\\"), directory=directory.rstrip("/")))
    return tuple(roots)


def parse_config(
    data: dict[str, Any],
    *,
    composer_roots: list[SourceRoot] | None = None,
) -> LarchConfig:
    """Build a :class:`LarchConfig` from a parsed ``larch.yml`` mapping.

    Raises :class:`ConfigError` on invalid values.
    """
    version = data.get("version", 1)
    if (
        not isinstance(version, int)
        or isinstance(version, bool)
        or version not in SUPPORTED_CONFIG_VERSIONS
    ):
        expected = sorted(SUPPORTED_CONFIG_VERSIONS)
        msg = f"{CONFIG_FILENAME}: unsupported version {version}, expected one of {expected}"
        raise ConfigError(msg)

    root_namespace = data.get("root_namespace", "App")
    if not isinstance(root_namespace, str) or not root_namespace.strip("\\"):
        msg = f"{CONFIG_FILENAME}: 'root_namespace' must be a non-empty string"
        raise ConfigError(msg)

    scan_mode = data.get("scan_mode", "text")
    if not isinstance(scan_mode, str) or scan_mode not in SCAN_MODES:
        msg = f"{CONFIG_FILENAME}: invalid scan_mode '{scan_mode}', must be one of {sorted(SCAN_MODES)}"
        raise ConfigError(msg)

    fail_fast = data.get("fail_fast", True)
    if not isinstance(fail_fast, bool):
        msg = f"{CONFIG_FILENAME}: 'fail_fast' must be true or false"
        raise ConfigError(msg)

    if "source_roots" in data:
        source_roots = _parse_source_roots(data["source_roots"])
    elif composer_roots:
        source_roots = tuple(composer_roots)
    else:
        source_roots = DEFAULT_SOURCE_ROOTS

    framework_data = data.get("framework") or {}
    if not isinstance(framework_data, dict):
        msg = f"{CONFIG_FILENAME}: 'framework' must be a mapping"
        raise ConfigError(msg)
    try:
        framework = parse_framework_classes(framework_data, CONFIG_FILENAME)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    return LarchConfig(
        root_namespace=root_namespace.strip("\\"),
        source_roots=source_roots,
        scan_mode=scan_mode,
        fail_fast=fail_fast,
        presets=_parse_presets(data.get("presets")),
        framework=framework,
    )


def load_config(project_root: Path) -> LarchConfig:
    """Load configuration for the project at *project_root*.

    A missing ``larch.yml`` yields defaults; source roots then come from
    ``composer.json`` (or ``App\\ -> app/``).
    """
    composer_roots = read_composer_roots(project_root)
    path = project_root / CONFIG_FILENAME
    if not path.is_file():
        logger.debug("No %s in %s, using defaults", CONFIG_FILENAME, project_root)
        return parse_config({}, composer_roots=composer_roots)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        msg = f"{CONFIG_FILENAME}: invalid YAML: {exc}"
        raise ConfigError(msg) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"{CONFIG_FILENAME} must be a YAML mapping"
        raise ConfigError(msg)
    return parse_config(data, composer_roots=composer_roots)
