"""Shared test fixtures for Larch."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from larch.discovery.index import ProjectIndex
from larch.reporting.diagnostic import ViolationReporter

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.fixture()
def laravel_project(tmp_path: Path) -> Path:
    """Create a minimal Laravel project: composer.json with ``App\\`` -> ``app/``."""
    project = tmp_path / "proj"
    (project / "app").mkdir(parents=True)
    (project / "composer.json").write_text(
        json.dumps({"name": "acme/shop", "autoload": {"psr-4": {"App\\": "app/"}}})
    )
    return project


@pytest.fixture()
def write_php() -> Callable[[Path, str, str], Path]:
    """Return a helper writing a PHP file at a project-relative path."""

    def _write(project: Path, rel_path: str, source: str) -> Path:
        path = project / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source)
        return path

    return _write


@pytest.fixture()
def make_index() -> Callable[..., ProjectIndex]:
    """Return a helper building an index from ``{file_path: source}`` pairs."""

    def _make(sources: dict[str, str], **kwargs: object) -> ProjectIndex:
        return ProjectIndex.from_sources(sources, **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture(scope="session")
def reporter() -> ViolationReporter:
    """Reporter backed by the bundled message catalog."""
    return ViolationReporter()
