"""Diagnostics: catalog-driven rendering of rule violations."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from importlib import resources
from typing import TYPE_CHECKING, Any, NoReturn

import yaml

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from larch.rules.predicates import Violation

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{([a-z_]+)\}")
_MAX_LISTED_OPTIONS = 10


def fill_placeholders(template: str, context: Mapping[str, str]) -> str:
    """Replace ``{key}`` for keys present in *context*; other braces are kept."""

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        return context[key] if key in context else match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, template)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Diagnostic:
    """A rendered-ready description of one convention violation."""

    title: str
    rule_id: str
    rule: str
    reason: str
    class_name: str
    file_path: str
    start_line: int
    end_line: int
    subjects: tuple[tuple[str, str], ...] = ()
    location_line: int | None = None
    options_label: str | None = None
    options: str | None = None
    examples_label: str = "EXAMPLES"
    examples: str | None = None
    fix: str | None = None
    reference: str | None = None

    @property
    def location(self) -> str:
        if self.location_line is None:
            return self.file_path
        return f"{self.file_path}:{self.location_line}"

    def render(self) -> str:
        """Render as the multi-section plain-text message."""
        lines = [
            f"{self.title} VIOLATION",
            "",
            f"RULE: {self.rule}",
            "",
            f"REASON: {self.reason}",
            "",
            "VIOLATION:",
        ]
        lines.extend(f"- {label}: {value}" for label, value in self.subjects)
        lines.append(f"- Location: {self.location}")
        if self.options_label and self.options:
            lines.extend(["", f"{self.options_label}: {self.options}"])
        if self.examples:
            lines.extend(["", f"{self.examples_label}:", self.examples])
        if self.fix:
            lines.extend(["", f"FIX: {self.fix}"])
        if self.reference:
            lines.extend(["", f"REFERENCE: {self.reference}"])
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "title": f"{self.title} VIOLATION",
            "rule": self.rule,
            "class": self.class_name,
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "location": self.location,
            "subjects": {label: value for label, value in self.subjects},
            "message": self.render(),
        }


class ConventionViolation(Exception):
    """Raised when a preset finds a class breaking a convention."""

    def __init__(self, diagnostic: Diagnostic) -> None:
        super().__init__(diagnostic.render())
        self.diagnostic = diagnostic


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class MessageCatalog:
    """Message templates keyed by ``<category>.<rule>``."""

    def __init__(self, categories: dict[str, str], messages: dict[str, dict[str, Any]]) -> None:
        self._categories = categories
        self._messages = messages

    @classmethod
    def from_mapping(cls, data: object, context: str = "messages.yml") -> MessageCatalog:
        """Validate a parsed catalog; raises ``ValueError`` when malformed."""
        if not isinstance(data, dict):
            msg = f"{context}: catalog must be a YAML mapping"
            raise ValueError(msg)
        categories = data.get("categories")
        messages = data.get("messages")
        if not isinstance(categories, dict) or not isinstance(messages, dict):
            msg = f"{context}: 'categories' and 'messages' must be mappings"
            raise ValueError(msg)

        for key, entry in messages.items():
            if not isinstance(entry, dict):
                msg = f"{context}: message '{key}' must be a mapping"
                raise ValueError(msg)
            category = str(key).split(".", 1)[0]
            if category not in categories:
                msg = f"{context}: message '{key}' has unknown category '{category}'"
                raise ValueError(msg)
            for required in ("rule", "reason"):
                if not isinstance(entry.get(required), str):
                    msg = f"{context}: message '{key}' missing '{required}'"
                    raise ValueError(msg)
        return cls({str(k): str(v) for k, v in categories.items()}, messages)

    @classmethod
    def load(cls, path: Path | None = None) -> MessageCatalog:
        """Load the catalog from *path*, or the one bundled with the package."""
        if path is not None:
            text = path.read_text(encoding="utf-8")
            context = str(path)
        else:
            text = resources.files("larch.reporting").joinpath("messages.yml").read_text(encoding="utf-8")
            context = "messages.yml"
        return cls.from_mapping(yaml.safe_load(text), context)

    def __contains__(self, key: object) -> bool:
        return key in self._messages

    def keys(self) -> list[str]:
        return sorted(self._messages)

    def title(self, key: str) -> str:
        return self._categories[key.split(".", 1)[0]]

    def entry(self, key: str) -> dict[str, Any]:
        try:
            return self._messages[key]
        except KeyError as exc:
            msg = f"No message for rule '{key}'"
            raise KeyError(msg) from exc


# ---------------------------------------------------------------------------
# Reporter
# ---------------------------------------------------------------------------


class ViolationReporter:
    """Turns predicate violations into diagnostics and raises them."""

    def __init__(self, catalog: MessageCatalog | None = None) -> None:
        self.catalog = catalog or MessageCatalog.load()

    def diagnose(self, violation: Violation) -> Diagnostic:
        entry = self.catalog.entry(violation.message_key)
        context = dict(violation.context)
        context["option_list"] = self._option_list(violation.options, entry)

        def text(field_name: str) -> str | None:
            value = entry.get(field_name)
            return fill_placeholders(str(value), context) if value is not None else None

        options_label = entry.get("options_label")
        options = text("options") if "options" in entry else context["option_list"] or None

        return Diagnostic(
            title=self.catalog.title(violation.message_key),
            rule_id=violation.message_key,
            rule=text("rule") or "",
            reason=text("reason") or "",
            class_name=violation.class_name,
            file_path=violation.file_path,
            start_line=violation.start_line,
            end_line=violation.end_line,
            subjects=violation.subjects,
            location_line=violation.location_line,
            options_label=str(options_label) if options_label else None,
            options=options,
            examples_label=str(entry.get("examples_label", "EXAMPLES")),
            examples=text("examples"),
            fix=text("fix"),
            reference=text("reference"),
        )

    def fail(self, violation: Violation) -> NoReturn:
        diagnostic = self.diagnose(violation)
        logger.debug("Convention violation %s in %s", diagnostic.rule_id, diagnostic.class_name)
        raise ConventionViolation(diagnostic)

    @staticmethod
    def _option_list(options: tuple[str, ...], entry: Mapping[str, Any]) -> str:
        if not options:
            return ""
        if entry.get("truncate_options"):
            return ", ".join(options[:_MAX_LISTED_OPTIONS]) + ", ..."
        return ", ".join(options)
