"""Project index: scan PSR-4 source roots and resolve class shapes across files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from larch.discovery.framework import BUILTIN_FRAMEWORK_CLASSES, FrameworkClass
from larch.discovery.models import (
    ClassDescriptor,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
)
from larch.discovery.php_parser import BUILTIN_TYPES, ParsedClass, ParsedFile, parse_file, parse_source

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from pathlib import Path

    from larch.discovery.php_parser import RawMethod

logger = logging.getLogger(__name__)

_SKIPPED_DIRS: frozenset[str] = frozenset({"vendor", "node_modules", ".git"})


class DiscoveryError(Exception):
    """Raised when the project's source roots cannot be scanned."""


@dataclass(frozen=True)
class SourceRoot:
    """A PSR-4 mapping: namespace prefix -> directory relative to the project root."""

    prefix: str
    directory: str


def in_namespace(class_name: str, namespace: str) -> bool:
    """True when *class_name* lives in *namespace* or one of its sub-namespaces."""
    namespace = namespace.strip("\\")
    if not namespace:
        return True
    return class_name == namespace or class_name.startswith(namespace + "\\")


class ProjectIndex:
    """All class-like declarations of one scan, resolved into :class:`ClassDescriptor`.

    Descriptors are built eagerly when the index is constructed so that every
    lookup afterwards is a pure read.
    """

    def __init__(
        self,
        files: Iterable[ParsedFile],
        *,
        framework: Mapping[str, FrameworkClass] | None = None,
    ) -> None:
        self._framework: dict[str, FrameworkClass] = dict(BUILTIN_FRAMEWORK_CLASSES)
        if framework:
            self._framework.update(framework)

        self._files: list[ParsedFile] = list(files)
        self._raw: dict[str, ParsedClass] = {}
        self._sources: dict[str, ParsedFile] = {}
        for parsed in self._files:
            for declared in parsed.classes:
                if declared.name in self._raw:
                    logger.warning(
                        "Duplicate declaration of %s in %s (first seen in %s), ignoring",
                        declared.name,
                        declared.file_path,
                        self._raw[declared.name].file_path,
                    )
                    continue
                self._raw[declared.name] = declared
                self._sources[declared.name] = parsed

        self._descriptors: dict[str, ClassDescriptor] = {}
        self._building: set[str] = set()
        for name in self._raw:
            self._describe(name)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def scan(
        cls,
        project_root: Path,
        source_roots: Iterable[SourceRoot],
        *,
        framework: Mapping[str, FrameworkClass] | None = None,
    ) -> ProjectIndex:
        """Parse every ``.php`` file under the given source roots.

        Raises :class:`DiscoveryError` when none of the roots exists.
        Unreadable files are logged and skipped.
        """
        roots = list(source_roots)
        existing = [r for r in roots if (project_root / r.directory).is_dir()]
        for root in roots:
            if root not in existing:
                logger.warning("Source root %s (%s) not found, skipping", root.directory, root.prefix)
        if not existing:
            dirs = ", ".join(r.directory for r in roots) or "(none)"
            msg = f"No source roots found under {project_root}: {dirs}"
            raise DiscoveryError(msg)

        seen: set[Path] = set()
        files: list[ParsedFile] = []
        for root in existing:
            base = project_root / root.directory
            for path in sorted(base.rglob("*.php")):
                if path.name.endswith(".blade.php"):
                    continue
                rel = path.relative_to(project_root)
                if any(part in _SKIPPED_DIRS for part in rel.parts):
                    continue
                resolved = path.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                try:
                    files.append(parse_file(path, rel.as_posix()))
                except OSError:
                    logger.warning("Cannot read file: %s", path)
        logger.info("Scanned %d PHP file(s) under %s", len(files), project_root)
        return cls(files, framework=framework)

    @classmethod
    def from_sources(
        cls,
        sources: Mapping[str, str],
        *,
        framework: Mapping[str, FrameworkClass] | None = None,
    ) -> ProjectIndex:
        """Build an index from in-memory ``{file_path: php_source}`` pairs."""
        return cls(
            [parse_source(text, path) for path, text in sorted(sources.items())],
            framework=framework,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def files_scanned(self) -> int:
        return len(self._files)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[ClassDescriptor]:
        return iter(self.all_classes())

    def get(self, name: str) -> ClassDescriptor | None:
        return self._descriptors.get(name.lstrip("\\"))

    def all_classes(self) -> list[ClassDescriptor]:
        """Every descriptor, ordered by file path then declaration line."""
        return sorted(self._descriptors.values(), key=lambda d: (d.file_path, d.start_line))

    def classes_in_namespace(self, namespace: str) -> list[ClassDescriptor]:
        return [d for d in self.all_classes() if in_namespace(d.name, namespace)]

    def is_known(self, name: str) -> bool:
        return name in self._raw or name in self._framework

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _parent_of(self, name: str) -> str | None:
        raw = self._raw.get(name)
        if raw is not None:
            return raw.parent
        fw = self._framework.get(name)
        return fw.parent if fw is not None else None

    def ancestor_chain(self, name: str) -> tuple[str, ...]:
        """Parents of *name*, nearest first; unknown parents end the chain after being listed."""
        chain: list[str] = []
        seen = {name}
        current = self._parent_of(name)
        while current is not None and current not in seen:
            chain.append(current)
            seen.add(current)
            current = self._parent_of(current)
        return tuple(chain)

    def _declared_interfaces(self, name: str) -> list[str]:
        raw = self._raw.get(name)
        if raw is not None:
            return list(raw.interfaces)
        fw = self._framework.get(name)
        return list(fw.interfaces) if fw is not None else []

    def _interface_closure(self, names: Iterable[str]) -> set[str]:
        found: set[str] = set()
        pending = list(names)
        while pending:
            name = pending.pop()
            if name in found:
                continue
            found.add(name)
            pending.extend(self._declared_interfaces(name))
        return found

    def _parameter(self, raw_name: str, type_text: str | None, type_name: str | None) -> ParameterDescriptor:
        if type_name is None or type_name.lower() in BUILTIN_TYPES:
            return ParameterDescriptor(name=raw_name, type_text=type_text, type_name=type_name)
        return ParameterDescriptor(
            name=raw_name,
            type_text=type_text,
            type_name=type_name,
            type_known=self.is_known(type_name),
            type_ancestors=self.ancestor_chain(type_name),
        )

    def _method(self, raw: RawMethod, declaring_class: str, file_path: str) -> MethodDescriptor:
        return MethodDescriptor(
            name=raw.name,
            visibility=raw.visibility,
            declaring_class=declaring_class,
            file_path=file_path,
            parameters=tuple(
                self._parameter(p.name, p.type_text, p.type_name) for p in raw.parameters
            ),
            start_line=raw.start_line,
            end_line=raw.end_line,
            is_static=raw.is_static,
            is_abstract=raw.is_abstract,
        )

    def _trait_members(
        self, traits: list[str], using_class: str, seen: set[str]
    ) -> tuple[list[MethodDescriptor], list[PropertyDescriptor]]:
        """Methods and properties mixed in by *traits*, attributed to the using class."""
        methods: list[MethodDescriptor] = []
        props: list[PropertyDescriptor] = []
        for trait_name in traits:
            if trait_name in seen:
                continue
            seen.add(trait_name)
            trait = self._raw.get(trait_name)
            if trait is None or trait.kind != "trait":
                continue
            methods.extend(self._method(m, using_class, trait.file_path) for m in trait.methods)
            props.extend(
                PropertyDescriptor(p.name, p.visibility, using_class, p.line)
                for p in trait.properties
            )
            nested_methods, nested_props = self._trait_members(trait.traits, using_class, seen)
            methods.extend(nested_methods)
            props.extend(nested_props)
        return methods, props

    def _inherited(self, parent: str | None) -> tuple[list[MethodDescriptor], list[PropertyDescriptor]]:
        if parent is None:
            return [], []
        if parent in self._raw:
            if parent in self._building:
                logger.warning("Inheritance cycle through %s, ignoring parent members", parent)
                return [], []
            desc = self._describe(parent)
            return list(desc.methods), list(desc.properties)

        methods: list[MethodDescriptor] = []
        current: str | None = parent
        seen: set[str] = set()
        while current is not None and current not in seen:
            seen.add(current)
            fw = self._framework.get(current)
            if fw is None:
                break
            methods.extend(
                MethodDescriptor(name=m, visibility="public", declaring_class=fw.name, file_path=None)
                for m in fw.methods
            )
            current = fw.parent
        return methods, []

    def _describe(self, name: str) -> ClassDescriptor:
        cached = self._descriptors.get(name)
        if cached is not None:
            return cached

        raw = self._raw[name]
        self._building.add(name)
        try:
            methods: list[MethodDescriptor] = [
                self._method(m, raw.name, raw.file_path) for m in raw.methods
            ]
            props: list[PropertyDescriptor] = [
                PropertyDescriptor(p.name, p.visibility, raw.name, p.line) for p in raw.properties
            ]

            trait_methods, trait_props = self._trait_members(raw.traits, raw.name, set())
            inherited_methods, inherited_props = self._inherited(raw.parent)

            method_names = {m.name.lower() for m in methods}
            for method in (*trait_methods, *inherited_methods):
                if method.name.lower() not in method_names:
                    methods.append(method)
                    method_names.add(method.name.lower())

            prop_names = {p.name for p in props}
            for prop in (*trait_props, *inherited_props):
                if prop.name not in prop_names:
                    props.append(prop)
                    prop_names.add(prop.name)

            ancestors = self.ancestor_chain(raw.name)
            interfaces = self._interface_closure(raw.interfaces)
            for ancestor in ancestors:
                interfaces |= self._interface_closure(self._declared_interfaces(ancestor))

            parsed_file = self._sources[name]
            descriptor = ClassDescriptor(
                name=raw.name,
                short_name=raw.short_name,
                namespace=raw.namespace,
                file_path=raw.file_path,
                start_line=raw.start_line,
                end_line=raw.end_line,
                kind=raw.kind,
                is_abstract=raw.is_abstract,
                parent=raw.parent,
                ancestors=ancestors,
                interfaces=frozenset(interfaces),
                methods=tuple(methods),
                properties=tuple(props),
                imports=tuple(parsed_file.imports),
                source=parsed_file.source,
                code_text=parsed_file.code_text,
            )
        finally:
            self._building.discard(name)

        self._descriptors[name] = descriptor
        return descriptor
