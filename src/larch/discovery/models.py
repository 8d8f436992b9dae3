"""Immutable class-shape records produced by a discovery scan."""

from __future__ import annotations

from dataclasses import dataclass

VISIBILITIES: frozenset[str] = frozenset({"public", "protected", "private"})
CLASS_KINDS: frozenset[str] = frozenset({"class", "interface", "trait", "enum"})


@dataclass(frozen=True)
class ParameterDescriptor:
    """One formal parameter of a method.

    ``type_name`` is the fully-qualified name of a single named type, or
    ``None`` when the parameter is untyped or uses a union/intersection type.
    ``type_known`` tells whether that type resolves to a class the scan knows
    about (project source or framework table); ``type_ancestors`` is its
    parent chain, nearest first.
    """

    name: str
    type_text: str | None = None
    type_name: str | None = None
    type_known: bool = False
    type_ancestors: tuple[str, ...] = ()


@dataclass(frozen=True)
class MethodDescriptor:
    """A method visible on a class, own or inherited."""

    name: str
    visibility: str
    declaring_class: str
    file_path: str | None  # None for framework-table methods
    parameters: tuple[ParameterDescriptor, ...] = ()
    start_line: int = 0
    end_line: int = 0
    is_static: bool = False
    is_abstract: bool = False


@dataclass(frozen=True)
class PropertyDescriptor:
    """A property visible on a class (declared or constructor-promoted)."""

    name: str
    visibility: str
    declaring_class: str
    line: int = 0


@dataclass(frozen=True)
class ImportDescriptor:
    """A ``use`` statement at file level."""

    name: str  # fully-qualified target
    alias: str
    kind: str = "class"  # class | function | const
    line: int = 0


@dataclass(frozen=True)
class ClassDescriptor:
    """Shape of one discovered class, interface, trait or enum."""

    name: str
    short_name: str
    namespace: str
    file_path: str
    start_line: int
    end_line: int
    kind: str = "class"
    is_abstract: bool = False
    parent: str | None = None
    ancestors: tuple[str, ...] = ()
    interfaces: frozenset[str] = frozenset()
    methods: tuple[MethodDescriptor, ...] = ()
    properties: tuple[PropertyDescriptor, ...] = ()
    imports: tuple[ImportDescriptor, ...] = ()
    source: str = ""
    code_text: str = ""  # source with comments and string literals blanked

    # -- exemptions ---------------------------------------------------------

    @property
    def is_interface(self) -> bool:
        return self.kind == "interface"

    @property
    def is_trait(self) -> bool:
        return self.kind == "trait"

    @property
    def is_exempt(self) -> bool:
        """Abstract classes, interfaces and traits are never checked."""
        return self.is_abstract or self.is_interface or self.is_trait

    # -- methods ------------------------------------------------------------

    def is_own(self, method: MethodDescriptor) -> bool:
        """Declared in this class's body, not inherited and not mixed in by a trait."""
        return method.declaring_class == self.name and method.file_path == self.file_path

    def own_methods(self, visibility: str | None = None) -> list[MethodDescriptor]:
        return [
            m
            for m in self.methods
            if self.is_own(m) and (visibility is None or m.visibility == visibility)
        ]

    def get_method(self, name: str) -> MethodDescriptor | None:
        """Look a method up the way PHP does: case-insensitively, own first."""
        lowered = name.lower()
        for method in self.methods:
            if method.name.lower() == lowered:
                return method
        return None

    def has_method(self, name: str) -> bool:
        return self.get_method(name) is not None

    # -- properties ---------------------------------------------------------

    def get_property(self, name: str) -> PropertyDescriptor | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def has_property(self, name: str) -> bool:
        return self.get_property(name) is not None

    # -- hierarchy ----------------------------------------------------------

    def implements(self, interface: str) -> bool:
        return interface.lstrip("\\") in self.interfaces

    def is_subclass_of(self, class_name: str) -> bool:
        return class_name.lstrip("\\") in self.ancestors
