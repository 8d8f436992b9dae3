"""PHP source parsing: tree-sitter extraction of class shapes and ``use`` imports."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import tree_sitter_php as tsphp
from tree_sitter import Language, Parser

from larch.discovery.models import ImportDescriptor

if TYPE_CHECKING:
    from pathlib import Path

    from tree_sitter import Node as TSNode

logger = logging.getLogger(__name__)

PHP_LANGUAGE = Language(tsphp.language_php())

# Node types whose text is not code: blanked out for syntax-mode scanning.
_MASKED_TYPES: frozenset[str] = frozenset(
    {"comment", "string", "encapsed_string", "heredoc", "nowdoc"}
)
_CLASS_LIKE_TYPES: dict[str, str] = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "trait_declaration": "trait",
    "enum_declaration": "enum",
}
_NAME_TYPES: frozenset[str] = frozenset({"name", "qualified_name"})

# Types that never name a class.
BUILTIN_TYPES: frozenset[str] = frozenset(
    {
        "array",
        "bool",
        "callable",
        "false",
        "float",
        "int",
        "iterable",
        "mixed",
        "never",
        "null",
        "object",
        "string",
        "true",
        "void",
    }
)
_RELATIVE_TYPES: frozenset[str] = frozenset({"self", "static", "parent"})

_USE_KIND_RE = re.compile(r"^(function|const)\s+", re.IGNORECASE)
_USE_ALIAS_RE = re.compile(r"\s+as\s+", re.IGNORECASE)


@dataclass(frozen=True)
class RawParameter:
    name: str
    type_text: str | None
    type_name: str | None  # resolved single named type


@dataclass(frozen=True)
class RawMethod:
    name: str
    visibility: str
    start_line: int
    end_line: int
    parameters: tuple[RawParameter, ...] = ()
    is_static: bool = False
    is_abstract: bool = False


@dataclass(frozen=True)
class RawProperty:
    name: str
    visibility: str
    line: int


@dataclass
class ParsedClass:
    """A class-like declaration with names resolved against its file's imports."""

    name: str
    short_name: str
    namespace: str
    kind: str
    start_line: int
    end_line: int
    file_path: str
    is_abstract: bool = False
    parent: str | None = None
    interfaces: list[str] = field(default_factory=list)
    traits: list[str] = field(default_factory=list)
    methods: list[RawMethod] = field(default_factory=list)
    properties: list[RawProperty] = field(default_factory=list)


@dataclass
class ParsedFile:
    """Everything discovery needs from one ``.php`` file."""

    file_path: str
    source: str
    code_text: str
    imports: list[ImportDescriptor] = field(default_factory=list)
    classes: list[ParsedClass] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Name resolution
# ---------------------------------------------------------------------------


def parse_use_statement(text: str, line: int = 0) -> list[ImportDescriptor]:
    """Parse the text of a file-level ``use`` statement.

    Handles aliases, comma lists, ``use function``/``use const`` and group
    syntax (``use App\\Models\\{User, Post as Article};``).
    """
    body = text.strip().rstrip(";").strip()
    if body[:3].lower() == "use":
        body = body[3:].strip()

    kind = "class"
    kind_match = _USE_KIND_RE.match(body)
    if kind_match:
        kind = kind_match.group(1).lower()
        body = body[kind_match.end() :]

    entries: list[tuple[str, str]] = []
    if "{" in body:
        prefix, _, group = body.partition("{")
        prefix = prefix.strip().rstrip("\\")
        for item in group.rstrip().rstrip("}").split(","):
            item = item.strip()
            if not item:
                continue
            item_kind = kind
            item_match = _USE_KIND_RE.match(item)
            if item_match:
                item_kind = item_match.group(1).lower()
                item = item[item_match.end() :]
            entries.append((item_kind, f"{prefix}\\{item}"))
    else:
        entries = [(kind, item.strip()) for item in body.split(",") if item.strip()]

    imports: list[ImportDescriptor] = []
    for entry_kind, entry in entries:
        parts = _USE_ALIAS_RE.split(entry, maxsplit=1)
        target = parts[0].strip().lstrip("\\")
        alias = parts[1].strip() if len(parts) > 1 else target.rsplit("\\", 1)[-1]
        imports.append(ImportDescriptor(name=target, alias=alias, kind=entry_kind, line=line))
    return imports


def resolve_name(name: str, namespace: str, uses: dict[str, str]) -> str:
    """Resolve a class reference to its fully-qualified name.

    *uses* maps lower-cased aliases to targets (class imports only).
    Built-in types are returned unchanged.
    """
    name = name.strip()
    if name.startswith("\\"):
        return name[1:]
    if name.lower() in BUILTIN_TYPES or name.lower() in _RELATIVE_TYPES:
        return name
    if "\\" in name:
        first, rest = name.split("\\", 1)
        if first.lower() == "namespace":
            return f"{namespace}\\{rest}" if namespace else rest
        target = uses.get(first.lower())
        if target is not None:
            return f"{target}\\{rest}"
    else:
        target = uses.get(name.lower())
        if target is not None:
            return target
    return f"{namespace}\\{name}" if namespace else name


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def _text(node: TSNode) -> str:
    return node.text.decode("utf-8", errors="replace") if node.text else ""


def _line_span(node: TSNode) -> tuple[int, int]:
    # tree-sitter rows are 0-based
    return node.start_point.row + 1, node.end_point.row + 1


def _modifiers(node: TSNode) -> set[str]:
    """Collect modifier keywords (abstract, static, public, ...) of a declaration."""
    found: set[str] = set()
    for child in node.children:
        if child.type.endswith("modifier"):
            found.add(_text(child).strip().lower())
    return found


def _visibility(modifiers: set[str]) -> str:
    for candidate in ("private", "protected", "public"):
        if candidate in modifiers:
            return candidate
    return "public"


def _single_named_type(node: TSNode) -> str | None:
    """Return the raw name of a single named type, ``None`` for compound types."""
    if node.type in ("named_type", "primitive_type", *_NAME_TYPES):
        return _text(node).strip()
    if node.type == "optional_type":
        for child in node.named_children:
            return _single_named_type(child)
        return None
    if node.type == "union_type":
        # Older grammars wrap every type in union_type; `Foo|null` is still a named type.
        members = [c for c in node.named_children if _text(c).strip().lower() != "null"]
        if len(members) == 1:
            return _single_named_type(members[0])
    return None


def _variable_name(node: TSNode) -> str | None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        for child in node.children:
            if child.type == "variable_name":
                name_node = child
                break
    if name_node is None:
        return None
    return _text(name_node).lstrip("$").strip() or None


def build_code_text(source_bytes: bytes, root: TSNode) -> str:
    """Blank comments and string literals, keeping newlines so offsets map to lines."""
    masked = bytearray(source_bytes)
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in _MASKED_TYPES:
            for pos in range(node.start_byte, node.end_byte):
                if masked[pos] != 0x0A:
                    masked[pos] = 0x20
            continue
        stack.extend(node.children)
    return masked.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Declaration extraction
# ---------------------------------------------------------------------------


class _FileScope:
    """Namespace and import state while walking one file."""

    def __init__(self) -> None:
        self.namespace = ""
        self.uses: dict[str, str] = {}

    def resolve(self, name: str) -> str:
        return resolve_name(name, self.namespace, self.uses)


def _parse_parameters(node: TSNode | None, scope: _FileScope) -> list[RawParameter]:
    if node is None:
        return []
    params: list[RawParameter] = []
    for child in node.named_children:
        if child.type not in (
            "simple_parameter",
            "variadic_parameter",
            "property_promotion_parameter",
        ):
            continue
        name = _variable_name(child) or ""
        type_node = child.child_by_field_name("type")
        type_text: str | None = None
        type_name: str | None = None
        if type_node is not None:
            type_text = _text(type_node).strip()
            raw = _single_named_type(type_node)
            if raw is not None:
                type_name = scope.resolve(raw)
        params.append(RawParameter(name=name, type_text=type_text, type_name=type_name))
    return params


def _promoted_properties(node: TSNode | None) -> list[RawProperty]:
    if node is None:
        return []
    props: list[RawProperty] = []
    for child in node.named_children:
        if child.type != "property_promotion_parameter":
            continue
        name = _variable_name(child)
        if name is None:
            continue
        props.append(
            RawProperty(name=name, visibility=_visibility(_modifiers(child)), line=_line_span(child)[0])
        )
    return props


def _parse_property_declaration(node: TSNode) -> list[RawProperty]:
    visibility = _visibility(_modifiers(node))
    props: list[RawProperty] = []
    for child in node.named_children:
        if child.type != "property_element":
            continue
        name = _variable_name(child)
        if name is None:
            for sub in child.named_children:
                if sub.type == "variable_name":
                    name = _text(sub).lstrip("$")
                    break
        if name:
            props.append(RawProperty(name=name, visibility=visibility, line=_line_span(child)[0]))
    return props


def _parse_class(
    node: TSNode, kind: str, scope: _FileScope, file_path: str
) -> ParsedClass | None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    short_name = _text(name_node).strip()
    fqn = f"{scope.namespace}\\{short_name}" if scope.namespace else short_name
    start_line, end_line = _line_span(node)

    parsed = ParsedClass(
        name=fqn,
        short_name=short_name,
        namespace=scope.namespace,
        kind=kind,
        start_line=start_line,
        end_line=end_line,
        file_path=file_path,
        is_abstract="abstract" in _modifiers(node),
    )

    body: TSNode | None = node.child_by_field_name("body")
    for child in node.children:
        if child.type == "base_clause":
            names = [scope.resolve(_text(c)) for c in child.named_children if c.type in _NAME_TYPES]
            if kind == "interface":
                parsed.interfaces.extend(names)
            elif names:
                parsed.parent = names[0]
        elif child.type == "class_interface_clause":
            parsed.interfaces.extend(
                scope.resolve(_text(c)) for c in child.named_children if c.type in _NAME_TYPES
            )
        elif body is None and child.type in ("declaration_list", "enum_declaration_list"):
            body = child

    if body is None:
        return parsed

    for member in body.named_children:
        if member.type == "method_declaration":
            method_name = member.child_by_field_name("name")
            if method_name is None:
                continue
            modifiers = _modifiers(member)
            params_node = member.child_by_field_name("parameters")
            m_start, m_end = _line_span(member)
            parsed.methods.append(
                RawMethod(
                    name=_text(method_name).strip(),
                    visibility=_visibility(modifiers),
                    start_line=m_start,
                    end_line=m_end,
                    parameters=tuple(_parse_parameters(params_node, scope)),
                    is_static="static" in modifiers,
                    is_abstract="abstract" in modifiers,
                )
            )
            if _text(method_name).strip().lower() == "__construct":
                parsed.properties.extend(_promoted_properties(params_node))
        elif member.type == "property_declaration":
            parsed.properties.extend(_parse_property_declaration(member))
        elif member.type == "use_declaration":
            parsed.traits.extend(
                scope.resolve(_text(c)) for c in member.named_children if c.type in _NAME_TYPES
            )
    return parsed


def _walk_statements(
    nodes: list[TSNode], scope: _FileScope, parsed: ParsedFile
) -> None:
    for child in nodes:
        if child.type == "namespace_definition":
            name_node = child.child_by_field_name("name")
            scope.namespace = _text(name_node).strip().lstrip("\\") if name_node else ""
            scope.uses = {}
            body = child.child_by_field_name("body")
            if body is not None:
                _walk_statements(body.named_children, scope, parsed)
            continue

        if child.type == "namespace_use_declaration":
            imports = parse_use_statement(_text(child), _line_span(child)[0])
            parsed.imports.extend(imports)
            for imp in imports:
                if imp.kind == "class":
                    scope.uses[imp.alias.lower()] = imp.name
            continue

        kind = _CLASS_LIKE_TYPES.get(child.type)
        if kind is None:
            continue
        declared = _parse_class(child, kind, scope, parsed.file_path)
        if declared is not None:
            parsed.classes.append(declared)


def parse_source(source: str, file_path: str) -> ParsedFile:
    """Parse PHP *source* text; *file_path* is recorded on every declaration."""
    source_bytes = source.encode("utf-8")
    parser = Parser(PHP_LANGUAGE)
    tree = parser.parse(source_bytes)

    parsed = ParsedFile(
        file_path=file_path,
        source=source,
        code_text=build_code_text(source_bytes, tree.root_node),
    )
    _walk_statements(tree.root_node.named_children, _FileScope(), parsed)
    logger.debug("Parsed %s: %d class-like declaration(s)", file_path, len(parsed.classes))
    return parsed


def parse_file(path: Path, display_path: str | None = None) -> ParsedFile:
    """Read and parse one ``.php`` file.

    Raises ``OSError`` when the file cannot be read.
    """
    source = path.read_text(encoding="utf-8", errors="replace")
    return parse_source(source, display_path or path.as_posix())
