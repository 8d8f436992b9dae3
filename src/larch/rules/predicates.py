"""Rule predicates: pure checks over one :class:`ClassDescriptor`.

Every predicate is a frozen dataclass whose ``check(cls)`` returns either
:data:`PASS` or a :class:`Violation` describing the first offence found.
``message`` names the catalog entry used to render the diagnostic.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from larch.discovery.framework import ELOQUENT_MODEL, FORM_REQUEST
from larch.discovery.php_parser import BUILTIN_TYPES

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from larch.discovery.models import ClassDescriptor, MethodDescriptor, ParameterDescriptor

# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Passed:
    """The class satisfies the predicate."""


PASS = Passed()


@dataclass(frozen=True)
class Violation:
    """The first offence a predicate found in a class.

    ``subjects`` are the ``(label, value)`` lines of the VIOLATION block;
    ``location_line`` is appended to the file path when the offence has a
    precise line.  ``options`` carries the valid alternatives (prefixes,
    suffixes, allowed methods) and ``context`` the message placeholders.
    """

    message_key: str
    class_name: str
    file_path: str
    start_line: int
    end_line: int
    subjects: tuple[tuple[str, str], ...] = ()
    location_line: int | None = None
    options: tuple[str, ...] = ()
    context: Mapping[str, str] = field(default_factory=dict)


RuleOutcome = Passed | Violation

_R = TypeVar("_R")

SCAN_TEXT = "text"
SCAN_SYNTAX = "syntax"

_NESTED_RESOURCE_PREFIX_RE = re.compile(
    r"^(get|set|add|remove|update|delete|upload|download|create|store|show|edit|destroy)"
)


def line_of_offset(text: str, offset: int) -> int:
    """1-based line number of *offset*: newlines before it, plus one."""
    return text.count("\n", 0, offset) + 1


def _skips_exempt(
    check: Callable[[_R, ClassDescriptor], RuleOutcome],
) -> Callable[[_R, ClassDescriptor], RuleOutcome]:
    """Abstract classes, interfaces and traits pass every predicate."""

    @functools.wraps(check)
    def wrapper(self: _R, cls: ClassDescriptor) -> RuleOutcome:
        if cls.is_exempt:
            return PASS
        return check(self, cls)

    return wrapper


def _ucfirst(value: str) -> str:
    return value[:1].upper() + value[1:]


def _class_violation(
    cls: ClassDescriptor,
    message: str,
    *,
    subjects: tuple[tuple[str, str], ...] | None = None,
    location_line: int | None = None,
    options: tuple[str, ...] = (),
    **context: str,
) -> Violation:
    return Violation(
        message_key=message,
        class_name=cls.name,
        file_path=cls.file_path,
        start_line=location_line if location_line is not None else cls.start_line,
        end_line=location_line if location_line is not None else cls.end_line,
        subjects=subjects if subjects is not None else (("Class", cls.short_name),),
        location_line=location_line,
        options=options,
        context={"short_class": cls.short_name, "class_name": cls.name, **context},
    )


def _method_violation(
    cls: ClassDescriptor,
    method: MethodDescriptor,
    message: str,
    *,
    extra_subjects: tuple[tuple[str, str], ...] = (),
    options: tuple[str, ...] = (),
    **context: str,
) -> Violation:
    return Violation(
        message_key=message,
        class_name=cls.name,
        file_path=cls.file_path,
        start_line=method.start_line,
        end_line=method.end_line,
        subjects=(("Method", f"{cls.short_name}::{method.name}()"), *extra_subjects),
        location_line=method.start_line,
        options=options,
        context={
            "short_class": cls.short_name,
            "class_name": cls.name,
            "method": method.name,
            **context,
        },
    )


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NamingRule:
    """Short class name starts with a prefix, ends with a suffix, or matches a pattern.

    Matching is case-sensitive.  Exactly one of the three forms is used.
    """

    message: str
    prefixes: tuple[str, ...] = ()
    suffixes: tuple[str, ...] = ()
    pattern: str | None = None

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        name = cls.short_name
        if self.pattern is not None:
            if re.search(self.pattern, name):
                return PASS
            return _class_violation(cls, self.message)
        if self.prefixes:
            if any(name.startswith(p) for p in self.prefixes):
                return PASS
            return _class_violation(cls, self.message, options=self.prefixes)
        if self.suffixes:
            if any(name.endswith(s) for s in self.suffixes):
                return PASS
            return _class_violation(
                cls,
                self.message,
                options=self.suffixes,
                suggested_name=name + self.suffixes[0],
            )
        return PASS


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImplementsRule:
    """Class implements the interface, directly or through ancestors/interfaces."""

    message: str
    interface: str

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        if cls.implements(self.interface):
            return PASS
        return _class_violation(cls, self.message)


@dataclass(frozen=True)
class RequiredMethodRule:
    """Class has at least one of *methods*.

    Inherited methods count unless ``declared_only`` is set, in which case the
    method must be declared by the class itself (its body or a used trait).
    """

    message: str
    methods: tuple[str, ...]
    declared_only: bool = False

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        for name in self.methods:
            method = cls.get_method(name)
            if method is None:
                continue
            if self.declared_only and method.declaring_class != cls.name:
                continue
            return PASS
        return _class_violation(cls, self.message)


@dataclass(frozen=True)
class ConditionalMethodRule:
    """A class implementing *interface* must itself declare *method*."""

    message: str
    interface: str
    method: str

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        if not cls.implements(self.interface):
            return PASS
        method = cls.get_method(self.method)
        if method is not None and method.declaring_class == cls.name:
            return PASS
        interface_short = self.interface.rsplit("\\", 1)[-1]
        return _class_violation(
            cls,
            self.message,
            subjects=(
                ("Class", f"{cls.short_name} implements {interface_short}"),
                ("Missing", f"{self.method}() method"),
            ),
        )


@dataclass(frozen=True)
class RequiredPropertyRule:
    """Class, a used trait, or an in-project ancestor declares the property."""

    message: str
    name: str

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        if cls.has_property(self.name):
            return PASS
        return _class_violation(cls, self.message)


@dataclass(frozen=True)
class ForbiddenPropertyRule:
    """The class itself must not declare the property; inherited ones are fine."""

    message: str
    name: str

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        prop = cls.get_property(self.name)
        if prop is None or prop.declaring_class != cls.name:
            return PASS
        return _class_violation(
            cls,
            self.message,
            subjects=(("Class", cls.short_name), ("Property", f"${self.name}")),
        )


@dataclass(frozen=True)
class MethodAllowListRule:
    """Every own public method is in *allowed* (exact, case-sensitive).

    With ``suggest_nested_controller`` the violation context carries the
    name of a nested resource controller to move the method into.
    """

    message: str
    allowed: tuple[str, ...]
    suggest_nested_controller: bool = False

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        for method in cls.own_methods("public"):
            if method.name in self.allowed:
                continue
            context: dict[str, str] = {}
            if self.suggest_nested_controller:
                context = nested_controller_context(cls.short_name, method.name)
            return _method_violation(
                cls,
                method,
                self.message,
                options=self.allowed,
                **context,
            )
        return PASS


def nested_controller_context(short_class: str, method_name: str) -> dict[str, str]:
    """Suggest a nested controller for a non-RESTful action.

    ``PostController::uploadImage`` becomes ``PostImageController``.
    """
    resource = _ucfirst(_NESTED_RESOURCE_PREFIX_RE.sub("", method_name, count=1))
    if resource in ("", "0"):
        resource = _ucfirst(method_name)
    parent = short_class.replace("Controller", "")
    return {
        "potential_resource": resource,
        "parent_resource": parent,
        "nested_controller": f"{parent}{resource}Controller",
    }


@dataclass(frozen=True)
class NoNonPublicMethodsRule:
    """No own protected or private methods (protected ones are reported first)."""

    message: str

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        for visibility in ("protected", "private"):
            for method in cls.own_methods(visibility):
                return _method_violation(
                    cls,
                    method,
                    self.message,
                    extra_subjects=(("Visibility", visibility),),
                    visibility=visibility,
                )
        return PASS


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ForbiddenImportRule:
    """Source must not import any of *imports* (``(fqn, description)`` pairs).

    ``text`` mode looks for the literal ``use <fqn>`` in the raw source;
    ``syntax`` mode compares against the parsed ``use`` statements.
    """

    message: str
    imports: tuple[tuple[str, str], ...]
    scan_mode: str = SCAN_TEXT

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        for fqn, description in self.imports:
            line: int | None = None
            if self.scan_mode == SCAN_SYNTAX:
                found = next((i for i in cls.imports if i.kind == "class" and i.name == fqn), None)
                if found is None:
                    continue
                line = found.line
            elif f"use {fqn}" not in cls.source:
                continue
            return _class_violation(
                cls,
                self.message,
                subjects=(("Class", cls.short_name), ("Forbidden", description)),
                location_line=line,
                description=description,
            )
        return PASS


@dataclass(frozen=True)
class ForbiddenCallRule:
    """No regex in *patterns* (``(regex, description)`` pairs) matches the source.

    ``syntax`` mode searches the source with comments and strings blanked.
    The first pattern in order that matches is reported at its first match.
    """

    message: str
    patterns: tuple[tuple[str, str], ...]
    scan_mode: str = SCAN_TEXT
    label: str = "Forbidden"

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        text = cls.code_text if self.scan_mode == SCAN_SYNTAX else cls.source
        for pattern, description in self.patterns:
            match = re.search(pattern, text)
            if match is None:
                continue
            line = line_of_offset(text, match.start())
            return _class_violation(
                cls,
                self.message,
                subjects=(("Class", cls.short_name), (self.label, description)),
                location_line=line,
                description=description,
                line=str(line),
            )
        return PASS


@dataclass(frozen=True)
class ForbiddenContentRule:
    """Raw source contains none of *needles* (``(substring, description)`` pairs)."""

    message: str
    needles: tuple[tuple[str, str], ...]

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        for needle, description in self.needles:
            if needle in cls.source:
                return _class_violation(
                    cls,
                    self.message,
                    subjects=(("Class", cls.short_name), ("Forbidden", description)),
                    description=description,
                )
        return PASS


# ---------------------------------------------------------------------------
# Parameter contracts
# ---------------------------------------------------------------------------

PARAM_FORM_REQUEST = "form_request"
PARAM_MODEL = "model"
PARAM_ACTION = "action"


def is_form_request(param: ParameterDescriptor) -> bool:
    return param.type_known and FORM_REQUEST in param.type_ancestors


def is_eloquent_model(param: ParameterDescriptor) -> bool:
    return param.type_known and ELOQUENT_MODEL in param.type_ancestors


def is_action_class(param: ParameterDescriptor, actions_namespace: str = "App\\Actions") -> bool:
    """Named class type under *actions_namespace* or ending in ``Action``."""
    type_name = param.type_name
    if type_name is None or type_name.lower() in BUILTIN_TYPES:
        return False
    return type_name.startswith(actions_namespace + "\\") or type_name.endswith("Action")


_PARAM_CHECKS = {
    PARAM_FORM_REQUEST: is_form_request,
    PARAM_MODEL: is_eloquent_model,
    PARAM_ACTION: is_action_class,
}


@dataclass(frozen=True)
class ParameterContractRule:
    """A method declared by the class takes the expected positional parameter kinds.

    ``expected`` pairs a kind (``form_request``, ``model``, ``action``) with
    the rule text reported when that position does not match; ``arity_rule``
    is reported when there are too few parameters.  ``action`` parameters
    are recognised under *actions_namespace*.  Classes that do not
    declare the method pass.
    """

    message: str
    method: str
    expected: tuple[tuple[str, str], ...]
    arity_rule: str
    actions_namespace: str = "App\\Actions"

    def __post_init__(self) -> None:
        for kind, _ in self.expected:
            if kind not in _PARAM_CHECKS:
                msg = f"Unknown parameter kind '{kind}', expected one of {sorted(_PARAM_CHECKS)}"
                raise ValueError(msg)

    @_skips_exempt
    def check(self, cls: ClassDescriptor) -> RuleOutcome:
        method = cls.get_method(self.method)
        if method is None or method.declaring_class != cls.name:
            return PASS

        resource_name = cls.short_name.replace("Controller", "")
        params = method.parameters
        if len(params) < len(self.expected):
            return _method_violation(
                cls, method, self.message, rule=self.arity_rule, resource_name=resource_name
            )
        for param, (kind, rule_text) in zip(params, self.expected):
            if not self._matches(kind, param):
                return _method_violation(
                    cls, method, self.message, rule=rule_text, resource_name=resource_name
                )
        return PASS

    def _matches(self, kind: str, param: ParameterDescriptor) -> bool:
        if kind == PARAM_ACTION:
            return is_action_class(param, self.actions_namespace)
        return _PARAM_CHECKS[kind](param)


RulePredicate = (
    NamingRule
    | ImplementsRule
    | RequiredMethodRule
    | ConditionalMethodRule
    | RequiredPropertyRule
    | ForbiddenPropertyRule
    | MethodAllowListRule
    | NoNonPublicMethodsRule
    | ForbiddenImportRule
    | ForbiddenCallRule
    | ForbiddenContentRule
    | ParameterContractRule
)
