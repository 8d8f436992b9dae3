"""Known framework classes the scan cannot see in project source.

Laravel application classes extend vendor base classes (``Model``,
``FormRequest``, ``JsonResource``...).  Discovery never reads ``vendor/``, so
the parts of those classes that conventions depend on (ancestry, interfaces,
public methods) are described here.  Properties are deliberately absent: the
base classes only declare empty placeholders (``$signature``, ``$fillable``)
that subclasses are expected to fill in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

SHOULD_QUEUE = "Illuminate\\Contracts\\Queue\\ShouldQueue"
DEFERRABLE_PROVIDER = "Illuminate\\Contracts\\Support\\DeferrableProvider"
ELOQUENT_MODEL = "Illuminate\\Database\\Eloquent\\Model"
FORM_REQUEST = "Illuminate\\Foundation\\Http\\FormRequest"
LIVEWIRE_COMPONENT = "Livewire\\Component"


@dataclass(frozen=True)
class FrameworkClass:
    """Vendor class shape: parent, interfaces (or parent interfaces) and public methods."""

    name: str
    parent: str | None = None
    interfaces: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()
    kind: str = "class"


_BUILTIN: tuple[FrameworkClass, ...] = (
    # Contracts
    FrameworkClass(SHOULD_QUEUE, kind="interface"),
    FrameworkClass(
        "Illuminate\\Contracts\\Queue\\ShouldQueueAfterCommit",
        interfaces=(SHOULD_QUEUE,),
        kind="interface",
    ),
    FrameworkClass(
        "Illuminate\\Contracts\\Queue\\ShouldBeEncrypted", kind="interface"
    ),
    FrameworkClass("Illuminate\\Contracts\\Queue\\ShouldBeUnique", kind="interface"),
    FrameworkClass(DEFERRABLE_PROVIDER, kind="interface"),
    FrameworkClass(
        "Illuminate\\Contracts\\Broadcasting\\ShouldBroadcast", kind="interface"
    ),
    FrameworkClass(
        "Illuminate\\Contracts\\Broadcasting\\ShouldBroadcastNow",
        interfaces=("Illuminate\\Contracts\\Broadcasting\\ShouldBroadcast",),
        kind="interface",
    ),
    # Eloquent
    FrameworkClass(
        ELOQUENT_MODEL,
        interfaces=("ArrayAccess", "JsonSerializable"),
        methods=("save", "update", "delete", "fill", "toArray", "toJson", "fresh", "refresh"),
    ),
    FrameworkClass(
        "Illuminate\\Foundation\\Auth\\User",
        parent=ELOQUENT_MODEL,
        interfaces=(
            "Illuminate\\Contracts\\Auth\\Authenticatable",
            "Illuminate\\Contracts\\Auth\\Access\\Authorizable",
            "Illuminate\\Contracts\\Auth\\CanResetPassword",
        ),
    ),
    FrameworkClass(
        "Illuminate\\Database\\Eloquent\\Relations\\Pivot", parent=ELOQUENT_MODEL
    ),
    # HTTP
    FrameworkClass(
        "Illuminate\\Http\\Request",
        parent="Symfony\\Component\\HttpFoundation\\Request",
        methods=("input", "all", "only", "except", "user", "route", "validate"),
    ),
    FrameworkClass(
        FORM_REQUEST,
        parent="Illuminate\\Http\\Request",
        interfaces=("Illuminate\\Contracts\\Validation\\ValidatesWhenResolved",),
        methods=("validated", "safe", "messages", "attributes", "validateResolved"),
    ),
    FrameworkClass(
        "Illuminate\\Http\\Resources\\Json\\JsonResource",
        interfaces=("ArrayAccess", "JsonSerializable", "Illuminate\\Contracts\\Support\\Responsable"),
        methods=(
            "toArray",
            "with",
            "additional",
            "resolve",
            "jsonOptions",
            "withResponse",
            "toResponse",
            "response",
            "jsonSerialize",
        ),
    ),
    FrameworkClass(
        "Illuminate\\Http\\Resources\\Json\\ResourceCollection",
        parent="Illuminate\\Http\\Resources\\Json\\JsonResource",
        methods=("count", "toArray", "toResponse", "getIterator"),
    ),
    FrameworkClass(
        "Illuminate\\Routing\\Controller",
        methods=("middleware", "getMiddleware", "callAction"),
    ),
    # Console
    FrameworkClass(
        "Illuminate\\Console\\Command",
        parent="Symfony\\Component\\Console\\Command\\Command",
        methods=("run", "call", "info", "line", "error", "warn", "ask", "confirm", "option", "argument"),
    ),
    FrameworkClass(
        "Illuminate\\Console\\GeneratorCommand",
        parent="Illuminate\\Console\\Command",
        methods=("handle",),
    ),
    # Providers
    FrameworkClass(
        "Illuminate\\Support\\ServiceProvider",
        methods=(
            "register",
            "boot",
            "provides",
            "when",
            "isDeferred",
            "callBootingCallbacks",
            "callBootedCallbacks",
        ),
    ),
    FrameworkClass(
        "Illuminate\\Foundation\\Support\\Providers\\EventServiceProvider",
        parent="Illuminate\\Support\\ServiceProvider",
        methods=("listens", "shouldDiscoverEvents"),
    ),
    FrameworkClass(
        "Illuminate\\Foundation\\Support\\Providers\\RouteServiceProvider",
        parent="Illuminate\\Support\\ServiceProvider",
        methods=("loadRoutes",),
    ),
    FrameworkClass(
        "Illuminate\\Foundation\\Support\\Providers\\AuthServiceProvider",
        parent="Illuminate\\Support\\ServiceProvider",
        methods=("registerPolicies", "policies"),
    ),
    # Livewire
    FrameworkClass(LIVEWIRE_COMPONENT, methods=("render", "mount", "dispatch", "validate", "reset")),
    FrameworkClass("Livewire\\Volt\\Component", parent=LIVEWIRE_COMPONENT),
)

BUILTIN_FRAMEWORK_CLASSES: dict[str, FrameworkClass] = {fc.name: fc for fc in _BUILTIN}


def parse_framework_classes(data: dict[str, Any], context: str) -> dict[str, FrameworkClass]:
    """Parse the ``framework:`` config block into :class:`FrameworkClass` entries.

    YAML example::

        framework:
          Spatie\\LaravelData\\Data:
            interfaces: [JsonSerializable]
            methods: [from, toArray]

    Raises ``ValueError`` on malformed entries.
    """
    classes: dict[str, FrameworkClass] = {}
    for raw_name, raw_entry in data.items():
        name = str(raw_name).lstrip("\\")
        entry = raw_entry or {}
        if not isinstance(entry, dict):
            msg = f"{context}: framework class '{name}' must be a mapping"
            raise ValueError(msg)

        parent = entry.get("parent")
        interfaces = entry.get("interfaces", [])
        methods = entry.get("methods", [])
        kind = str(entry.get("kind", "class"))
        if not isinstance(interfaces, list) or not isinstance(methods, list):
            msg = f"{context}: framework class '{name}': interfaces and methods must be lists"
            raise ValueError(msg)
        if kind not in ("class", "interface"):
            msg = f"{context}: framework class '{name}': kind must be 'class' or 'interface'"
            raise ValueError(msg)

        classes[name] = FrameworkClass(
            name=name,
            parent=str(parent).lstrip("\\") if parent else None,
            interfaces=tuple(str(i).lstrip("\\") for i in interfaces),
            methods=tuple(str(m) for m in methods),
            kind=kind,
        )
    return classes
