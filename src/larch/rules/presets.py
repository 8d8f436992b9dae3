"""Convention presets: named, ordered rule sets per Laravel scaffolding category.

A :class:`RuleSet` binds an ordered tuple of predicates to a namespace; a
:class:`Preset` is an ordered tuple of rule sets.  The table is built from
configuration by :func:`build_presets` and handed to the engine explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from larch.config import ConfigError, LarchConfig
from larch.discovery.framework import DEFERRABLE_PROVIDER, LIVEWIRE_COMPONENT, SHOULD_QUEUE
from larch.discovery.index import in_namespace
from larch.rules.predicates import (
    PARAM_ACTION,
    PARAM_FORM_REQUEST,
    PARAM_MODEL,
    ConditionalMethodRule,
    ForbiddenCallRule,
    ForbiddenContentRule,
    ForbiddenImportRule,
    ForbiddenPropertyRule,
    ImplementsRule,
    MethodAllowListRule,
    NamingRule,
    NoNonPublicMethodsRule,
    ParameterContractRule,
    RequiredMethodRule,
    RequiredPropertyRule,
)

if TYPE_CHECKING:
    from larch.discovery.models import ClassDescriptor
    from larch.rules.predicates import RulePredicate


@dataclass(frozen=True)
class RuleSet:
    """Predicates applied, in order, to every class under *namespace*."""

    namespace: str
    rules: tuple[RulePredicate, ...]
    exclude: tuple[str, ...] = ()  # namespaces or class names
    subclass_of: str | None = None

    def applies_to(self, cls: ClassDescriptor) -> bool:
        if any(in_namespace(cls.name, excluded) for excluded in self.exclude):
            return False
        return self.subclass_of is None or cls.is_subclass_of(self.subclass_of)


@dataclass(frozen=True)
class Preset:
    """A named bundle of rule sets."""

    name: str
    description: str
    rule_sets: tuple[RuleSet, ...]


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

COMMAND_PREFIXES: tuple[str, ...] = (
    "Send", "Process", "Generate", "Sync", "Import", "Export", "Prune", "Cleanup",
    "Run", "Execute", "Build", "Create", "Delete", "Update", "Notify", "Dispatch",
    "Publish", "Fetch", "Calculate", "Validate", "Check", "Refresh", "Clear",
    "Cache", "Queue", "Schedule", "Migrate", "Seed", "Install", "Setup",
    "Configure", "Reset", "Restore", "Backup", "Make",
)  # fmt: skip

JOB_PREFIXES: tuple[str, ...] = (
    "Process", "Send", "Generate", "Sync", "Import", "Export", "Notify", "Update",
    "Create", "Delete", "Dispatch", "Handle", "Calculate", "Publish", "Archive",
    "Cleanup", "Verify", "Validate", "Fetch", "Build", "Transform", "Parse",
    "Execute", "Run",
)  # fmt: skip

LISTENER_PREFIXES: tuple[str, ...] = (
    "Send", "Notify", "Update", "Create", "Delete", "Process", "Generate", "Sync",
    "Log", "Record", "Track", "Publish", "Archive", "Cleanup", "Verify",
    "Validate", "Calculate", "Build", "Transform", "Handle", "Dispatch", "Queue",
)  # fmt: skip

MIDDLEWARE_PREFIXES: tuple[str, ...] = (
    "Authenticate", "Authorize", "Validate", "Verify", "Check", "Ensure", "Trim",
    "Convert", "Handle", "Encrypt", "Decrypt", "Throttle", "Start", "Share", "Add",
    "Redirect", "Prevent", "Trust", "Set", "Log", "Track", "Record", "Invoke",
    "Substitute", "Transform", "Require",
)  # fmt: skip

EVENT_SUFFIXES: tuple[str, ...] = (
    "Created", "Updated", "Deleted", "Removed", "Added", "Changed", "Completed",
    "Failed", "Started", "Finished", "Processed", "Sent", "Received", "Placed",
    "Cancelled", "Approved", "Rejected", "Verified", "Registered", "Logged",
    "Published", "Archived", "Restored", "Synced", "Imported", "Exported",
    "Generated", "Submitted", "Expired", "Renewed",
)  # fmt: skip

HTTP_IMPORTS: tuple[tuple[str, str], ...] = (
    ("Illuminate\\Http\\Request", "HTTP Request"),
    ("Illuminate\\Support\\Facades\\Session", "Session facade"),
    ("Illuminate\\Support\\Facades\\Cookie", "Cookie facade"),
    ("Illuminate\\Support\\Facades\\Request", "Request facade"),
)

PROVIDER_HTTP_IMPORTS: tuple[tuple[str, str], ...] = (
    ("Illuminate\\Http\\Request", "HTTP Request"),
    ("Illuminate\\Support\\Facades\\Request", "Request facade"),
)

REQUEST_HELPER = (r"\brequest\s*\(", "request() helper")
SESSION_HELPER = (r"\bsession\s*\(", "session() helper")
APP_HELPER = (r"\bapp\s*\(", "app() helper")
RESOLVE_HELPER = (r"\bresolve\s*\(", "resolve() helper")

QUERY_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"::find\s*\(", "Model::find()"),
    (r"::findOrFail\s*\(", "Model::findOrFail()"),
    (r"::where\s*\(", "Model::where()"),
    (r"::all\s*\(", "Model::all()"),
    (r"->get\s*\(\s*\)", "->get()"),
    (r"->first\s*\(\s*\)", "->first()"),
    (r"->count\s*\(\s*\)", "->count()"),
    (r"->pluck\s*\(", "->pluck()"),
    (r"->exists\s*\(\s*\)", "->exists()"),
)

VOLT_NEEDLES: tuple[tuple[str, str], ...] = (
    ("Livewire\\Volt\\Component", "Volt Component"),
    ("Livewire\\Volt\\", "Volt namespace"),
    ("use function Livewire\\Volt\\", "Volt functions"),
)

CRUD_METHODS: tuple[str, ...] = ("index", "create", "store", "show", "edit", "update", "destroy")
CONTROLLER_SYSTEM_METHODS: tuple[str, ...] = ("__construct", "__invoke", "middleware")

OBSERVER_METHODS: tuple[str, ...] = (
    "__construct", "retrieved", "creating", "created", "updating", "updated",
    "saving", "saved", "deleting", "deleted", "trashed", "forceDeleting",
    "forceDeleted", "restoring", "restored", "replicating",
)  # fmt: skip

SERVICE_PROVIDER_METHODS: tuple[str, ...] = (
    "__construct", "register", "boot", "provides", "when", "isDeferred",
    "mergeConfigFrom", "loadRoutesFrom", "loadViewsFrom", "loadViewComponentsAs",
    "loadTranslationsFrom", "loadJsonTranslationsFrom", "loadMigrationsFrom",
    "publishes", "commands", "callAfterResolving", "booting", "booted",
    "packagePath", "defaultPolicies",
)  # fmt: skip

PRESET_NAMES: tuple[str, ...] = (
    "actions",
    "commands",
    "cruddy",
    "events",
    "formRequests",
    "jobs",
    "livewire",
    "middleware",
    "models",
    "noVolt",
    "observers",
    "policies",
    "resources",
    "serviceProviders",
)


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


def build_presets(config: LarchConfig | None = None) -> dict[str, Preset]:
    """Build the preset table for *config* (defaults when ``None``).

    Raises :class:`ConfigError` when the configuration tunes an unknown preset.
    """
    config = config or LarchConfig()
    unknown = sorted(set(config.presets) - set(PRESET_NAMES))
    if unknown:
        msg = f"Unknown preset(s) in configuration: {', '.join(unknown)}"
        raise ConfigError(msg)

    root = config.root_namespace
    mode = config.scan_mode

    def ns(suffix: str) -> str:
        return f"{root}\\{suffix}" if suffix else root

    def excluded(name: str, *defaults: str) -> tuple[str, ...]:
        return (*defaults, *config.options_for(name).exclude)

    presets = (
        Preset(
            name="actions",
            description="Single-purpose action classes with one public handle() method",
            rule_sets=(
                RuleSet(
                    namespace=ns("Actions"),
                    exclude=excluded("actions", ns("Actions\\Fortify")),
                    rules=(
                        RequiredMethodRule("action.handle", ("handle",)),
                        NoNonPublicMethodsRule("action.non_public"),
                        MethodAllowListRule("action.allow_list", ("__construct", "handle")),
                    ),
                ),
            ),
        ),
        Preset(
            name="commands",
            description="Artisan commands with a signature, a handle() entry point and verb names",
            rule_sets=(
                RuleSet(
                    namespace=ns("Console\\Commands"),
                    exclude=excluded("commands"),
                    rules=(
                        RequiredPropertyRule("command.signature", "signature"),
                        RequiredMethodRule("command.handle", ("handle", "__invoke")),
                        NamingRule("command.naming", prefixes=COMMAND_PREFIXES),
                    ),
                ),
            ),
        ),
        Preset(
            name="cruddy",
            description="Controllers limited to the seven RESTful actions, mutations through actions",
            rule_sets=(
                RuleSet(
                    namespace=ns("Http\\Controllers"),
                    exclude=excluded("cruddy"),
                    rules=(
                        NoNonPublicMethodsRule("cruddy.non_public"),
                        MethodAllowListRule(
                            "cruddy.allow_list",
                            (
                                *CRUD_METHODS,
                                *CONTROLLER_SYSTEM_METHODS,
                                *config.options_for("cruddy").besides,
                            ),
                            suggest_nested_controller=True,
                        ),
                    ),
                ),
                RuleSet(
                    namespace=ns("Http\\Controllers"),
                    exclude=excluded("cruddy"),
                    rules=(
                        ParameterContractRule(
                            "controller.store",
                            "store",
                            (
                                (PARAM_FORM_REQUEST, "First parameter must be a FormRequest"),
                                (PARAM_ACTION, "Second parameter must be an Action class"),
                            ),
                            "store() must have at least 2 parameters: FormRequest and Action",
                            actions_namespace=ns("Actions"),
                        ),
                        ParameterContractRule(
                            "controller.update",
                            "update",
                            (
                                (
                                    PARAM_MODEL,
                                    "First parameter must be an Eloquent Model (route model binding)",
                                ),
                                (PARAM_FORM_REQUEST, "Second parameter must be a FormRequest"),
                                (PARAM_ACTION, "Third parameter must be an Action class"),
                            ),
                            "update() must have at least 3 parameters: Model, FormRequest, and Action",
                            actions_namespace=ns("Actions"),
                        ),
                        ParameterContractRule(
                            "controller.destroy",
                            "destroy",
                            (
                                (
                                    PARAM_MODEL,
                                    "First parameter must be an Eloquent Model (route model binding)",
                                ),
                                (PARAM_ACTION, "Second parameter must be an Action class"),
                            ),
                            "destroy() must have at least 2 parameters: Model and Action",
                            actions_namespace=ns("Actions"),
                        ),
                    ),
                ),
            ),
        ),
        Preset(
            name="events",
            description="Past-tense event data holders and verb-named listeners",
            rule_sets=(
                RuleSet(
                    namespace=ns("Events"),
                    exclude=excluded("events"),
                    rules=(
                        NamingRule("event.naming", suffixes=EVENT_SUFFIXES),
                        MethodAllowListRule(
                            "event.allow_list",
                            (
                                "__construct",
                                "broadcastOn",
                                "broadcastAs",
                                "broadcastWith",
                                "broadcastWhen",
                            ),
                        ),
                    ),
                ),
                RuleSet(
                    namespace=ns("Listeners"),
                    exclude=excluded("events"),
                    rules=(
                        RequiredMethodRule("listener.handle", ("handle",)),
                        NamingRule("listener.naming", prefixes=LISTENER_PREFIXES),
                        ForbiddenImportRule("listener.http_import", HTTP_IMPORTS, mode),
                        ForbiddenCallRule("listener.http_helper", (REQUEST_HELPER, SESSION_HELPER), mode),
                    ),
                ),
            ),
        ),
        Preset(
            name="formRequests",
            description="Store/Update form requests that only validate",
            rule_sets=(
                RuleSet(
                    namespace=ns("Http\\Requests"),
                    exclude=excluded("formRequests"),
                    rules=(
                        NamingRule("form_request.naming", pattern=r"^(Store|Update).+Request$"),
                        RequiredMethodRule("form_request.authorize", ("authorize",)),
                        RequiredMethodRule("form_request.rules", ("rules",)),
                        MethodAllowListRule(
                            "form_request.allow_list",
                            ("__construct", "authorize", "rules", "messages", "attributes", "after"),
                        ),
                        NoNonPublicMethodsRule("form_request.non_public"),
                    ),
                ),
            ),
        ),
        Preset(
            name="jobs",
            description="Queued, verb-named jobs without HTTP access",
            rule_sets=(
                RuleSet(
                    namespace=ns("Jobs"),
                    exclude=excluded("jobs"),
                    rules=(
                        ImplementsRule("job.should_queue", SHOULD_QUEUE),
                        RequiredMethodRule("job.handle", ("handle",)),
                        NamingRule("job.naming", prefixes=JOB_PREFIXES),
                        ForbiddenImportRule("job.http_import", HTTP_IMPORTS, mode),
                        ForbiddenCallRule("job.http_helper", (REQUEST_HELPER, SESSION_HELPER), mode),
                    ),
                ),
            ),
        ),
        Preset(
            name="livewire",
            description="Livewire components use method injection instead of service location",
            rule_sets=(
                RuleSet(
                    namespace=ns("Livewire"),
                    exclude=excluded("livewire"),
                    subclass_of=LIVEWIRE_COMPONENT,
                    rules=(
                        ForbiddenCallRule(
                            "livewire.service_location",
                            (
                                APP_HELPER,
                                RESOLVE_HELPER,
                                (r"\bapp\s*\(\s*\)\s*->\s*make\s*\(", "app()->make()"),
                            ),
                            mode,
                        ),
                    ),
                ),
            ),
        ),
        Preset(
            name="middleware",
            description="Verb-named middleware with a handle() method",
            rule_sets=(
                RuleSet(
                    namespace=ns("Http\\Middleware"),
                    exclude=excluded("middleware"),
                    rules=(
                        RequiredMethodRule("middleware.handle", ("handle",)),
                        NamingRule("middleware.naming", prefixes=MIDDLEWARE_PREFIXES),
                    ),
                ),
            ),
        ),
        Preset(
            name="models",
            description="Eloquent models free of HTTP and container access, using $fillable",
            rule_sets=(
                RuleSet(
                    namespace=ns("Models"),
                    exclude=excluded("models"),
                    rules=(
                        ForbiddenImportRule("model.http_import", HTTP_IMPORTS, mode),
                        ForbiddenCallRule(
                            "model.helper",
                            (APP_HELPER, RESOLVE_HELPER, REQUEST_HELPER, SESSION_HELPER),
                            mode,
                        ),
                        RequiredPropertyRule("model.fillable", "fillable"),
                        ForbiddenPropertyRule("model.guarded", "guarded"),
                    ),
                ),
            ),
        ),
        Preset(
            name="noVolt",
            description="Class-based Livewire components only, no Volt",
            rule_sets=(
                RuleSet(
                    namespace=ns(""),
                    exclude=excluded("noVolt"),
                    rules=(ForbiddenContentRule("volt.usage", VOLT_NEEDLES),),
                ),
            ),
        ),
        Preset(
            name="observers",
            description="Observers hold only model lifecycle hooks",
            rule_sets=(
                RuleSet(
                    namespace=ns("Observers"),
                    exclude=excluded("observers"),
                    rules=(
                        NamingRule("observer.naming", suffixes=("Observer",)),
                        MethodAllowListRule("observer.allow_list", OBSERVER_METHODS),
                        ForbiddenImportRule("observer.http_import", HTTP_IMPORTS, mode),
                        ForbiddenCallRule("observer.http_helper", (REQUEST_HELPER, SESSION_HELPER), mode),
                    ),
                ),
            ),
        ),
        Preset(
            name="policies",
            description="Policies hold only authorization abilities",
            rule_sets=(
                RuleSet(
                    namespace=ns("Policies"),
                    exclude=excluded("policies"),
                    rules=(
                        NamingRule("policy.naming", suffixes=("Policy",)),
                        MethodAllowListRule(
                            "policy.allow_list",
                            (
                                "__construct",
                                "before",
                                "viewAny",
                                "view",
                                "create",
                                "update",
                                "delete",
                                "restore",
                                "forceDelete",
                            ),
                        ),
                    ),
                ),
            ),
        ),
        Preset(
            name="resources",
            description="API resources that transform without querying",
            rule_sets=(
                RuleSet(
                    namespace=ns("Http\\Resources"),
                    exclude=excluded("resources"),
                    rules=(
                        NamingRule("resource.naming", suffixes=("Resource", "Collection")),
                        RequiredMethodRule("resource.to_array", ("toArray",), declared_only=True),
                        MethodAllowListRule(
                            "resource.allow_list",
                            (
                                "__construct",
                                "toArray",
                                "with",
                                "additional",
                                "jsonOptions",
                                "withResponse",
                                "resolve",
                            ),
                        ),
                        ForbiddenCallRule("resource.query", QUERY_PATTERNS, mode, label="Pattern"),
                    ),
                ),
            ),
        ),
        Preset(
            name="serviceProviders",
            description="Providers that only register and boot services",
            rule_sets=(
                RuleSet(
                    namespace=ns("Providers"),
                    exclude=excluded("serviceProviders", ns("Providers\\FortifyServiceProvider")),
                    rules=(
                        NamingRule("provider.naming", suffixes=("ServiceProvider",)),
                        MethodAllowListRule("provider.allow_list", SERVICE_PROVIDER_METHODS),
                        ConditionalMethodRule("provider.provides", DEFERRABLE_PROVIDER, "provides"),
                        ForbiddenImportRule("provider.http_import", PROVIDER_HTTP_IMPORTS, mode),
                        ForbiddenCallRule("provider.http_helper", (REQUEST_HELPER,), mode),
                    ),
                ),
            ),
        ),
    )
    return {preset.name: preset for preset in presets}


def get_preset(presets: dict[str, Preset], name: str) -> Preset:
    """Look up *name*; raises :class:`ConfigError` listing the known presets."""
    try:
        return presets[name]
    except KeyError as exc:
        msg = f"Unknown preset '{name}', expected one of: {', '.join(sorted(presets))}"
        raise ConfigError(msg) from exc
