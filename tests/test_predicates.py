"""Tests for larch.rules.predicates: individual rule checks."""

from __future__ import annotations

import dataclasses

import pytest

from larch.discovery.framework import DEFERRABLE_PROVIDER, SHOULD_QUEUE
from larch.discovery.index import ProjectIndex
from larch.discovery.models import ClassDescriptor, ParameterDescriptor
from larch.rules.predicates import (
    PARAM_ACTION,
    PARAM_FORM_REQUEST,
    PARAM_MODEL,
    PASS,
    SCAN_SYNTAX,
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
    RulePredicate,
    Violation,
    is_action_class,
    line_of_offset,
    nested_controller_context,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _describe(name: str, source: str, *extra: tuple[str, str]) -> ClassDescriptor:
    """Index *source* (plus extra ``(path, source)`` files) and return class *name*."""
    short_name = name.rsplit("\\", 1)[-1]
    sources = {f"app/{short_name}.php": source, **dict(extra)}
    cls = ProjectIndex.from_sources(sources).get(name)
    assert cls is not None
    return cls


def _violation(outcome: object) -> Violation:
    assert isinstance(outcome, Violation), outcome
    return outcome


# --- outcomes ---


class TestLineOfOffset:
    def test_first_line(self) -> None:
        assert line_of_offset("abc\ndef", 0) == 1

    def test_counts_newlines_before(self) -> None:
        assert line_of_offset("abc\ndef\nghi", 8) == 3


# --- naming ---


class TestNamingRule:
    def test_prefix_match(self) -> None:
        cls = _describe("App\\Jobs\\SendInvoice", "<?php\nnamespace App\\Jobs;\nclass SendInvoice {}\n")
        assert NamingRule("job.naming", prefixes=("Send", "Process")).check(cls) is PASS

    def test_prefix_violation_carries_options(self) -> None:
        cls = _describe("App\\Jobs\\InvoiceSender", "<?php\nnamespace App\\Jobs;\nclass InvoiceSender {}\n")
        v = _violation(NamingRule("job.naming", prefixes=("Send", "Process")).check(cls))
        assert v.message_key == "job.naming"
        assert v.subjects == (("Class", "InvoiceSender"),)
        assert v.options == ("Send", "Process")
        assert v.location_line is None
        assert v.start_line == 3

    def test_matching_is_case_sensitive(self) -> None:
        cls = _describe("App\\Jobs\\sendInvoice", "<?php\nnamespace App\\Jobs;\nclass sendInvoice {}\n")
        assert isinstance(NamingRule("job.naming", prefixes=("Send",)).check(cls), Violation)

    def test_suffix_violation_suggests_name(self) -> None:
        cls = _describe("App\\Policies\\PostAccess", "<?php\nnamespace App\\Policies;\nclass PostAccess {}\n")
        v = _violation(NamingRule("policy.naming", suffixes=("Policy",)).check(cls))
        assert v.context["suggested_name"] == "PostAccessPolicy"

    def test_pattern(self) -> None:
        rule = NamingRule("form_request.naming", pattern=r"^(Store|Update).+Request$")
        ok = _describe("App\\StorePostRequest", "<?php\nnamespace App;\nclass StorePostRequest {}\n")
        bad = _describe("App\\PostRequest", "<?php\nnamespace App;\nclass PostRequest {}\n")
        assert rule.check(ok) is PASS
        assert isinstance(rule.check(bad), Violation)


# --- structure ---


class TestImplementsRule:
    def test_direct(self) -> None:
        cls = _describe(
            "App\\Jobs\\SyncStock",
            "<?php\nnamespace App\\Jobs;\nuse Illuminate\\Contracts\\Queue\\ShouldQueue;\n"
            "class SyncStock implements ShouldQueue {}\n",
        )
        assert ImplementsRule("job.should_queue", SHOULD_QUEUE).check(cls) is PASS

    def test_missing(self) -> None:
        cls = _describe("App\\Jobs\\SyncStock", "<?php\nnamespace App\\Jobs;\nclass SyncStock {}\n")
        v = _violation(ImplementsRule("job.should_queue", SHOULD_QUEUE).check(cls))
        assert v.class_name == "App\\Jobs\\SyncStock"
        assert v.file_path == "app/SyncStock.php"


class TestRequiredMethodRule:
    def test_any_of(self) -> None:
        cls = _describe(
            "App\\Console\\Commands\\SendReport",
            "<?php\nnamespace App\\Console\\Commands;\n"
            "class SendReport { public function __invoke() {} }\n",
        )
        assert RequiredMethodRule("command.handle", ("handle", "__invoke")).check(cls) is PASS

    def test_inherited_counts(self) -> None:
        cls = _describe(
            "App\\Child",
            "<?php\nnamespace App;\nclass Child extends Base {}\n",
            ("app/Base.php", "<?php\nnamespace App;\nclass Base { public function handle() {} }\n"),
        )
        assert RequiredMethodRule("job.handle", ("handle",)).check(cls) is PASS

    def test_declared_only_ignores_framework_methods(self) -> None:
        cls = _describe(
            "App\\Http\\Resources\\PostResource",
            "<?php\nnamespace App\\Http\\Resources;\n"
            "use Illuminate\\Http\\Resources\\Json\\JsonResource;\n"
            "class PostResource extends JsonResource {}\n",
        )
        rule = RequiredMethodRule("resource.to_array", ("toArray",), declared_only=True)
        assert isinstance(rule.check(cls), Violation)
        assert RequiredMethodRule("resource.to_array", ("toArray",)).check(cls) is PASS

    def test_declared_only_accepts_trait_method(self) -> None:
        cls = _describe(
            "App\\Res",
            "<?php\nnamespace App;\nclass Res { use Shaped; }\n",
            ("app/Shaped.php", "<?php\nnamespace App;\ntrait Shaped { public function toArray() {} }\n"),
        )
        rule = RequiredMethodRule("resource.to_array", ("toArray",), declared_only=True)
        assert rule.check(cls) is PASS


class TestConditionalMethodRule:
    _rule = ConditionalMethodRule("provider.provides", DEFERRABLE_PROVIDER, "provides")

    def test_not_deferred_passes(self) -> None:
        cls = _describe(
            "App\\Providers\\AppServiceProvider",
            "<?php\nnamespace App\\Providers;\n"
            "use Illuminate\\Support\\ServiceProvider;\n"
            "class AppServiceProvider extends ServiceProvider {}\n",
        )
        assert self._rule.check(cls) is PASS

    def test_deferred_without_provides(self) -> None:
        cls = _describe(
            "App\\Providers\\CacheServiceProvider",
            "<?php\nnamespace App\\Providers;\n"
            "use Illuminate\\Contracts\\Support\\DeferrableProvider;\n"
            "use Illuminate\\Support\\ServiceProvider;\n"
            "class CacheServiceProvider extends ServiceProvider implements DeferrableProvider {}\n",
        )
        v = _violation(self._rule.check(cls))
        assert v.subjects == (
            ("Class", "CacheServiceProvider implements DeferrableProvider"),
            ("Missing", "provides() method"),
        )

    def test_deferred_with_provides(self) -> None:
        cls = _describe(
            "App\\Providers\\CacheServiceProvider",
            "<?php\nnamespace App\\Providers;\n"
            "use Illuminate\\Contracts\\Support\\DeferrableProvider;\n"
            "class CacheServiceProvider implements DeferrableProvider\n"
            "{\n    public function provides(): array { return []; }\n}\n",
        )
        assert self._rule.check(cls) is PASS


class TestPropertyRules:
    def test_required_property_declared(self) -> None:
        cls = _describe(
            "App\\Models\\Post",
            "<?php\nnamespace App\\Models;\nclass Post { protected $fillable = ['title']; }\n",
        )
        assert RequiredPropertyRule("model.fillable", "fillable").check(cls) is PASS

    def test_required_property_inherited_from_project_parent(self) -> None:
        cls = _describe(
            "App\\Models\\Post",
            "<?php\nnamespace App\\Models;\nclass Post extends BaseModel {}\n",
            (
                "app/Models/BaseModel.php",
                "<?php\nnamespace App\\Models;\nabstract class BaseModel { protected $fillable = []; }\n",
            ),
        )
        assert RequiredPropertyRule("model.fillable", "fillable").check(cls) is PASS

    def test_required_property_missing(self) -> None:
        cls = _describe("App\\Models\\Post", "<?php\nnamespace App\\Models;\nclass Post {}\n")
        assert isinstance(RequiredPropertyRule("model.fillable", "fillable").check(cls), Violation)

    def test_forbidden_property_declared(self) -> None:
        cls = _describe(
            "App\\Models\\Post",
            "<?php\nnamespace App\\Models;\nclass Post { protected $guarded = []; }\n",
        )
        v = _violation(ForbiddenPropertyRule("model.guarded", "guarded").check(cls))
        assert v.subjects == (("Class", "Post"), ("Property", "$guarded"))

    def test_forbidden_property_inherited_is_fine(self) -> None:
        cls = _describe(
            "App\\Models\\Post",
            "<?php\nnamespace App\\Models;\nclass Post extends BaseModel {}\n",
            (
                "app/Models/BaseModel.php",
                "<?php\nnamespace App\\Models;\nabstract class BaseModel { protected $guarded = []; }\n",
            ),
        )
        assert ForbiddenPropertyRule("model.guarded", "guarded").check(cls) is PASS


class TestMethodAllowListRule:
    def test_allowed_only(self) -> None:
        cls = _describe(
            "App\\Actions\\CreatePost",
            "<?php\nnamespace App\\Actions;\nclass CreatePost\n{\n"
            "    public function __construct() {}\n"
            "    public function handle() {}\n"
            "}\n",
        )
        assert MethodAllowListRule("action.allow_list", ("__construct", "handle")).check(cls) is PASS

    def test_extra_public_method(self) -> None:
        cls = _describe(
            "App\\Actions\\CreatePost",
            "<?php\nnamespace App\\Actions;\nclass CreatePost\n{\n"
            "    public function handle() {}\n"
            "    public function notify() {}\n"
            "}\n",
        )
        v = _violation(MethodAllowListRule("action.allow_list", ("__construct", "handle")).check(cls))
        assert v.subjects == (("Method", "CreatePost::notify()"),)
        assert v.location_line == 6
        assert v.context["method"] == "notify"

    def test_inherited_and_trait_methods_ignored(self) -> None:
        cls = _describe(
            "App\\Actions\\CreatePost",
            "<?php\nnamespace App\\Actions;\nclass CreatePost extends Base\n{\n"
            "    use Helpers;\n"
            "    public function handle() {}\n"
            "}\n",
            ("app/Base.php", "<?php\nnamespace App\\Actions;\nclass Base { public function extra() {} }\n"),
            ("app/Helpers.php", "<?php\nnamespace App\\Actions;\ntrait Helpers { public function help() {} }\n"),
        )
        assert MethodAllowListRule("action.allow_list", ("handle",)).check(cls) is PASS

    def test_exact_case(self) -> None:
        cls = _describe(
            "App\\Policies\\PostPolicy",
            "<?php\nnamespace App\\Policies;\nclass PostPolicy { public function ViewAny() {} }\n",
        )
        assert isinstance(MethodAllowListRule("policy.allow_list", ("viewAny",)).check(cls), Violation)

    def test_nested_controller_suggestion(self) -> None:
        cls = _describe(
            "App\\Http\\Controllers\\PostController",
            "<?php\nnamespace App\\Http\\Controllers;\n"
            "class PostController { public function uploadImage() {} }\n",
        )
        rule = MethodAllowListRule("cruddy.allow_list", ("index",), suggest_nested_controller=True)
        v = _violation(rule.check(cls))
        assert v.context["nested_controller"] == "PostImageController"


class TestNestedControllerContext:
    def test_verb_prefix_removed(self) -> None:
        assert nested_controller_context("PostController", "uploadImage") == {
            "potential_resource": "Image",
            "parent_resource": "Post",
            "nested_controller": "PostImageController",
        }

    def test_no_verb_prefix(self) -> None:
        ctx = nested_controller_context("PostController", "archive")
        assert ctx["nested_controller"] == "PostArchiveController"

    def test_method_that_is_only_a_verb(self) -> None:
        ctx = nested_controller_context("OrderController", "download")
        assert ctx["potential_resource"] == "Download"


class TestNoNonPublicMethodsRule:
    def test_all_public(self) -> None:
        cls = _describe("App\\A", "<?php\nnamespace App;\nclass A { public function handle() {} }\n")
        assert NoNonPublicMethodsRule("action.non_public").check(cls) is PASS

    def test_protected_reported_before_private(self) -> None:
        cls = _describe(
            "App\\A",
            "<?php\nnamespace App;\nclass A\n{\n"
            "    private function first() {}\n"
            "    protected function second() {}\n"
            "}\n",
        )
        v = _violation(NoNonPublicMethodsRule("action.non_public").check(cls))
        assert v.context["method"] == "second"
        assert v.context["visibility"] == "protected"
        assert v.subjects[-1] == ("Visibility", "protected")

    def test_inherited_protected_ignored(self) -> None:
        cls = _describe(
            "App\\A",
            "<?php\nnamespace App;\nclass A extends B {}\n",
            ("app/B.php", "<?php\nnamespace App;\nclass B { protected function helper() {} }\n"),
        )
        assert NoNonPublicMethodsRule("action.non_public").check(cls) is PASS


# --- content ---

_HTTP = (("Illuminate\\Http\\Request", "HTTP Request"),)

_LISTENER = """<?php
namespace App\\Listeners;

use Illuminate\\Http\\Request;

class SendWelcome
{
    // request() is not allowed here
    public function handle(): void
    {
        $name = 'session()';
        $id = request()->user()->id;
    }
}
"""


class TestForbiddenImportRule:
    def test_text_mode(self) -> None:
        cls = _describe("App\\Listeners\\SendWelcome", _LISTENER)
        v = _violation(ForbiddenImportRule("listener.http_import", _HTTP).check(cls))
        assert v.subjects == (("Class", "SendWelcome"), ("Forbidden", "HTTP Request"))
        assert v.location_line is None
        assert v.context["description"] == "HTTP Request"

    def test_syntax_mode_reports_line(self) -> None:
        cls = _describe("App\\Listeners\\SendWelcome", _LISTENER)
        v = _violation(ForbiddenImportRule("listener.http_import", _HTTP, SCAN_SYNTAX).check(cls))
        assert v.location_line == 4

    def test_text_mode_sees_commented_import(self) -> None:
        source = "<?php\nnamespace App;\n// use Illuminate\\Http\\Request;\nclass A {}\n"
        cls = _describe("App\\A", source)
        assert isinstance(ForbiddenImportRule("x", _HTTP).check(cls), Violation)
        assert ForbiddenImportRule("x", _HTTP, SCAN_SYNTAX).check(cls) is PASS

    def test_clean(self) -> None:
        cls = _describe("App\\A", "<?php\nnamespace App;\nclass A {}\n")
        assert ForbiddenImportRule("x", _HTTP).check(cls) is PASS


class TestForbiddenCallRule:
    _patterns = ((r"\brequest\s*\(", "request() helper"), (r"\bsession\s*\(", "session() helper"))

    def test_text_mode_first_match_in_comment(self) -> None:
        cls = _describe("App\\Listeners\\SendWelcome", _LISTENER)
        v = _violation(ForbiddenCallRule("listener.http_helper", self._patterns).check(cls))
        assert v.context["description"] == "request() helper"
        assert v.location_line == 8
        assert v.context["line"] == "8"

    def test_syntax_mode_skips_comments_and_strings(self) -> None:
        cls = _describe("App\\Listeners\\SendWelcome", _LISTENER)
        v = _violation(
            ForbiddenCallRule("listener.http_helper", self._patterns, SCAN_SYNTAX).check(cls)
        )
        assert v.location_line == 12
        assert v.start_line == v.end_line == 12

    def test_pattern_order_wins_over_position(self) -> None:
        source = "<?php\nnamespace App;\nclass A { function f() { session(); request(); } }\n"
        cls = _describe("App\\A", source)
        v = _violation(ForbiddenCallRule("x", self._patterns).check(cls))
        assert v.context["description"] == "request() helper"

    def test_word_boundary(self) -> None:
        source = "<?php\nnamespace App;\nclass A { function f() { $this->myrequest(); } }\n"
        cls = _describe("App\\A", source)
        assert ForbiddenCallRule("x", self._patterns).check(cls) is PASS

    def test_label(self) -> None:
        source = "<?php\nnamespace App;\nclass A { function f() { return Post::where('a', 1); } }\n"
        cls = _describe("App\\A", source)
        rule = ForbiddenCallRule("x", ((r"::where\s*\(", "Model::where()"),), label="Pattern")
        v = _violation(rule.check(cls))
        assert v.subjects[1] == ("Pattern", "Model::where()")


class TestForbiddenContentRule:
    def test_needle_found(self) -> None:
        cls = _describe("App\\Page", "<?php\nnamespace App;\nuse Livewire\\Volt\\Component;\nclass Page {}\n")
        rule = ForbiddenContentRule(
            "volt.usage",
            (("Livewire\\Volt\\Component", "Volt Component"), ("Livewire\\Volt\\", "Volt namespace")),
        )
        v = _violation(rule.check(cls))
        assert v.context["description"] == "Volt Component"

    def test_clean(self) -> None:
        cls = _describe("App\\Page", "<?php\nnamespace App;\nclass Page {}\n")
        assert ForbiddenContentRule("volt.usage", (("Livewire\\Volt\\", "Volt"),)).check(cls) is PASS


# --- parameter contracts ---

_SUPPORT = (
    (
        "app/Http/Requests/StorePostRequest.php",
        "<?php\nnamespace App\\Http\\Requests;\n"
        "use Illuminate\\Foundation\\Http\\FormRequest;\n"
        "class StorePostRequest extends FormRequest {}\n",
    ),
    (
        "app/Models/Post.php",
        "<?php\nnamespace App\\Models;\nuse Illuminate\\Database\\Eloquent\\Model;\n"
        "class Post extends Model {}\n",
    ),
)

_STORE_RULE = ParameterContractRule(
    "controller.store",
    "store",
    (
        (PARAM_FORM_REQUEST, "First parameter must be a FormRequest"),
        (PARAM_ACTION, "Second parameter must be an Action class"),
    ),
    "store() must have at least 2 parameters: FormRequest and Action",
)


def _controller(signature: str) -> ClassDescriptor:
    source = (
        "<?php\nnamespace App\\Http\\Controllers;\n"
        "use App\\Actions\\CreatePostAction;\n"
        "use App\\Http\\Requests\\StorePostRequest;\n"
        "use App\\Models\\Post;\n"
        "use Illuminate\\Http\\Request;\n"
        "class PostController\n{\n"
        f"    public function {signature} {{}}\n"
        "}\n"
    )
    return _describe("App\\Http\\Controllers\\PostController", source, *_SUPPORT)


class TestParameterContractRule:
    def test_valid_store(self) -> None:
        cls = _controller("store(StorePostRequest $request, CreatePostAction $action)")
        assert _STORE_RULE.check(cls) is PASS

    def test_too_few_parameters(self) -> None:
        cls = _controller("store(StorePostRequest $request)")
        v = _violation(_STORE_RULE.check(cls))
        assert v.context["rule"] == "store() must have at least 2 parameters: FormRequest and Action"
        assert v.context["resource_name"] == "Post"
        assert v.location_line == 9

    def test_plain_request_is_not_form_request(self) -> None:
        cls = _controller("store(Request $request, CreatePostAction $action)")
        v = _violation(_STORE_RULE.check(cls))
        assert v.context["rule"] == "First parameter must be a FormRequest"

    def test_second_parameter_not_action(self) -> None:
        cls = _controller("store(StorePostRequest $request, Post $post)")
        v = _violation(_STORE_RULE.check(cls))
        assert v.context["rule"] == "Second parameter must be an Action class"

    def test_model_kind(self) -> None:
        rule = ParameterContractRule(
            "controller.destroy",
            "destroy",
            ((PARAM_MODEL, "First parameter must be an Eloquent Model (route model binding)"),),
            "too few",
        )
        assert rule.check(_controller("destroy(Post $post)")) is PASS
        assert isinstance(rule.check(_controller("destroy(int $id)")), Violation)

    def test_method_not_declared_passes(self) -> None:
        cls = _controller("index()")
        assert _STORE_RULE.check(cls) is PASS

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown parameter kind"):
            ParameterContractRule("x", "store", (("service", "..."),), "...")


class TestIsActionClass:
    def test_actions_namespace(self) -> None:
        assert is_action_class(ParameterDescriptor("a", type_name="App\\Actions\\Posts\\Publish"))

    def test_action_suffix(self) -> None:
        assert is_action_class(ParameterDescriptor("a", type_name="Domain\\PublishPostAction"))

    def test_untyped_and_builtin(self) -> None:
        assert not is_action_class(ParameterDescriptor("a"))
        assert not is_action_class(ParameterDescriptor("a", type_name="string"))

    def test_configured_actions_namespace(self) -> None:
        param = ParameterDescriptor("a", type_name="Domain\\Actions\\Posts\\Publish")
        assert is_action_class(param, "Domain\\Actions")
        assert not is_action_class(param)


class TestParameterContractActionsNamespace:
    _signature = "store(StorePostRequest $request, \\Domain\\Actions\\Posts\\Publish $publish)"

    def test_default_namespace_rejects(self) -> None:
        assert isinstance(_STORE_RULE.check(_controller(self._signature)), Violation)

    def test_configured_namespace_accepts(self) -> None:
        rule = dataclasses.replace(_STORE_RULE, actions_namespace="Domain\\Actions")
        assert rule.check(_controller(self._signature)) is PASS


# --- exempt class kinds ---

_EXEMPT_USES = (
    "<?php\nnamespace App\\Things;\n"
    "use Illuminate\\Http\\Request;\n"
    "use Illuminate\\Contracts\\Support\\DeferrableProvider;\n"
    "use Livewire\\Volt\\Component;\n"
)

_EXEMPT_CLASSES = [
    (
        "App\\Things\\BaseThing",
        _EXEMPT_USES + "abstract class BaseThing implements DeferrableProvider\n{\n"
        "    protected $guarded = [];\n"
        "    public function store($a) { return request(); }\n"
        "    protected function helper() {}\n"
        "}\n",
    ),
    (
        "App\\Things\\Thing",
        _EXEMPT_USES + "interface Thing\n{\n    public function store($a);\n}\n",
    ),
    (
        "App\\Things\\Thingy",
        _EXEMPT_USES + "trait Thingy\n{\n"
        "    protected $guarded = [];\n"
        "    public function store($a) { return request(); }\n"
        "    protected function helper() {}\n"
        "}\n",
    ),
]

_EVERY_PREDICATE = [
    NamingRule("job.naming", prefixes=("Send",)),
    ImplementsRule("job.should_queue", SHOULD_QUEUE),
    RequiredMethodRule("job.handle", ("handle",)),
    ConditionalMethodRule("provider.provides", DEFERRABLE_PROVIDER, "provides"),
    RequiredPropertyRule("model.fillable", "fillable"),
    ForbiddenPropertyRule("model.guarded", "guarded"),
    MethodAllowListRule("action.allow_list", ("view",)),
    NoNonPublicMethodsRule("action.non_public"),
    ForbiddenImportRule("listener.http_import", (("Illuminate\\Http\\Request", "Request"),)),
    ForbiddenCallRule("listener.http_helper", ((r"\brequest\s*\(", "request() helper"),)),
    ForbiddenContentRule("volt.forbidden", (("Livewire\\Volt", "Volt"),)),
    _STORE_RULE,
]


class TestExemptClasses:
    @pytest.mark.parametrize(
        "rule", _EVERY_PREDICATE, ids=[type(r).__name__ for r in _EVERY_PREDICATE]
    )
    @pytest.mark.parametrize(
        ("name", "source"), _EXEMPT_CLASSES, ids=["abstract", "interface", "trait"]
    )
    def test_every_predicate_passes(self, name: str, source: str, rule: RulePredicate) -> None:
        cls = _describe(name, source)
        assert cls.is_exempt
        assert rule.check(cls) is PASS
