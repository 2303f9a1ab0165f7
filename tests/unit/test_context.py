"""Tests for scopes, value kinds and capability sets."""

from collections import OrderedDict

import pytest
from pydantic import BaseModel

from stache import CapabilitySet, MethodInvocationError, Scope, ValueKind, classify
from stache._context import MISSING, is_empty, is_truthy, stringify


class Address(BaseModel):
    city: str
    zip_code: str = ""


class Person(BaseModel):
    name: str
    address: Address


class Account:
    def __init__(self) -> None:
        self.owner = "Ada"
        self.secret = "s3cret"

    def balance(self) -> int:
        return 42

    @property
    def broken(self) -> str:
        msg = "unavailable"
        raise RuntimeError(msg)

    def template_capabilities(self) -> CapabilitySet:
        return CapabilitySet.bind(self, methods=("balance",), properties=("owner", "broken"))


class TestClassify:
    @pytest.mark.parametrize(
        ("value", "kind"),
        [
            (None, ValueKind.NONE),
            ("text", ValueKind.SCALAR),
            (b"bytes", ValueKind.SCALAR),
            (0, ValueKind.SCALAR),
            (1.5, ValueKind.SCALAR),
            (True, ValueKind.SCALAR),
            (object(), ValueKind.SCALAR),
            ([1], ValueKind.SEQUENCE),
            ((1,), ValueKind.SEQUENCE),
            ({1}, ValueKind.SEQUENCE),
            (frozenset(), ValueKind.SEQUENCE),
            ({"a": 1}, ValueKind.MAPPING),
            (OrderedDict(), ValueKind.MAPPING),
            (Address(city="Paris"), ValueKind.MAPPING),
            (Account(), ValueKind.CAPABLE),
        ],
    )
    def test_kinds(self, value: object, kind: ValueKind) -> None:
        assert classify(value) is kind


class TestTruthiness:
    @pytest.mark.parametrize("value", [None, False, "", [], (), {}, set()])
    def test_falsy_values(self, value: object) -> None:
        assert is_truthy(value) is False

    @pytest.mark.parametrize("value", [True, 0, 0.0, -1, "0", " ", [0], {"a": None}, Account()])
    def test_truthy_values(self, value: object) -> None:
        assert is_truthy(value) is True

    def test_numbers_and_booleans_are_never_empty(self) -> None:
        assert is_empty(0) is False
        assert is_empty(False) is False

    def test_stringify(self) -> None:
        assert stringify(None) == ""
        assert stringify(0) == "0"
        assert stringify(False) == "False"
        assert stringify("x") == "x"


class TestScopeResolve:
    def test_top_level_key(self) -> None:
        assert Scope.root({"a": 1}).resolve(("a",)) == 1

    def test_missing_key(self) -> None:
        assert Scope.root({"a": 1}).resolve(("b",)) is MISSING

    def test_none_value_is_found(self) -> None:
        assert Scope.root({"a": None}).resolve(("a",)) is None

    def test_nested_mapping(self) -> None:
        scope = Scope.root({"user": {"address": {"city": "Paris"}}})
        assert scope.resolve(("user", "address", "city")) == "Paris"

    def test_missing_intermediate(self) -> None:
        scope = Scope.root({"user": {"name": "Ada"}})
        assert scope.resolve(("user", "address", "city")) is MISSING

    def test_traversal_through_scalar(self) -> None:
        scope = Scope.root({"user": "Ada"})
        assert scope.resolve(("user", "name")) is MISSING

    def test_sequence_index(self) -> None:
        scope = Scope.root({"items": ["a", "b"]})
        assert scope.resolve(("items", "1")) == "b"
        assert scope.resolve(("items", "2")) is MISSING

    def test_pydantic_model_fields(self) -> None:
        person = Person(name="Ada", address=Address(city="London"))
        scope = Scope.root({"person": person})
        assert scope.resolve(("person", "address", "city")) == "London"
        assert scope.resolve(("person", "model_dump")) is MISSING

    def test_pydantic_root_context(self) -> None:
        scope = Scope.root(Person(name="Ada", address=Address(city="London")))
        assert scope.resolve(("name",)) == "Ada"

    def test_current_item(self) -> None:
        scope = Scope.root({"a": 1}).push("item")
        assert scope.resolve((".",)) == "item"

    def test_inner_frame_shadows_outer(self) -> None:
        scope = Scope.root({"name": "outer"}).push({"name": "inner"})
        assert scope.resolve(("name",)) == "inner"

    def test_lookup_falls_back_to_every_parent(self) -> None:
        scope = Scope.root({"title": "root"}).push({"a": 1}).push({"b": 2}).push("leaf")
        assert scope.resolve(("title",)) == "root"
        assert scope.resolve(("a",)) == 1
        assert scope.depth == 4

    def test_non_mapping_item_contributes_no_names(self) -> None:
        scope = Scope.root({"x": "root"}).push(5)
        assert scope.resolve(("x",)) == "root"

    def test_push_leaves_parent_unchanged(self) -> None:
        root = Scope.root({"name": "outer"})
        _ = root.push({"name": "inner"})
        assert root.resolve(("name",)) == "outer"


class TestCapabilitySet:
    def test_bind_exposes_declared_members_only(self) -> None:
        account = Account()
        capabilities = account.template_capabilities()
        method = capabilities.method("balance")
        assert method is not None
        assert method() == 42
        assert capabilities.method("secret") is None
        assert capabilities.method("__init__") is None

    def test_properties_are_read_live(self) -> None:
        account = Account()
        capabilities = account.template_capabilities()
        account.owner = "Grace"
        assert capabilities.read("owner") == "Grace"

    def test_undeclared_property_is_missing(self) -> None:
        assert Account().template_capabilities().read("secret") is MISSING

    def test_failing_property_raises_method_invocation_error(self) -> None:
        with pytest.raises(MethodInvocationError, match="broken") as exc_info:
            _ = Account().template_capabilities().read("broken")
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_bind_rejects_missing_method(self) -> None:
        with pytest.raises(ValueError, match="no callable member 'nope'"):
            _ = CapabilitySet.bind(Account(), methods=("nope",))

    def test_bind_rejects_non_callable_method(self) -> None:
        with pytest.raises(ValueError, match="no callable member 'owner'"):
            _ = CapabilitySet.bind(Account(), methods=("owner",))

    def test_bind_rejects_missing_property(self) -> None:
        with pytest.raises(ValueError, match="no attribute 'nope'"):
            _ = CapabilitySet.bind(Account(), properties=("nope",))

    def test_scope_reads_capability_properties(self) -> None:
        scope = Scope.root({"account": Account()})
        assert scope.resolve(("account", "owner")) == "Ada"
        assert scope.resolve(("account", "secret")) is MISSING

    def test_empty_set(self) -> None:
        capabilities = CapabilitySet()
        assert capabilities.method("anything") is None
        assert capabilities.read("anything") is MISSING
