import collections.abc

import pytest

from lox.lox_datatypes import (
    Environment, LoxList, LoxMap, LoxClass, LoxInstance, NativeFunction,
    is_truthy, is_equal,
)
from lox.lox_errors import LoxRuntimeError
from lox.lox_scanner import Token, TokenType


def ident(name: str, line: int = 1) -> Token:
    return Token(TokenType.IDENTIFIER, name, None, line)


# --- Environment ---

def test_environment_define_get_assign_through_chain():
    outer = Environment()
    outer.define("a", 1.0)
    inner = Environment(outer)
    assert inner.get(ident("a")) == 1.0
    inner.assign(ident("a"), 2.0)
    assert outer.values["a"] == 2.0
    assert "a" not in inner


def test_environment_undefined_variable():
    env = Environment()
    with pytest.raises(LoxRuntimeError) as exc:
        env.get(ident("nope", line=3))
    assert exc.value.message == "Undefined variable 'nope'."
    assert exc.value.format() == "Undefined variable 'nope'.\n[line 3]"
    with pytest.raises(LoxRuntimeError):
        env.assign(ident("nope"), 1.0)


def test_environment_distance_access():
    root = Environment()
    middle = Environment(root)
    leaf = Environment(middle)
    middle.define("x", "m")
    assert leaf.ancestor(1) is middle
    assert leaf.get_at(1, "x") == "m"
    leaf.assign_at(1, ident("x"), "changed")
    assert middle.values["x"] == "changed"


# --- Truthiness and equality ---

@pytest.mark.parametrize("value, expected", [
    (None, False), (False, False), (True, True),
    (0.0, True), ("", True), (LoxList(), True), (LoxMap(), True),
])
def test_truthiness(value, expected):
    assert is_truthy(value) is expected


def test_equality_is_type_strict():
    assert is_equal(None, None)
    assert not is_equal(None, False)
    assert not is_equal(True, 1.0)
    assert not is_equal("1", 1.0)
    assert is_equal(1.0, 1.0)
    assert is_equal("a", "a")


def test_containers_compare_structurally():
    assert is_equal(LoxList([1.0, "a"]), LoxList([1.0, "a"]))
    assert not is_equal(LoxList([1.0]), LoxList([True]))
    a = LoxMap()
    a["k"] = LoxList([1.0])
    b = LoxMap()
    b["k"] = LoxList([1.0])
    assert is_equal(a, b)
    b["j"] = None
    assert not is_equal(a, b)


def test_instances_compare_by_identity():
    klass = LoxClass("A", None, {})
    one, two = LoxInstance(klass), LoxInstance(klass)
    assert is_equal(one, one)
    assert not is_equal(one, two)


# --- Lists and maps ---

def test_list_is_a_mutable_sequence_shared_by_reference():
    items = LoxList([1.0, 2.0])
    alias = items
    alias.append(3.0)
    assert isinstance(items, collections.abc.MutableSequence)
    assert list(items) == [1.0, 2.0, 3.0]
    assert items.pop() == 3.0


def test_map_keys_compare_by_value_and_kind():
    d = LoxMap()
    d[1.0] = "number"
    d[True] = "bool"
    d["1"] = "string"
    d[None] = "nil"
    assert len(d) == 4
    assert d[1.0] == "number"
    assert d[True] == "bool"
    assert d[None] == "nil"
    d[1.0] = "overwritten"
    assert d[1.0] == "overwritten"
    assert len(d) == 4


def test_map_object_keys_use_identity():
    klass = LoxClass("K", None, {})
    one, two = LoxInstance(klass), LoxInstance(klass)
    d = LoxMap()
    d[one] = 1.0
    assert one in d
    assert two not in d


def test_map_rejects_container_keys():
    d = LoxMap()
    assert not LoxMap.is_valid_key(LoxList())
    assert LoxList() not in d
    with pytest.raises(TypeError):
        d[LoxMap()] = 1.0


def test_map_preserves_original_keys():
    d = LoxMap()
    d["b"] = 2.0
    d["a"] = 1.0
    assert list(d) == ["b", "a"]
    assert d.items() == [("b", 2.0), ("a", 1.0)]
    assert d.pop("b", None) == 2.0
    assert d.pop("missing", None) is None


# --- Classes and natives ---

def test_find_method_walks_superclass_chain():
    base = LoxClass("Base", None, {"m": "base-m"})
    derived = LoxClass("Derived", base, {})
    assert derived.find_method("m") == "base-m"
    assert derived.find_method("nope") is None
    assert derived.arity() == 0


def test_instance_fields_and_undefined_property():
    instance = LoxInstance(LoxClass("A", None, {}))
    instance.set(ident("x"), 1.0)
    assert instance.get(ident("x")) == 1.0
    with pytest.raises(LoxRuntimeError, match="Undefined property 'y'."):
        instance.get(ident("y"))
    assert repr(instance) == "A instance"


def test_native_function_arity_from_signature():
    native = NativeFunction("add", lambda a, b: a + b)
    assert native.arity() == 2
    assert native.call(None, [1.0, 2.0]) == 3.0
    assert repr(native) == "<native fn>"
