import math

import pytest

from lox.lox_datatypes import LoxList, LoxMap, LoxClass, LoxInstance, NativeFunction
from lox.lox_printer import Printer, number_to_text


@pytest.mark.parametrize("value, text", [
    (3.0, "3"),
    (-0.5, "-0.5"),
    (2.5, "2.5"),
    (1e21, "1e+21"),
    (math.inf, "Infinity"),
    (-math.inf, "-Infinity"),
    (math.nan, "NaN"),
])
def test_number_to_text(value, text):
    assert number_to_text(value) == text


def test_scalars():
    p = Printer()
    assert p.pformat(None) == "nil"
    assert p.pformat(True) == "true"
    assert p.pformat(False) == "false"
    assert p.pformat("plain") == "plain"
    assert p.pformat(7.0) == "7"


def test_containers_quote_nested_strings():
    p = Printer()
    d = LoxMap()
    d["x"] = LoxList([1.0, "a", None])
    d[2.0] = True
    assert p.pformat(LoxList([1.0, "a", None])) == '[1, "a", nil]'
    assert p.pformat(d) == '{"x": [1, "a", nil], 2: true}'
    assert p.pformat(LoxList()) == "[]"
    assert p.pformat(LoxMap()) == "{}"


def test_callables_and_objects():
    p = Printer()
    klass = LoxClass("Point", None, {})
    assert p.pformat(klass) == "Point"
    assert p.pformat(LoxInstance(klass)) == "Point instance"
    assert p.pformat(NativeFunction("clock", lambda: 0.0)) == "<native fn>"
