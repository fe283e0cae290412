import io
import time

import pytest

from lox.lox_datatypes import NativeFunction
from lox.lox_runtime import ScriptRunner


def run_lox(src: str, stdin_text: str = ""):
    runner = ScriptRunner(stdin=io.StringIO(stdin_text))
    return runner.handle_script(src)


def assert_ok(res, expected=None):
    assert res.status == 'success', res.format_error()
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains: str | None = None):
    assert res.status == 'error', f"expected error, got success: {res.value!r}"
    if contains is not None:
        assert contains in (res.error_message or ""), f"error did not contain {contains!r}: {res.error_message!r}"


def test_natives_are_bound_with_arity():
    runner = ScriptRunner()
    natives = {
        name: value for name, value in runner.interpreter.globals.values.items()
        if isinstance(value, NativeFunction)
    }
    assert {name: fn.arity() for name, fn in natives.items()} == {
        "clock": 0, "input": 1, "remove": 2, "contains": 2, "len": 1, "push": 2, "pop": 1,
    }


def test_natives_can_be_left_out():
    runner = ScriptRunner(load_natives=False)
    assert runner.interpreter.globals.values == {}
    assert_error(runner.handle_script("clock();"), "Undefined variable 'clock'.")


def test_clock_returns_seconds():
    before = time.time()
    res = run_lox("clock();")
    assert_ok(res)
    assert before <= res.value <= time.time()


def test_input_reads_lines_and_returns_nil_at_end():
    res = run_lox('var a = input("name? "); var b = input("again? "); print a; b;', "ada\n")
    assert_ok(res, None)
    assert res.output == ["name? ", "again? ", "ada"]


def test_input_prompt_is_written_to_attached_stream():
    out = io.StringIO()
    runner = ScriptRunner(stdout=out, stdin=io.StringIO("42\r\n"))
    res = runner.handle_script('print input("> ");')
    assert_ok(res)
    assert out.getvalue() == "> 42\n"


def test_map_helpers():
    src = """
    var d = {"a": 1, "b": 2};
    print contains(d, "a");
    print remove(d, "a");
    print contains(d, "a");
    print remove(d, "zzz");
    print d;
    """
    assert run_lox(src).output == ["true", "1", "false", "nil", '{"b": 2}']


def test_len_push_pop():
    src = """
    var l = [];
    print push(l, 1);
    push(l, "two");
    print len(l);
    print pop(l);
    print l;
    print len("four");
    print len({"k": 1});
    """
    assert run_lox(src).output == ["nil", "2", "two", "[1]", "4", "1"]


@pytest.mark.parametrize("src, message", [
    ("pop([]);", "Can't pop from an empty list."),
    ("push({}, 1);", "push() expects a list as its first argument."),
    ("contains([], 1);", "contains() expects a map as its first argument."),
    ("remove(1, 1);", "remove() expects a map as its first argument."),
    ("remove({}, [1]);", "Map keys must be nil, booleans, numbers, strings, or objects."),
    ("len(3);", "len() expects a list, map or string."),
])
def test_native_errors(src, message):
    assert_error(run_lox(src), message)


def test_native_error_is_located_at_call():
    res = run_lox("var l = [];\n\npop(l);")
    assert_error(res, "Can't pop from an empty list.")
    assert res.format_error() == "Can't pop from an empty list.\n[line 3]"


def test_native_arity_is_checked():
    assert_error(run_lox('len("a", "b");'), "Expected 1 arguments but got 2.")


def test_globals_persist_across_runs():
    runner = ScriptRunner()
    assert_ok(runner.handle_script("var total = 1; fun add(n) { total = total + n; }"))
    assert_ok(runner.handle_script("add(2);"))
    assert_ok(runner.handle_script("total;"), 3)


def test_each_run_has_its_own_side_effects():
    runner = ScriptRunner()
    first = runner.handle_script('print "one";')
    second = runner.handle_script('print "two";')
    assert first.output == ["one"]
    assert second.output == ["two"]


def test_print_writes_live_to_attached_stream():
    out = io.StringIO()
    runner = ScriptRunner(stdout=out)
    runner.handle_script('print "a"; print 1 + 1;')
    assert out.getvalue() == "a\n2\n"
