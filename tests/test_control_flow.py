import pytest

from lox import lox_ast as ast
from lox.lox_errors import ErrorReporter, LoxRuntimeError
from lox.lox_interpreter import Interpreter
from lox.lox_parser import Parser
from lox.lox_runtime import ScriptRunner
from lox.lox_scanner import Scanner


def run_lox(src: str):
    runner = ScriptRunner()
    return runner.handle_script(src)


def assert_ok(res, expected=None):
    assert res.status == 'success', res.format_error()
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains: str | None = None):
    assert res.status == 'error', f"expected error, got success: {res.value!r}"
    if contains is not None:
        assert contains in (res.error_message or ""), f"error did not contain {contains!r}: {res.error_message!r}"


def test_if_else_and_truthiness():
    src = """
    if (0) print "zero is truthy";
    if ("") print "empty string is truthy";
    if (nil) print "no"; else print "nil is falsy";
    if (false) print "no"; else if (true) print "chained";
    """
    assert run_lox(src).output == ["zero is truthy", "empty string is truthy", "nil is falsy", "chained"]


def test_dangling_else_binds_to_nearest_if():
    res = run_lox('if (true) if (false) print "inner"; else print "else";')
    assert res.output == ["else"]


def test_while_loop():
    src = "var i = 0; while (i < 3) { print i; i = i + 1; }"
    assert run_lox(src).output == ["0", "1", "2"]


def test_while_continue_skips_rest_of_iteration():
    src = """
    var i = 0;
    while (i < 5) {
      i = i + 1;
      if (i % 2 == 0) continue;
      print i;
    }
    """
    assert run_lox(src).output == ["1", "3", "5"]


def test_while_break_exits_regardless_of_condition():
    src = """
    var i = 0;
    while (true) {
      if (i == 2) break;
      print i;
      i = i + 1;
    }
    print "done";
    """
    assert run_lox(src).output == ["0", "1", "done"]


def test_do_while_runs_body_at_least_once():
    res = run_lox('do { print "once"; } while (false);')
    assert res.output == ["once"]


def test_do_while_repeats_while_condition_holds():
    src = "var i = 0; do { print i; i = i + 1; } while (i < 3);"
    assert run_lox(src).output == ["0", "1", "2"]


def test_do_while_continue_still_checks_condition():
    src = """
    var i = 0;
    do {
      i = i + 1;
      if (i < 3) continue;
      print i;
    } while (i < 4);
    """
    assert run_lox(src).output == ["3", "4"]


def test_do_while_break():
    src = "var i = 0; do { if (i == 2) break; i = i + 1; } while (true); i;"
    assert_ok(run_lox(src), 2)


def test_break_only_leaves_innermost_loop():
    src = """
    var out = [];
    var i = 0;
    while (i < 2) {
      var j = 0;
      while (true) {
        if (j == 2) break;
        push(out, i * 10 + j);
        j = j + 1;
      }
      i = i + 1;
    }
    out;
    """
    res = run_lox(src)
    assert_ok(res)
    assert list(res.value) == [0, 1, 10, 11]


def test_continue_in_block_scoped_loop_body_keeps_scopes_balanced():
    src = """
    var total = 0;
    var i = 0;
    while (i < 4) {
      var step = 1;
      { var inner = step; i = i + inner; if (i == 2) continue; }
      total = total + i;
    }
    total;
    """
    # i goes 1, 2 (skipped), 3, 4
    assert_ok(run_lox(src), 8)


def test_return_from_inside_loop_in_function():
    src = """
    fun firstOver(list, n) {
      var i = 0;
      do {
        if (list[i] > n) return list[i];
        i = i + 1;
      } while (i < len(list));
      return nil;
    }
    firstOver([1, 5, 9], 4);
    """
    assert_ok(run_lox(src), 5)


@pytest.mark.parametrize("src, message", [
    ("break;", "Can't use 'break' outside of a loop."),
    ("if (true) continue;", "Can't use 'continue' outside of a loop."),
    ("while (true) { fun f() { continue; } }", "Can't use 'continue' outside of a loop."),
])
def test_loop_control_outside_loop_is_static_error(src, message):
    res = run_lox(src)
    assert_error(res, message)
    assert res.error_phase == 'static'


def _unresolved(src: str):
    reporter = ErrorReporter()
    statements = Parser(Scanner(src, reporter).scan_tokens(), reporter).parse()
    assert not reporter.had_error
    return statements


def test_escaped_signal_at_top_level_is_runtime_error():
    # Running without the resolver: the evaluator still refuses stray signals.
    interpreter = Interpreter()
    with pytest.raises(LoxRuntimeError) as exc:
        interpreter.interpret(_unresolved("print 1;\nbreak;\nprint 2;"))
    assert exc.value.message == "Can't use 'break' outside of a loop."
    assert exc.value.line == 2
    assert [e['message'] for e in interpreter.side_effects] == ["1"]


def test_loop_signal_escaping_function_is_runtime_error():
    interpreter = Interpreter()
    statements = _unresolved("fun f() { continue; } while (true) { f(); }")
    with pytest.raises(LoxRuntimeError, match="Can't use 'continue' outside of a loop."):
        interpreter.interpret(statements)


def test_execute_returns_signals():
    interpreter = Interpreter()
    statements = _unresolved("{ 1; break; 2; }")
    signal = interpreter.execute(statements[0])
    assert type(signal).__name__ == "BreakSignal"
    assert isinstance(statements[0], ast.Block)
