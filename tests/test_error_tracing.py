import sys

import pytest

from lox.lox_runtime import ScriptRunner


def test_runtime_error_result_and_stderr_effect():
    runner = ScriptRunner()
    res = runner.handle_script('print "before";\nprint 1 + "a";\nprint "after";')
    assert res.status == 'error'
    assert res.error_phase == 'runtime'
    assert res.error_message == "Operands must be two numbers or two strings."
    assert res.error_token.lexeme == "+"
    assert res.format_error() == "Operands must be two numbers or two strings.\n[line 2]"
    assert res.exit_code == 70

    stderr_effects = [e for e in res.side_effects if e.get('topics') == ['stderr']]
    assert stderr_effects, f"stderr side effect missing: {res.side_effects}"
    assert stderr_effects[-1]['message'] == res.format_error()
    assert res.output == ["before"]


def test_stacktrace_shows_call_chain():
    runner = ScriptRunner()
    script = """
fun boom(x) { return x / nil; }
fun middle(y) { return boom(y); }
fun outer(z) { return middle(z); }
outer(5);
"""
    res = runner.handle_script(script)
    assert res.status == 'error', res.error_message
    assert res.error_message == "Operands must be numbers."
    assert res.error_token.line == 2
    assert res.stacktrace == ["(outer 5)", "(middle 5)", "(boom 5)"]


def test_stacktrace_quotes_string_arguments():
    runner = ScriptRunner()
    res = runner.handle_script('fun f(s, l) { return s - 1; } f("x", [1]);')
    assert res.stacktrace == ['(f "x" [1])']


def test_stacktrace_is_cleared_between_runs():
    runner = ScriptRunner()
    runner.handle_script("fun f() { return nil - 1; } f();")
    res = runner.handle_script("1;")
    assert res.status == 'success'
    assert res.stacktrace == []
    assert runner.interpreter.call_stack == []


def test_syntax_errors_are_all_reported():
    runner = ScriptRunner()
    res = runner.handle_script("print ;\nvar 1 = 2;\nprint 3;")
    assert res.status == 'error'
    assert res.error_phase == 'static'
    assert res.diagnostics == [
        "[line 1] Error at ';': Expect expression.",
        "[line 2] Error at '1': Expect variable name.",
    ]
    assert res.format_error() == "\n".join(res.diagnostics)
    assert res.exit_code == 65
    # Nothing runs when a static error was found.
    assert res.output == []
    stderr = [e['message'] for e in res.side_effects if e.get('topics') == ['stderr']]
    assert stderr == res.diagnostics


def test_scanner_errors_gate_execution():
    res = ScriptRunner().handle_script('print "ok";\n@')
    assert res.diagnostics == ["[line 2] Error: Unexpected character."]
    assert res.output == []


def test_resolver_errors_gate_execution():
    res = ScriptRunner().handle_script('print "never";\nreturn 1;')
    assert res.diagnostics == ["[line 2] Error at 'return': Can't return from top-level code."]
    assert res.output == []


def test_error_at_end_of_input():
    res = ScriptRunner().handle_script("print 1")
    assert res.diagnostics == ["[line 1] Error at end: Expect ';' after value."]


def test_runner_recovers_after_errors():
    runner = ScriptRunner()
    assert runner.handle_script("print ;").status == 'error'
    assert runner.handle_script("undefinedName;").status == 'error'
    res = runner.handle_script("print 1;")
    assert res.status == 'success'
    assert res.diagnostics == []
    assert res.output == ["1"]


def test_stack_exhaustion_propagates():
    runner = ScriptRunner()
    limit = sys.getrecursionlimit()
    sys.setrecursionlimit(400)
    try:
        with pytest.raises(RecursionError):
            runner.handle_script("fun f() { return f(); } f();")
    finally:
        sys.setrecursionlimit(limit)
    # The runner is usable again afterwards.
    assert runner.interpreter.environment is runner.interpreter.globals
    assert runner.handle_script("1 + 1;").value == 2


def test_debug_mode_traces_to_stderr(monkeypatch, capsys):
    monkeypatch.setenv("LOX_DEBUG", "1")
    res = ScriptRunner().handle_script("{ var a = 1; print a; }")
    assert res.output == ["1"]
    err = capsys.readouterr().err
    assert "[DBG] ast (block (var a 1) (print a))" in err
    assert "[DBG] resolve a line 1 distance 0" in err
