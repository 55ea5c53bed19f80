import sys

import pytest

from jar_flattener.errors import AnalysisError, ToolError, ToolTimeoutError
from jar_flattener.process import run_tool


def test_run_tool_captures_output():
    result = run_tool([sys.executable, "-c", "print('hello')"], timeout=30)

    assert result.returncode == 0
    assert result.stdout.strip() == "hello"


def test_missing_command():
    with pytest.raises(ToolError, match="command not found"):
        run_tool(["definitely-not-a-real-tool-xyz"], timeout=5)


def test_non_zero_exit_uses_error_class_and_stderr_tail():
    code = "import sys; [print(f'line {i}', file=sys.stderr) for i in range(30)]; sys.exit(4)"

    with pytest.raises(AnalysisError) as excinfo:
        run_tool([sys.executable, "-c", code], timeout=30, error_cls=AnalysisError)

    message = str(excinfo.value)
    assert "exit=4" in message
    assert "line 29" in message
    assert "line 9" not in message.splitlines()


def test_timeout():
    with pytest.raises(ToolTimeoutError, match="timed out"):
        run_tool([sys.executable, "-c", "import time; time.sleep(10)"], timeout=0.5)


def test_extra_env_is_layered(monkeypatch):
    monkeypatch.setenv("BASE_VAR", "base")

    result = run_tool(
        [sys.executable, "-c", "import os; print(os.environ['BASE_VAR'], os.environ['EXTRA_VAR'])"],
        timeout=30,
        env={"EXTRA_VAR": "extra"},
    )

    assert result.stdout.split() == ["base", "extra"]
