"""
Tests for the not7 command-line interface.
"""

import asyncio
import json
from types import SimpleNamespace

import litellm
import pytest

from not7 import cli
from not7.graph.spec import Metadata, NodeResult, ReActTrace, ThinkingStep, ToolCallTrace
from not7.schemas.execution import Execution, ExecutionResult
from not7.storage.execution_store import ExecutionStore
from tests.conftest import make_linear_spec


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ("OPENAI_API_KEY", "SERP_API_KEY", "ARCADE_API_KEY", "ARCADE_USER_ID"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def run_cli(monkeypatch, workspace, *argv: str) -> int:
    monkeypatch.setattr(
        "sys.argv",
        [
            "not7",
            "--config",
            str(workspace / "configuration.json"),
            "--executions-dir",
            str(workspace / "executions"),
            "--log-dir",
            str(workspace / "logs"),
            *argv,
        ],
    )
    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    return exc_info.value.code


def write_spec(workspace, **overrides) -> str:
    spec = make_linear_spec("fetch", "summarize", id="demo", **overrides)
    path = workspace / "agent.json"
    path.write_text(spec.to_json())
    return str(path)


def stored_execution(workspace) -> Execution:
    execution = Execution.create(make_linear_spec("think", node_type="react", id="demo"))
    execution.mark_started()
    execution.mark_completed(
        ExecutionResult(
            output="42",
            duration_ms=2000,
            total_cost=0.05,
            metadata=Metadata(
                execution_time_ms=1900,
                total_cost=0.05,
                node_results=[
                    NodeResult(
                        node_id="think",
                        status="success",
                        cost=0.05,
                        output="42",
                        react_trace=ReActTrace(
                            iterations=1,
                            iterations_cost=0.05,
                            thinking_steps=[
                                ThinkingStep(
                                    iteration=1,
                                    thought="x" * 600,
                                    tool_calls=[
                                        ToolCallTrace(
                                            tool_name="WebSearch",
                                            arguments={"query": "meaning of life"},
                                            result=[{"title": "Answer"}],
                                        )
                                    ],
                                )
                            ],
                        ),
                    )
                ],
            ),
        )
    )
    store = ExecutionStore(workspace / "executions")
    asyncio.run(store.save(execution))
    asyncio.run(store.save_output(execution.id, "42"))
    return execution


def test_validate_ok(monkeypatch, workspace, capsys):
    assert run_cli(monkeypatch, workspace, "validate", write_spec(workspace)) == 0

    out = capsys.readouterr().out
    assert "is valid" in out
    assert "Nodes: 2, routes: 3" in out


def test_validate_reports_errors(monkeypatch, workspace, capsys):
    path = write_spec(workspace, goal="")

    assert run_cli(monkeypatch, workspace, "validate", path) == 1
    assert "Error: invalid spec: goal is required" in capsys.readouterr().err


def test_dry_run_prints_plan(monkeypatch, workspace, capsys):
    assert run_cli(monkeypatch, workspace, "run", write_spec(workspace), "--dry-run") == 0

    out = capsys.readouterr().out
    assert "1. FETCH (llm)" in out
    assert "2. SUMMARIZE (llm)" in out
    assert not (workspace / "executions").exists()


def test_run_executes_and_persists(monkeypatch, workspace, capsys):
    async def acompletion(**kwargs):
        return SimpleNamespace(
            model=kwargs["model"],
            choices=[SimpleNamespace(message=SimpleNamespace(content="summary"), finish_reason="stop")],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
        )

    monkeypatch.setattr(litellm, "acompletion", acompletion)

    code = run_cli(monkeypatch, workspace, "run", write_spec(workspace), "--input", "some text")

    assert code == 0
    out = capsys.readouterr().out
    assert "✅ Completed" in out
    assert "summary" in out
    [execution_dir] = list((workspace / "executions").iterdir())
    assert execution_dir.name.startswith("demo-")
    assert (execution_dir / "output.txt").read_text() == "summary"


def test_run_failure_exit_code(monkeypatch, workspace, capsys):
    async def acompletion(**kwargs):
        raise RuntimeError("no network")

    monkeypatch.setattr(litellm, "acompletion", acompletion)

    assert run_cli(monkeypatch, workspace, "run", write_spec(workspace)) == 1
    assert "execution failed at node fetch" in capsys.readouterr().err


def test_list_and_json(monkeypatch, workspace, capsys):
    assert run_cli(monkeypatch, workspace, "list") == 0
    assert "No executions found." in capsys.readouterr().out

    execution = stored_execution(workspace)

    assert run_cli(monkeypatch, workspace, "list") == 0
    assert execution.id in capsys.readouterr().out

    assert run_cli(monkeypatch, workspace, "list", "--json") == 0
    [entry] = json.loads(capsys.readouterr().out)
    assert entry["id"] == execution.id
    assert entry["status"] == "completed"


def test_status_and_result(monkeypatch, workspace, capsys):
    execution = stored_execution(workspace)

    assert run_cli(monkeypatch, workspace, "status", execution.id) == 0
    out = capsys.readouterr().out
    assert "Status: completed" in out
    assert "Cost: $0.0500" in out

    assert run_cli(monkeypatch, workspace, "result", execution.id) == 0
    assert "42" in capsys.readouterr().out


def test_trace_truncates_unless_full(monkeypatch, workspace, capsys):
    execution = stored_execution(workspace)

    assert run_cli(monkeypatch, workspace, "trace", execution.id) == 0
    out = capsys.readouterr().out
    assert "Node: think" in out
    assert "🔧 Tool Call: WebSearch" in out
    assert "• query: meaning of life" in out
    assert "[truncated, use --full to see all]" in out
    assert "x" * 600 not in out

    assert run_cli(monkeypatch, workspace, "trace", execution.id, "--full") == 0
    assert "x" * 600 in capsys.readouterr().out


def test_delete_and_unknown_id(monkeypatch, workspace, capsys):
    execution = stored_execution(workspace)

    assert run_cli(monkeypatch, workspace, "delete", execution.id) == 0
    assert f"Deleted execution {execution.id}" in capsys.readouterr().out

    assert run_cli(monkeypatch, workspace, "status", execution.id) == 1
    assert "execution not found" in capsys.readouterr().err


def test_plan_visits_each_node_once():
    spec = make_linear_spec("a", "b")
    spec.routes[2].target = "a"

    assert cli._plan(spec) == ["a", "b"]
