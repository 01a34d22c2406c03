"""Shared fixtures and spec builders."""

import pytest

from not7.graph.spec import AgentSpec
from not7.observability import clear_trace_context


@pytest.fixture(autouse=True)
def _reset_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()


def make_linear_spec(*node_ids: str, node_type: str = "llm", **spec_fields) -> AgentSpec:
    """start -> node_ids[0] -> ... -> node_ids[-1] -> end, one llm node per id."""
    nodes = [
        {"id": node_id, "name": node_id.upper(), "type": node_type, "prompt": f"prompt {node_id}"}
        for node_id in node_ids
    ]
    chain = ["start", *node_ids, "end"]
    routes = [{"from": a, "to": b} for a, b in zip(chain, chain[1:], strict=False)]
    data = {"version": "1.0", "goal": "test goal", "nodes": nodes, "routes": routes}
    data.update(spec_fields)
    return AgentSpec.model_validate(data)
