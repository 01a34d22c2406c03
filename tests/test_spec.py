"""Tests for spec parsing, validation and serialization."""

import json
from pathlib import Path

import pytest

from not7.errors import SpecValidationError
from not7.graph.spec import AgentSpec, NodeType, load_spec, parse_spec, save_spec

VALID_SPEC = {
    "id": "summarizer",
    "version": "1.0",
    "goal": "Summarize a web page",
    "config": {
        "llm": {"provider": "openai", "model": "gpt-4", "temperature": 0.2},
        "constraints": {"max_time": "5m", "max_cost": 0.5},
        "tools": {"provider": "builtin"},
    },
    "nodes": [
        {
            "id": "fetch",
            "type": "tool",
            "tool_name": "WebFetch",
            "tool_arguments": {"url": "{{input}}"},
        },
        {"id": "summarize", "name": "Summarize", "type": "llm", "prompt": "Summarize:"},
    ],
    "routes": [
        {"from": "start", "to": "fetch"},
        {"from": "fetch", "to": "summarize", "condition": {"type": "always"}, "parallel": True},
        {"from": "summarize", "to": "end"},
    ],
}


def spec_with(**overrides) -> dict:
    data = json.loads(json.dumps(VALID_SPEC))
    data.update(overrides)
    return data


class TestParsing:
    def test_parse_valid_spec(self):
        spec = parse_spec(json.dumps(VALID_SPEC))

        assert spec.id == "summarizer"
        assert spec.config.llm.model == "gpt-4"
        assert spec.config.tools.provider == "builtin"
        assert [n.id for n in spec.nodes] == ["fetch", "summarize"]
        assert spec.routes[0].source == "start"
        assert spec.routes[1].condition.type == "always"
        assert spec.routes[1].parallel is True

    def test_parse_invalid_json(self):
        with pytest.raises(SpecValidationError, match="failed to parse spec JSON"):
            parse_spec("{not json")

    def test_parse_reports_validation_errors(self):
        with pytest.raises(SpecValidationError) as exc_info:
            parse_spec(json.dumps(spec_with(goal="")))

        assert "goal is required" in exc_info.value.errors

    def test_load_missing_file(self, tmp_path: Path):
        with pytest.raises(SpecValidationError, match="failed to read spec file"):
            load_spec(tmp_path / "missing.json")

    def test_save_and_load(self, tmp_path: Path):
        spec = parse_spec(json.dumps(VALID_SPEC))
        path = tmp_path / "agent.json"

        save_spec(spec, path)
        loaded = load_spec(path)

        assert loaded.model_dump() == spec.model_dump()
        written = json.loads(path.read_text(encoding="utf-8"))
        assert written["routes"][0] == {"from": "start", "to": "fetch"}
        assert "metadata" not in written

    def test_saved_json_is_indented(self, tmp_path: Path):
        path = tmp_path / "agent.json"
        save_spec(parse_spec(json.dumps(VALID_SPEC)), path)

        assert path.read_text(encoding="utf-8").startswith('{\n  "id"')


class TestValidation:
    def test_valid_spec_has_no_errors(self):
        assert AgentSpec.model_validate(VALID_SPEC).validate() == []

    def test_missing_version_and_goal(self):
        errors = AgentSpec.model_validate(spec_with(version="", goal="")).validate()

        assert "version is required" in errors
        assert "goal is required" in errors

    def test_requires_nodes_and_routes(self):
        errors = AgentSpec.model_validate(spec_with(nodes=[], routes=[])).validate()

        assert "at least one node is required" in errors
        assert "at least one route is required" in errors

    def test_duplicate_node_ids(self):
        nodes = VALID_SPEC["nodes"] + [{"id": "fetch", "type": "llm", "prompt": "x"}]
        errors = AgentSpec.model_validate(spec_with(nodes=nodes)).validate()

        assert "duplicate node ID: fetch" in errors

    def test_unknown_node_type(self):
        nodes = [{"id": "fetch", "type": "parallel"}, VALID_SPEC["nodes"][1]]
        errors = AgentSpec.model_validate(spec_with(nodes=nodes)).validate()

        assert any("unsupported node type 'parallel'" in e for e in errors)

    def test_llm_node_requires_prompt(self):
        nodes = [VALID_SPEC["nodes"][0], {"id": "summarize", "type": "llm"}]
        errors = AgentSpec.model_validate(spec_with(nodes=nodes)).validate()

        assert "prompt is required for LLM node summarize" in errors

    def test_negative_max_iterations(self):
        nodes = [VALID_SPEC["nodes"][0], {"id": "summarize", "type": "react", "max_iterations": -1}]
        errors = AgentSpec.model_validate(spec_with(nodes=nodes)).validate()

        assert "max_iterations must not be negative for node summarize" in errors

    def test_route_to_unknown_node(self):
        routes = VALID_SPEC["routes"] + [{"from": "summarize", "to": "ghost"}]
        errors = AgentSpec.model_validate(spec_with(routes=routes)).validate()

        assert "route references unknown node: ghost" in errors

    def test_requires_route_from_start(self):
        routes = [{"from": "fetch", "to": "summarize"}, {"from": "summarize", "to": "end"}]
        errors = AgentSpec.model_validate(spec_with(routes=routes)).validate()

        assert "no route from 'start' found" in errors


class TestModel:
    def test_targets_from_preserves_order(self):
        spec = AgentSpec.model_validate(
            spec_with(
                routes=[
                    {"from": "start", "to": "summarize"},
                    {"from": "start", "to": "fetch"},
                ]
            )
        )

        assert spec.targets_from("start") == ["summarize", "fetch"]
        assert spec.targets_from("fetch") == []

    def test_node_display_name_falls_back_to_id(self):
        spec = AgentSpec.model_validate(VALID_SPEC)

        assert spec.get_node("fetch").display_name == "fetch"
        assert spec.get_node("summarize").display_name == "Summarize"
        assert spec.get_node("ghost") is None

    def test_node_type_values(self):
        assert {t.value for t in NodeType} == {"llm", "react", "tool"}
