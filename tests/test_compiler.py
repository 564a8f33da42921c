"""
Unit tests for the YAML scenario compiler.

These tests validate scenario execution from dictionary specs, YAML text and
files, including nested scopes, reference kinds and error reporting.
"""

import os

import pytest

from arc_core.compiler import Scenario, compile_from_dict, compile_from_file, compile_from_yaml
from arc_core.config import SimulatorConfig
from arc_core.events import Deallocated, Initialized

SCENARIOS = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'scenarios'))


class TestCompileFromDict:
    """Test running scenarios from parsed dictionaries."""

    def test_nodes_and_edges(self):
        """Test nodes, meta and edges produce the expected event log."""
        spec = {
            "scenario": "phone_owner",
            "scopes": [
                {
                    "name": "do",
                    "nodes": [
                        {"id": "user2", "label": "Tina", "meta": {"type": "User"}},
                        {"id": "iPhone", "label": "iPhone 6s Plus"},
                    ],
                    "edges": [
                        {"owner": "user2", "field": "phones.0", "target": "iPhone", "kind": "strong"},
                        {"owner": "iPhone", "field": "owner", "target": "user2", "kind": "weak"},
                    ],
                }
            ],
        }

        scenario = compile_from_dict(spec)

        assert isinstance(scenario, Scenario)
        assert scenario.name == "phone_owner"
        assert scenario.nodes["user2"].label == "Tina"
        assert scenario.nodes["user2"].meta == {"type": "User"}
        assert scenario.events == [
            Initialized("Tina"),
            Initialized("iPhone 6s Plus"),
            Deallocated("Tina"),
            Deallocated("iPhone 6s Plus"),
        ]

    def test_kind_defaults_to_strong(self):
        """Test edges without a kind are strong and labels default to ids."""
        spec = {
            "scopes": [
                {
                    "nodes": [{"id": "a"}, {"id": "b"}],
                    "edges": [
                        {"owner": "a", "field": "b", "target": "b"},
                        {"owner": "b", "field": "a", "target": "a"},
                    ],
                }
            ]
        }
        scenario = compile_from_dict(spec)

        assert scenario.name == "scenario"
        assert len(scenario.graph.find_leaks()) == 1
        # labels default to ids
        assert scenario.nodes["a"].label == "a"

    def test_nested_scopes_end_innermost_first(self):
        """Test nested scopes end before the scope that declares them."""
        spec = {
            "scopes": [
                {
                    "name": "outer",
                    "nodes": [{"id": "holder", "label": "Holder"}],
                    "scopes": [
                        {
                            "name": "inner",
                            "nodes": [{"id": "target", "label": "Target"}],
                            "edges": [
                                {"owner": "holder", "field": "ref", "target": "target", "kind": "unowned"}
                            ],
                        }
                    ],
                }
            ]
        }
        scenario = compile_from_dict(spec)
        deallocs = [label for kind, label in scenario.events.pairs() if kind == "Deallocated"]

        assert deallocs == ["Target", "Holder"]

    def test_config_is_applied(self):
        """Test the simulator configuration reaches the new graph."""
        spec = {"scopes": [{"nodes": [{"id": "a"}]}]}
        scenario = compile_from_dict(spec, SimulatorConfig(record_events=False))
        assert len(scenario.events) == 0

    def test_empty_spec(self):
        """Test an empty scenario runs without events or nodes."""
        scenario = compile_from_dict({})
        assert len(scenario.events) == 0
        assert scenario.nodes == {}


class TestCompileErrors:
    """Test malformed scenarios are rejected with ValueError."""

    def test_unknown_kind(self):
        """Test an unknown reference kind names the offending value."""
        spec = {
            "scopes": [
                {
                    "nodes": [{"id": "a"}, {"id": "b"}],
                    "edges": [{"owner": "a", "field": "b", "target": "b", "kind": "borrowed"}],
                }
            ]
        }
        with pytest.raises(ValueError, match="borrowed"):
            compile_from_dict(spec)

    def test_unknown_node(self):
        """Test an edge to an undeclared node names the missing id."""
        spec = {
            "scopes": [
                {
                    "nodes": [{"id": "a"}],
                    "edges": [{"owner": "a", "field": "b", "target": "missing"}],
                }
            ]
        }
        with pytest.raises(ValueError, match="missing"):
            compile_from_dict(spec)

    def test_duplicate_node(self):
        """Test a node id may only be declared once."""
        spec = {"scopes": [{"nodes": [{"id": "a"}, {"id": "a"}]}]}
        with pytest.raises(ValueError, match="Duplicate"):
            compile_from_dict(spec)

    def test_node_without_id(self):
        """Test every node entry needs an id."""
        spec = {"scopes": [{"nodes": [{"label": "Anonymous"}]}]}
        with pytest.raises(ValueError):
            compile_from_dict(spec)


class TestCompileFromYamlAndFile:
    """Test YAML text, files and the bundled scenarios."""

    def test_compile_from_yaml_text(self):
        """Test compiling a scenario from YAML text."""
        text = """
scenario: scope_release
scopes:
  - name: do
    nodes:
      - {id: user1, label: John}
"""
        scenario = compile_from_yaml(text)
        assert scenario.events == [Initialized("John"), Deallocated("John")]

    def test_compile_from_file(self, tmp_path):
        """Test compiling a scenario from a YAML file on disk."""
        path = tmp_path / "cycle.yaml"
        path.write_text(
            "scopes:\n"
            "  - nodes: [{id: a}, {id: b}]\n"
            "    edges:\n"
            "      - {owner: a, field: b, target: b}\n"
            "      - {owner: b, field: a, target: a, kind: weak}\n",
            encoding="utf-8",
        )
        scenario = compile_from_file(str(path))
        assert scenario.graph.find_leaks() == []

    def test_bundled_playground(self):
        """Test the bundled playground scenario replays every demonstration in order."""
        scenario = compile_from_file(os.path.join(SCENARIOS, "playground.yaml"))

        assert scenario.events.pairs() == [
            ("Initialized", "John"),
            ("Deallocated", "John"),
            ("Initialized", "Tina"),
            ("Initialized", "iPhone 6s Plus"),
            ("Deallocated", "Tina"),
            ("Deallocated", "iPhone 6s Plus"),
            ("Initialized", "Ray"),
            ("Initialized", "iPhone Xs"),
            ("Initialized", "CarrierSubscription 0032 31415926"),
            ("Deallocated", "Ray"),
            ("Deallocated", "iPhone Xs"),
            ("Deallocated", "CarrierSubscription 0032 31415926"),
        ]
        assert scenario.graph.find_leaks() == []

    def test_bundled_retain_cycle(self):
        """Test the bundled retain cycle scenario leaks both instances."""
        scenario = compile_from_file(os.path.join(SCENARIOS, "retain_cycle.yaml"))
        leaks = scenario.graph.find_leaks()

        assert len(leaks) == 1
        assert leaks[0].labels == ["Tina", "iPhone 6s Plus"]

    def test_bundled_phone_owner(self):
        """Test the bundled phone owner scenario leaves nothing behind."""
        scenario = compile_from_file(os.path.join(SCENARIOS, "phone_owner.yaml"))

        assert not scenario.nodes["iPhone"].alive
        assert scenario.nodes["iPhone"].fields == {}
        assert scenario.graph.find_leaks() == []
