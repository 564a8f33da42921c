"""
YAML scenario compiler for ARC object graphs.

This module runs a YAML description of nested scopes, the instances created
in them and the references between those instances against a `Graph`, so that
reference-counting demonstrations can be written as data.

YAML schema (minimal):

scenario: phone_owner
scopes:
  - name: outer
    nodes:
      - id: tina
        label: Tina
        meta: {type: User}
      - id: iphone
        label: iPhone 6s Plus
    edges:
      - {owner: tina, field: phones.0, target: iphone, kind: strong}
      - {owner: iphone, field: owner, target: tina, kind: weak}
    scopes: []        # optional nested scopes, run after the edges

Notes:
- Every node is bound as a strong local of the scope that declares it, under
  its `id`, in declaration order.
- `kind` is one of strong, weak, unowned (default strong).
- Node ids are visible in nested scopes; ids must be unique per scenario.
- A scope ends after its nested scopes have run, releasing its locals in
  reverse order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

import yaml

from .config import SimulatorConfig
from .enums import EdgeKind
from .graph import Graph, Node, Scope

logger = logging.getLogger(__name__)


@dataclass
class Scenario:
    """Result of running a compiled scenario."""

    name: str
    graph: Graph
    nodes: Dict[str, Node] = field(default_factory=dict)

    @property
    def events(self):
        return self.graph.events


def _edge_kind(value: Any) -> EdgeKind:
    name = str(value or "strong").strip().upper()
    try:
        return EdgeKind[name]
    except KeyError:
        raise ValueError(f"Unknown reference kind: {value!r}") from None


def _run_scope(g: Graph, spec: Dict[str, Any], nodes: Dict[str, Node]) -> None:
    name = spec.get("name", "scope")
    with g.scope(name) as scope:
        _populate(g, scope, spec, nodes)


def _populate(g: Graph, scope: Scope, spec: Dict[str, Any], nodes: Dict[str, Node]) -> None:
    for entry in spec.get("nodes", []) or []:
        nid = entry.get("id")
        if not nid:
            raise ValueError(f"Node entry without id in scope {scope.name!r}: {entry!r}")
        if nid in nodes:
            raise ValueError(f"Duplicate node id {nid!r}")
        label = entry.get("label", nid)
        meta = entry.get("meta", {}) or {}
        nodes[nid] = scope.new(label, name=nid, meta=meta)

    for entry in spec.get("edges", []) or []:
        try:
            owner = nodes[entry["owner"]]
            target = nodes[entry["target"]]
        except KeyError as e:
            raise ValueError(f"Edge refers to unknown node {e.args[0]!r}") from None
        kind = _edge_kind(entry.get("kind"))
        g.add_edge(owner, entry["field"], target, kind)

    for child in spec.get("scopes", []) or []:
        _run_scope(g, child, nodes)


def compile_from_dict(spec: Dict[str, Any], config: SimulatorConfig | None = None) -> Scenario:
    """
    Run a YAML-parsed scenario dictionary.

    Args:
        spec: Parsed YAML dictionary
        config: Optional simulator configuration for the new graph

    Returns:
        Scenario: graph after every scope has ended, plus the id -> node map
    """
    g = Graph(config)
    name = spec.get("scenario", "scenario")
    nodes: Dict[str, Node] = {}
    logger.info("Running scenario %r", name)
    for scope_spec in spec.get("scopes", []) or []:
        _run_scope(g, scope_spec, nodes)
    leaks = g.find_leaks()
    if leaks:
        logger.info("Scenario %r leaked %d group(s)", name, len(leaks))
    return Scenario(name, g, nodes)


def compile_from_yaml(yaml_text: str, config: SimulatorConfig | None = None) -> Scenario:
    """Compile from YAML text into a `Scenario`."""
    data = yaml.safe_load(yaml_text) or {}
    return compile_from_dict(data, config)


def compile_from_file(path: str, config: SimulatorConfig | None = None) -> Scenario:
    """Compile from a YAML file path into a `Scenario`."""
    with open(path, "r", encoding="utf-8") as f:
        txt = f.read()
    return compile_from_yaml(txt, config)
