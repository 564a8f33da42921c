"""
Reference-counted object graph for the ARC simulator.

This module defines the data structures and bookkeeping that reproduce
automatic reference counting:
- Node: a simulated heap instance with a strong count and named fields
- Edge: a named field of a node pointing at another node (strong/weak/unowned)
- Scope: a root holding local variables, released in reverse order on exit
- Graph: the node store, strong-count bookkeeping, cascade deallocation,
  lifecycle events, leak detection and validation

Counting is simulated data; no Python reference counting or garbage collector
primitive is involved, so strong cycles leak exactly as they would under ARC.
"""

from __future__ import annotations

import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Union

import networkx as nx

from .config import SimulatorConfig
from .enums import EdgeKind, NodeKind
from .errors import LeakDetected, UseAfterFree
from .events import Deallocated, Event, EventLog, Initialized, Listener

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Node:
    """
    A simulated heap instance.

    Attributes:
        id: Unique identifier assigned by the graph
        label: Human readable name used in lifecycle events
        kind: OBJECT, SCOPE (root holder) or CLOSURE (deferred computation)
        strong_count: Number of strong edges currently pointing at this node
        alive: False once the node has been deallocated
        fields: Outgoing edges by field name, in declaration order
        meta: Free-form attributes of the simulated instance
    """

    id: int
    label: str
    kind: NodeKind = NodeKind.OBJECT
    strong_count: int = 0
    alive: bool = True
    fields: Dict[str, "Edge"] = field(default_factory=dict)
    meta: dict = field(default_factory=dict)

    def __repr__(self) -> str:
        state = "alive" if self.alive else "deallocated"
        return f"Node({self.id}, {self.label!r}, {self.kind.name}, rc={self.strong_count}, {state})"


@dataclass(frozen=True)
class Edge:
    """A named field of `src` referring to `dst` with the given ownership kind."""

    src: int
    dst: int
    kind: EdgeKind
    name: str


@dataclass(frozen=True)
class Present:
    """Result of reading a weak edge whose target is still alive."""

    node: Node

    def __bool__(self) -> bool:
        return True


class _Absent:
    """Result of reading a weak edge whose target has been deallocated."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()
Reference = Union[Present, _Absent]
NodeRef = Union[Node, int, "Scope", Any]


class Scope:
    """
    A lexical scope holding local variables.

    Locals are edges of a silent SCOPE root node. Ending the scope releases
    strong locals in reverse order of acquisition. Use as a context manager via
    `Graph.scope()` so the release happens at the end of the ``with`` block.
    """

    def __init__(self, graph: Graph, root: Node, parent: Scope | None = None):
        self.graph = graph
        self.root = root
        self.parent = parent

    @property
    def name(self) -> str:
        return self.root.label

    @property
    def ended(self) -> bool:
        return not self.root.alive

    def new(self, label: str, name: str | None = None, meta: dict | None = None) -> Node:
        """Create an instance and bind it as a strong local (``let x = T()``)."""
        return self.graph.create_node(label, scope=self, name=name, meta=meta)

    def bind(self, name: str, target: NodeRef, kind: EdgeKind = EdgeKind.STRONG) -> Node:
        """Bind `target` to the local `name`; returns the bound node."""
        self.graph._set_edge(self.root, name, target, kind)
        return self.graph._resolve(target)

    def read(self, name: str):
        return self.graph.read_edge(self.root, name)

    def release(self, name: str) -> None:
        """Unbind a local before the scope ends (``x = nil``)."""
        self.graph.remove_edge(self.root, name)

    def locals(self) -> List[str]:
        return list(self.root.fields)

    def end(self) -> None:
        self.graph.end_scope(self)

    def __enter__(self) -> Scope:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.graph.end_scope(self)

    def __repr__(self) -> str:
        return f"Scope({self.name!r}, locals={self.locals()})"


class Graph:
    """
    Store of simulated instances and the references between them.

    The graph owns every node, maintains strong counts, deallocates a node
    exactly when its strong count reaches zero and cascades the release of the
    strong fields it owned. Lifecycle events are appended to `events` and
    pushed to subscribed listeners in the order they happen.

    Attributes:
        nodes: Live and not-yet-reclaimed nodes by id
        events: Ordered lifecycle event log
        config: Simulator configuration
    """

    def __init__(self, config: SimulatorConfig | None = None):
        self.config = config or SimulatorConfig()
        self.nodes: Dict[int, Node] = {}
        self.events = EventLog(maxlen=self.config.max_event_history)
        self._ids = itertools.count(1)
        self._listeners: List[Listener] = []
        self._open_scopes: List[Scope] = []
        # labels of reclaimed nodes, for error messages
        self._tombstones: Dict[int, str] = {}
        self._cascade_depth = 0

    # ----- helpers -----
    def _resolve(self, ref: NodeRef) -> Node:
        if isinstance(ref, Node):
            return ref
        if isinstance(ref, Scope):
            return ref.root
        if isinstance(ref, int):
            if ref in self.nodes:
                return self.nodes[ref]
            if ref in self._tombstones:
                raise UseAfterFree(self._tombstones[ref])
            raise KeyError(f"Unknown node id: {ref}")
        node = getattr(ref, "node", None)
        if isinstance(node, Node):
            return node
        raise TypeError(f"Cannot resolve {ref!r} to a node")

    def _live(self, ref: NodeRef) -> Node:
        node = self._resolve(ref)
        if not node.alive:
            raise UseAfterFree(node.label)
        return node

    def _label_of(self, node_id: int) -> str:
        if node_id in self.nodes:
            return self.nodes[node_id].label
        return self._tombstones.get(node_id, f"#{node_id}")

    def _emit(self, event: Event) -> None:
        logger.log(self.config.event_log_level, "%s", event.describe())
        if self.config.record_events:
            self.events.append(event)
        for listener in list(self._listeners):
            listener(event)

    def subscribe(self, listener: Listener):
        """Register a callback for lifecycle events; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ----- allocation -----
    def create_node(
        self,
        label: str,
        scope: Scope | None = None,
        name: str | None = None,
        kind: NodeKind = NodeKind.OBJECT,
        meta: dict | None = None,
    ) -> Node:
        """
        Allocate a new node with strong count 0.

        The caller is expected to retain it right away, either by passing
        `scope` (binds it as a strong local named `name`) or with a strong edge.

        Args:
            label: Name reported in lifecycle events
            scope: Optional scope that takes ownership of the new node
            name: Local variable name inside `scope` (defaults to the label)
            kind: Node kind; only OBJECT nodes emit events
            meta: Free-form attributes stored on the node

        Returns:
            The new node
        """
        if scope is not None and scope.graph is not self:
            raise ValueError(f"Scope {scope.name!r} belongs to another graph")
        node = Node(next(self._ids), label, kind=kind, meta=dict(meta or {}))
        self.nodes[node.id] = node
        if kind is NodeKind.OBJECT:
            self._emit(Initialized(label, node.id))
        else:
            logger.debug("Allocated %s node %r", kind.name.lower(), label)
        if scope is not None:
            scope.bind(name or label, node)
        return node

    # ----- references -----
    def _set_edge(self, owner: NodeRef, name: str, target: NodeRef, kind: EdgeKind) -> Edge:
        owner_node = self._live(owner)
        target_node = self._resolve(target)
        if kind is EdgeKind.STRONG:
            if not target_node.alive:
                raise UseAfterFree(target_node.label)
            target_node.strong_count += 1
        elif kind is EdgeKind.UNOWNED and not target_node.alive:
            if self.config.strict_unowned_binding:
                raise UseAfterFree(target_node.label, name)
        edge = Edge(owner_node.id, target_node.id, kind, name)
        old = owner_node.fields.get(name)
        owner_node.fields[name] = edge
        # new target is retained before the old one is released
        if old is not None and old.kind is EdgeKind.STRONG:
            self._release(old.dst)
        return edge

    def add_strong_edge(self, owner: NodeRef, field: str, target: NodeRef) -> Edge:
        """Store a retaining reference to `target` in `owner.field`."""
        return self._set_edge(owner, field, target, EdgeKind.STRONG)

    def add_weak_edge(self, owner: NodeRef, field: str, target: NodeRef) -> Edge:
        """Store a non-retaining reference that reads as absent once `target` dies."""
        return self._set_edge(owner, field, target, EdgeKind.WEAK)

    def add_unowned_edge(self, owner: NodeRef, field: str, target: NodeRef) -> Edge:
        """Store a non-retaining reference that must not outlive `target`."""
        return self._set_edge(owner, field, target, EdgeKind.UNOWNED)

    def add_edge(self, owner: NodeRef, field: str, target: NodeRef, kind: EdgeKind) -> Edge:
        return self._set_edge(owner, field, target, kind)

    def read_edge(self, owner: NodeRef, field: str):
        """
        Read the reference stored in `owner.field`.

        Returns:
            For weak fields `Present(node)` or `ABSENT`; for strong and unowned
            fields the target node itself.

        Raises:
            UseAfterFree: The owner is deallocated, or an unowned field points
                at a deallocated node
            KeyError: The owner has no such field
        """
        owner_node = self._live(owner)
        edge = owner_node.fields[field]
        target = self.nodes.get(edge.dst)
        alive = target is not None and target.alive
        if edge.kind is EdgeKind.WEAK:
            return Present(target) if alive else ABSENT
        if not alive:
            raise UseAfterFree(self._label_of(edge.dst), field)
        return target

    def edge(self, owner: NodeRef, field: str) -> Edge:
        return self._live(owner).fields[field]

    def remove_edge(self, owner: NodeRef, field: str) -> None:
        """Clear `owner.field`; releases the target when the field was strong."""
        owner_node = self._live(owner)
        edge = owner_node.fields.pop(field)
        if edge.kind is EdgeKind.STRONG:
            self._release(edge.dst)

    def drop_strong_edge(self, owner: NodeRef, field: str) -> None:
        """Release the strong reference held in `owner.field`."""
        edge = self.edge(owner, field)
        if edge.kind is not EdgeKind.STRONG:
            raise ValueError(f"Field {field!r} holds a {edge.kind.name.lower()} reference, not a strong one")
        self.remove_edge(owner, field)

    # ----- deallocation -----
    def _release(self, node_id: int) -> None:
        # explicit stack; strong fields are pushed in reverse so they pop in declaration order
        pending = [node_id]
        self._cascade_depth += 1
        try:
            while pending:
                node = self.nodes[pending.pop()]
                node.strong_count -= 1
                if node.strong_count > 0:
                    continue
                pending.extend(reversed(self._deallocate(node)))
        finally:
            self._cascade_depth -= 1
        if self._cascade_depth == 0 and self.config.reclaim_on_release:
            self.reclaim()

    def _deallocate(self, node: Node) -> List[int]:
        """Mark `node` dead and return the ids its strong fields held, in field order."""
        node.alive = False
        if node.kind is NodeKind.OBJECT:
            self._emit(Deallocated(node.label, node.id))
        else:
            logger.debug("Released %s node %r", node.kind.name.lower(), node.label)
        owned = [edge.dst for edge in node.fields.values() if edge.kind is EdgeKind.STRONG]
        node.fields.clear()
        return owned

    def reclaim(self) -> int:
        """Drop deallocated nodes from the store; returns how many were dropped."""
        dead = [nid for nid, n in self.nodes.items() if not n.alive]
        for nid in dead:
            self._tombstones[nid] = self.nodes.pop(nid).label
        if dead:
            logger.debug("Reclaimed %d node(s)", len(dead))
        return len(dead)

    # ----- scopes -----
    def open_scope(self, name: str = "scope") -> Scope:
        """Open a scope nested in the innermost open scope."""
        parent = self._open_scopes[-1] if self._open_scopes else None
        root = Node(next(self._ids), name, kind=NodeKind.SCOPE)
        self.nodes[root.id] = root
        scope = Scope(self, root, parent)
        self._open_scopes.append(scope)
        logger.debug("Entered scope %r", name)
        return scope

    def end_scope(self, scope: Scope) -> None:
        """
        End `scope`, releasing its strong locals in reverse order of acquisition.

        Scopes opened inside it that are still open are ended first. Ending an
        already ended scope is a no-op.
        """
        if scope.ended:
            return
        if scope in self._open_scopes:
            while self._open_scopes[-1] is not scope:
                self.end_scope(self._open_scopes[-1])
            self._open_scopes.pop()
        root = scope.root
        for name in reversed(list(root.fields)):
            edge = root.fields.pop(name)
            if edge.kind is EdgeKind.STRONG:
                self._release(edge.dst)
        root.alive = False
        logger.debug("Exited scope %r", scope.name)
        if self.config.reclaim_on_release:
            self.reclaim()

    @contextmanager
    def scope(self, name: str = "scope") -> Iterator[Scope]:
        """Context manager equivalent of a ``do { }`` block."""
        s = self.open_scope(name)
        try:
            yield s
        finally:
            self.end_scope(s)

    @property
    def open_scopes(self) -> List[Scope]:
        return list(self._open_scopes)

    # ----- queries -----
    def node(self, node_id: int) -> Node:
        return self._resolve(node_id)

    def find(self, label: str) -> List[Node]:
        """Return OBJECT nodes with the given label, oldest first."""
        return [n for n in self.nodes.values() if n.kind is NodeKind.OBJECT and n.label == label]

    def live_nodes(self, kind: NodeKind | None = NodeKind.OBJECT) -> List[Node]:
        return [n for n in self.nodes.values() if n.alive and (kind is None or n.kind is kind)]

    def is_alive(self, ref: NodeRef) -> bool:
        try:
            return self._resolve(ref).alive
        except UseAfterFree:
            return False

    def strong_count(self, ref: NodeRef) -> int:
        return self._resolve(ref).strong_count

    def edges(self, kind: EdgeKind | None = None) -> List[Edge]:
        """Return edges held by live owners, optionally filtered by kind."""
        return [
            e
            for n in self.nodes.values()
            if n.alive
            for e in n.fields.values()
            if kind is None or e.kind is kind
        ]

    # ----- leak detection -----
    def _reachable_from_roots(self) -> set:
        reachable = set()
        stack = [n.id for n in self.nodes.values() if n.kind is NodeKind.SCOPE and n.alive]
        while stack:
            nid = stack.pop()
            if nid in reachable:
                continue
            reachable.add(nid)
            for e in self.nodes[nid].fields.values():
                if e.kind is EdgeKind.STRONG:
                    stack.append(e.dst)
        return reachable

    def find_leaks(self) -> List[LeakDetected]:
        """
        Enumerate instances that are alive but unreachable from any open scope.

        Reachability follows strong edges only. Leaked nodes are grouped into
        weakly connected components of the strong-edge subgraph; each group is
        reported with the strong cycles that keep it alive.

        Returns:
            One `LeakDetected` diagnostic per leaked group, oldest group first
        """
        reachable = self._reachable_from_roots()
        leaked = [
            n
            for n in self.nodes.values()
            if n.alive
            and n.kind is not NodeKind.SCOPE
            and n.strong_count > 0
            and n.id not in reachable
        ]
        if not leaked:
            return []

        G = nx.DiGraph()
        G.add_nodes_from(n.id for n in leaked)
        for n in leaked:
            for e in n.fields.values():
                if e.kind is EdgeKind.STRONG and e.dst in G:
                    G.add_edge(n.id, e.dst)

        reports = []
        for component in sorted(nx.weakly_connected_components(G), key=min):
            ids = sorted(component)
            cycles = []
            for cycle in nx.simple_cycles(G.subgraph(ids)):
                start = cycle.index(min(cycle))
                cycles.append(cycle[start:] + cycle[:start])
            cycles.sort()
            reports.append(
                LeakDetected(
                    [self.nodes[i].label for i in ids],
                    ids,
                    [[self.nodes[i].label for i in c] for c in cycles],
                )
            )
        return reports

    def assert_no_leaks(self) -> None:
        """Raise the first `LeakDetected` diagnostic, if any."""
        leaks = self.find_leaks()
        if leaks:
            raise leaks[0]

    # ----- validation -----
    def validate_count_integrity(self) -> Dict[str, List[str]]:
        """
        Check that every strong count equals the number of strong edges held by
        live owners, and that no live strong edge points at a dead node.
        """
        issues = {"count_errors": []}
        expected: Dict[int, int] = {}
        for e in self.edges(EdgeKind.STRONG):
            expected[e.dst] = expected.get(e.dst, 0) + 1
            target = self.nodes.get(e.dst)
            if target is None or not target.alive:
                issues["count_errors"].append(
                    f"Strong field '{e.name}' of '{self._label_of(e.src)}' points at deallocated '{self._label_of(e.dst)}'"
                )
        for n in self.nodes.values():
            if not n.alive or n.kind is NodeKind.SCOPE:
                continue
            if n.strong_count != expected.get(n.id, 0):
                issues["count_errors"].append(
                    f"'{n.label}' has strong count {n.strong_count} but {expected.get(n.id, 0)} strong reference(s)"
                )
        return {k: v for k, v in issues.items() if v}

    def validate_references(self) -> Dict[str, List[str]]:
        """
        Report unowned fields that outlived their target (errors) and weak
        fields that have been cleared (warnings).
        """
        issues = {"dangling_unowned_errors": [], "cleared_weak_warnings": []}
        for e in self.edges():
            if e.kind is EdgeKind.STRONG:
                continue
            target = self.nodes.get(e.dst)
            if target is not None and target.alive:
                continue
            owner = self._label_of(e.src)
            if e.kind is EdgeKind.UNOWNED:
                issues["dangling_unowned_errors"].append(
                    f"Unowned field '{e.name}' of '{owner}' outlived '{self._label_of(e.dst)}'"
                )
            else:
                issues["cleared_weak_warnings"].append(
                    f"Weak field '{e.name}' of '{owner}' is now nil (was '{self._label_of(e.dst)}')"
                )
        return {k: v for k, v in issues.items() if v}

    def validate_leaks(self) -> Dict[str, List[str]]:
        issues = {"leak_warnings": [str(leak) for leak in self.find_leaks()]}
        return {k: v for k, v in issues.items() if v}

    def validate_all(self) -> Dict[str, Dict[str, List[str]]]:
        """Run every validation; categories without issues are omitted."""
        results = {}
        count_issues = self.validate_count_integrity()
        if count_issues:
            results["count_integrity"] = count_issues
        reference_issues = self.validate_references()
        if reference_issues:
            results["references"] = reference_issues
        leak_issues = self.validate_leaks()
        if leak_issues:
            results["leaks"] = leak_issues
        return results

    def get_validation_summary(self, validation_results: Dict[str, Dict[str, List[str]]]) -> Dict[str, int]:
        """
        Count the issues in a `validate_all` report.

        Issue keys containing "error" (dangling unowned edges, count
        mismatches) are errors; keys containing "warning" (leaks, cleared weak
        fields) are warnings.

        Args:
            validation_results: Report returned by `validate_all`

        Returns:
            Totals under total_issues, errors, warnings and categories_with_issues
        """
        summary = {"total_issues": 0, "errors": 0, "warnings": 0, "categories_with_issues": 0}
        for issues in validation_results.values():
            counts = {key: len(found) for key, found in issues.items()}
            if not any(counts.values()):
                continue
            summary["categories_with_issues"] += 1
            summary["total_issues"] += sum(counts.values())
            summary["errors"] += sum(n for key, n in counts.items() if "error" in key)
            summary["warnings"] += sum(n for key, n in counts.items() if "warning" in key)
        return summary

    def is_valid(self) -> bool:
        """True when validation reports no errors; leaks are warnings."""
        return self.get_validation_summary(self.validate_all())["errors"] == 0

    # ----- export -----
    def to_networkx(self) -> "nx.MultiDiGraph":
        """
        Convert the graph to a NetworkX MultiDiGraph keyed by field name.

        Deallocated nodes that have not been reclaimed are included with
        ``alive=False``.
        """
        G = nx.MultiDiGraph()
        for node_id, node in self.nodes.items():
            attrs = {
                "label": node.label,
                "kind": node.kind.name,
                "strong_count": node.strong_count,
                "alive": node.alive,
            }
            for k, v in node.meta.items():
                attrs[f"meta_{k}"] = v if isinstance(v, (str, int, float, bool)) else str(v)
            G.add_node(node_id, **attrs)
        for e in self.edges():
            if e.dst not in G:
                G.add_node(e.dst, label=self._label_of(e.dst), kind=NodeKind.OBJECT.name, strong_count=0, alive=False)
            G.add_edge(e.src, e.dst, key=e.name, kind=e.kind.name, field=e.name)
        return G

    def export_graphml(self, filepath: str) -> None:
        nx.write_graphml(self.to_networkx(), filepath)
