"""
Metrics utilities for ARC simulations.

This module provides small helpers to summarize what a run did:
- Event label sequences and deallocation order
- Allocation/deallocation counts per label
- Labels of leaked instances
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from .enums import EventKind, NodeKind
from .events import Event
from .graph import Graph


def event_labels(events: Iterable[Event]) -> List[Tuple[str, str]]:
    """Return events as ``(type_name, label)`` tuples, in order."""
    return [(type(e).__name__, e.label) for e in events]


def deallocation_order(events: Iterable[Event]) -> List[str]:
    """Return the labels of deallocated instances in the order they went away."""
    return [e.label for e in events if e.kind is EventKind.DEALLOCATED]


def allocation_summary(graph: Graph) -> Dict[str, int]:
    """
    Summarize allocations for a graph.

    Returns:
        dict with keys: initialized, deallocated, live, leaked
    """
    initialized = len(graph.events.of_kind(EventKind.INITIALIZED))
    deallocated = len(graph.events.of_kind(EventKind.DEALLOCATED))
    leaked = sum(len(leak.labels) for leak in graph.find_leaks())
    return {
        "initialized": initialized,
        "deallocated": deallocated,
        "live": len(graph.live_nodes(NodeKind.OBJECT)),
        "leaked": leaked,
    }


def leaked_labels(graph: Graph) -> List[str]:
    """Return labels of leaked OBJECT nodes; closure nodes are not reported."""
    labels = []
    for leak in graph.find_leaks():
        for node_id, label in zip(leak.node_ids, leak.labels):
            if graph.node(node_id).kind is NodeKind.OBJECT:
                labels.append(label)
    return labels
