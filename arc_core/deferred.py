"""
Closure capture model.

A `Deferred` stands for a closure such as a ``lazy var`` initializer that
refers back to an instance. The closure is a silent CLOSURE node in the graph
whose ``self`` field captures the instance strongly, weakly or unowned. Storing
the deferred value in a field of the instance it captures strongly forms the
classic closure retain cycle; a weak or unowned capture breaks it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .enums import EdgeKind, NodeKind
from .errors import UseAfterFree
from .graph import Graph, Node, NodeRef

CAPTURE_FIELD = "self"

_NO_FALLBACK = object()


@dataclass(eq=False)
class Deferred:
    """
    A deferred computation bound to a captured node.

    Attributes:
        graph: Graph the closure lives in
        node: CLOSURE node carrying the capture edge
        capture: How the closure captures its target
        compute_fn: Called with the captured node (or None for a lost weak capture)
        fallback: Result returned when a weak capture is gone, if given
        lazy: Cache the first computed result
    """

    graph: Graph
    node: Node
    capture: EdgeKind
    compute_fn: Callable[[Optional[Node]], Any]
    fallback: Any = _NO_FALLBACK
    lazy: bool = False
    _cached: Any = field(default=_NO_FALLBACK, repr=False)

    @property
    def evaluated(self) -> bool:
        return self._cached is not _NO_FALLBACK

    def __call__(self) -> Any:
        return invoke(self)


def make_deferred(
    graph: Graph,
    capture_kind: EdgeKind,
    target: NodeRef,
    compute_fn: Callable[[Optional[Node]], Any],
    fallback: Any = _NO_FALLBACK,
    lazy: bool = False,
    label: str | None = None,
) -> Deferred:
    """
    Create a closure capturing `target` with `capture_kind`.

    The returned value is not retained by anything yet. Store it in a field
    with `graph.add_strong_edge(owner, name, deferred)` or bind it to a scope
    local, otherwise it stays alive with a zero count like any fresh node.

    Args:
        graph: Graph that owns the target
        capture_kind: STRONG, WEAK or UNOWNED capture of `target`
        target: Node the closure refers to as ``self``
        compute_fn: Function receiving the captured node
        fallback: Value returned instead of calling `compute_fn` when a weak
            capture is gone
        lazy: Memoize the first result, like a ``lazy var``
        label: Name of the closure node; defaults to ``closure(<target>)``

    Returns:
        The deferred computation
    """
    target_node = graph._live(target)
    closure = graph.create_node(
        label or f"closure({target_node.label})",
        kind=NodeKind.CLOSURE,
        meta={"capture": capture_kind.name},
    )
    graph.add_edge(closure, CAPTURE_FIELD, target_node, capture_kind)
    return Deferred(graph, closure, capture_kind, compute_fn, fallback=fallback, lazy=lazy)


def invoke(deferred: Deferred) -> Any:
    """
    Run a deferred computation.

    A weak capture whose target has been deallocated returns the deferred's
    fallback when one was given and otherwise calls ``compute_fn(None)``.

    Raises:
        UseAfterFree: The closure itself was deallocated, or an unowned capture
            outlived its target
    """
    if not deferred.node.alive:
        raise UseAfterFree(deferred.node.label)
    if deferred.lazy and deferred.evaluated:
        return deferred._cached

    ref = deferred.graph.read_edge(deferred.node, CAPTURE_FIELD)
    if deferred.capture is EdgeKind.WEAK:
        if not ref:
            if deferred.fallback is not _NO_FALLBACK:
                return deferred.fallback
            target = None
        else:
            target = ref.node
    else:
        target = ref

    result = deferred.compute_fn(target)
    if deferred.lazy:
        deferred._cached = result
    return result
