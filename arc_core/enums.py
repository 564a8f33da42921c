"""
Core enumerations for the ARC object graph simulator.

This module defines the reference kinds, node kinds and lifecycle event kinds
used throughout the simulator.
"""

from enum import Enum, auto


class EdgeKind(Enum):
    """
    Ownership semantics of a reference from one node to another.

    - STRONG: keeps its target alive and counts toward its strong count
    - WEAK: observes the target and reads as absent once it is deallocated
    - UNOWNED: assumes the target outlives it; reading a dead target is fatal
    """

    STRONG = auto()
    """Owning reference; retains the target."""

    WEAK = auto()
    """Non-owning reference that degrades to absent on deallocation."""

    UNOWNED = auto()
    """Non-owning reference that must not outlive its target."""


class NodeKind(Enum):
    """
    Kinds of nodes stored in the graph.

    Only OBJECT nodes take part in the lifecycle event log. SCOPE nodes are the
    roots holding local variables, CLOSURE nodes back deferred computations.
    """

    OBJECT = auto()
    SCOPE = auto()
    CLOSURE = auto()


class EventKind(Enum):
    """Lifecycle events emitted for OBJECT nodes."""

    INITIALIZED = auto()
    DEALLOCATED = auto()
