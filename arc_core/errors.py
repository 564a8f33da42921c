"""
Error types raised by the ARC simulator.
"""

from __future__ import annotations

from typing import List, Sequence


class ArcError(Exception):
    """Base class for simulator errors."""


class UseAfterFree(ArcError):
    """
    Raised when a deallocated node is accessed.

    This is the simulated equivalent of force unwrapping a nil optional: an
    unowned reference was read after its target went away, or a handle to a
    dead node was used directly.
    """

    def __init__(self, label: str, field: str | None = None):
        self.label = label
        self.field = field
        if field is None:
            msg = f"Attempted to access deallocated instance '{label}'"
        else:
            msg = f"Attempted to read unowned reference '{field}' to deallocated instance '{label}'"
        super().__init__(msg)


class LeakDetected(ArcError):
    """
    Diagnostic describing a set of nodes kept alive only by each other.

    Instances are returned by `Graph.find_leaks()` and only raised by
    `Graph.assert_no_leaks()`.

    Attributes:
        labels: Labels of the leaked nodes in creation order
        node_ids: Ids of the leaked nodes in creation order
        cycles: Strong cycles found among the leaked nodes, as label paths
    """

    def __init__(
        self,
        labels: Sequence[str],
        node_ids: Sequence[int],
        cycles: Sequence[Sequence[str]] = (),
    ):
        self.labels: List[str] = list(labels)
        self.node_ids: List[int] = list(node_ids)
        self.cycles: List[List[str]] = [list(c) for c in cycles]
        described = "; ".join(" -> ".join(c + c[:1]) for c in self.cycles)
        msg = f"Leaked {len(self.labels)} instance(s): {', '.join(self.labels)}"
        if described:
            msg += f" (strong cycles: {described})"
        super().__init__(msg)
