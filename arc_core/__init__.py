"""
ARC Core Package.

This package contains a reference-counted object graph simulator used to
illustrate automatic reference counting (ARC), including:

- Core data structures (Graph, Node, Edge, Scope)
- Strong, weak and unowned references with cascade deallocation
- Closure capture modelling (Deferred)
- Leak detection for strong reference cycles
- A YAML scenario compiler and the playground demonstrations

Strong cycles are never collected: the simulator reproduces ARC's blindness
to them on purpose and reports them through `Graph.find_leaks()`.
"""

# ARC Core Package

__version__ = "0.1.0"

from .enums import EdgeKind, NodeKind, EventKind
from .errors import ArcError, UseAfterFree, LeakDetected
from .config import SimulatorConfig
from .events import Initialized, Deallocated, EventLog
from .graph import Graph, Node, Edge, Scope, Present, ABSENT
from .deferred import Deferred, make_deferred, invoke
from .compiler import compile_from_yaml, compile_from_file, compile_from_dict
from .metrics import (
    event_labels,
    deallocation_order,
    allocation_summary,
    leaked_labels,
)
