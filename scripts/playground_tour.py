#!/usr/bin/env python3
"""
ARC Playground Tour

Runs every playground demonstration and prints the lifecycle events the
original print statements in init/deinit would have shown, followed by any
leaked instances.
"""

import logging
import os
import sys

# Add the parent directory to the path so we can import arc_core
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from arc_core import UseAfterFree
from arc_core.playground import DEMOS, demo_unowned_after_free, subscriber_name


def print_graph_report(name, graph):
    print("\n" + "=" * 60)
    print(name.upper().replace("_", " "))
    print("=" * 60)
    for event in graph.events:
        print(f"  {event.describe()}")
    leaks = graph.find_leaks()
    if leaks:
        for leak in leaks:
            print(f"  LEAK: {leak}")
    else:
        print("  No leaks")


def demonstrate_unowned_after_free():
    graph, subscription = demo_unowned_after_free()
    print_graph_report("unowned_after_free", graph)
    try:
        subscriber_name(graph, subscription)
    except UseAfterFree as e:
        print(f"  Fatal error: {e}")
    for scope in graph.open_scopes:
        scope.end()
    print(f"  After outer scope: {graph.events[-1].describe()}")


def main():
    logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(message)s")
    for name, demo in DEMOS.items():
        print_graph_report(name, demo())
    demonstrate_unowned_after_free()
    return 0


if __name__ == "__main__":
    sys.exit(main())
