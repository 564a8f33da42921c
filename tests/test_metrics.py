"""
Unit tests for the metrics helpers.

These tests check event label listings, deallocation order and allocation
summaries against the playground demonstrations.
"""

from arc_core.enums import EdgeKind
from arc_core.graph import Graph
from arc_core.metrics import allocation_summary, deallocation_order, event_labels, leaked_labels
from arc_core.playground import demo_closure_cycle, demo_phone_owner, demo_retain_cycle


class TestEventMetrics:
    """Test metrics computed from event logs."""

    def test_event_labels(self):
        """Test event labels are listed in order."""
        g = Graph()
        with g.scope() as s:
            s.new('John')
        assert event_labels(g.events) == [('Initialized', 'John'), ('Deallocated', 'John')]

    def test_deallocation_order(self):
        """Test the deallocation order of a clean run."""
        g = demo_phone_owner(EdgeKind.WEAK)
        assert deallocation_order(g.events) == ['Tina', 'iPhone 6s Plus']

    def test_deallocation_order_empty_for_cycle(self):
        """Test a retain cycle deallocates nothing."""
        assert deallocation_order(demo_retain_cycle().events) == []


class TestGraphMetrics:
    """Test metrics computed from graphs."""

    def test_allocation_summary_clean(self):
        """Test the summary of a run without leaks."""
        summary = allocation_summary(demo_phone_owner(EdgeKind.WEAK))
        assert summary == {'initialized': 2, 'deallocated': 2, 'live': 0, 'leaked': 0}

    def test_allocation_summary_cycle(self):
        """Test the summary counts leaked instances."""
        summary = allocation_summary(demo_retain_cycle())
        assert summary == {'initialized': 2, 'deallocated': 0, 'live': 2, 'leaked': 2}

    def test_leaked_labels_skip_closures(self):
        """Test leaked labels list instances only."""
        g = demo_closure_cycle(EdgeKind.STRONG)
        assert leaked_labels(g) == ['WWDCGreeting']
        assert len(g.find_leaks()[0].labels) == 2
