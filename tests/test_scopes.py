"""
Tests for scope release semantics: locals are released at the end of the
scope, in reverse order of acquisition, before any following code runs.
"""

import pytest

from arc_core.enums import EdgeKind
from arc_core.errors import UseAfterFree
from arc_core.events import Deallocated, Initialized
from arc_core.graph import ABSENT, Graph


def dealloc_labels(g):
    return [label for kind, label in g.events.pairs() if kind == 'Deallocated']


class TestScopeRelease:
    """Test release of scope locals."""

    def test_single_local_is_released_at_scope_end(self):
        """Test a single local is deallocated when the scope ends."""
        g = Graph()
        with g.scope('S') as s:
            john = s.new('John')
            assert g.events == [Initialized('John')]
        # effects are visible to the very next statement
        assert g.events == [Initialized('John'), Deallocated('John')]
        assert not john.alive

    def test_locals_released_in_reverse_order(self):
        """Test locals are released in reverse order of acquisition."""
        g = Graph()
        with g.scope() as s:
            s.new('A')
            s.new('B')
            s.new('C')
        assert dealloc_labels(g) == ['C', 'B', 'A']

    def test_rebinding_keeps_original_position(self):
        """Test rebinding a local keeps its original release position."""
        g = Graph()
        with g.scope() as s:
            s.new('A', name='x')
            s.new('B', name='y')
            s.new('C', name='x')
            assert s.locals() == ['x', 'y']
            assert dealloc_labels(g) == ['A']
        assert dealloc_labels(g) == ['A', 'B', 'C']

    def test_release_local_early(self):
        """Test a local can be released before the scope ends."""
        g = Graph()
        with g.scope() as s:
            a = s.new('A', name='a')
            s.release('a')
            assert not a.alive
            assert s.locals() == []

    def test_weak_local_does_not_retain(self):
        """Test a weak local does not keep its target alive."""
        g = Graph()
        with g.scope() as s:
            a = s.new('A', name='a')
            s.bind('w', a, kind=EdgeKind.WEAK)
            assert a.strong_count == 1
            assert s.read('w').node is a
            s.release('a')
            assert s.read('w') is ABSENT

    def test_scope_released_on_exception(self):
        """Test a scope still releases its locals when an exception escapes."""
        g = Graph()
        with pytest.raises(RuntimeError):
            with g.scope() as s:
                s.new('A')
                raise RuntimeError('boom')
        assert dealloc_labels(g) == ['A']

    def test_end_scope_twice_is_noop(self):
        """Test ending a scope twice does nothing the second time."""
        g = Graph()
        s = g.open_scope('S')
        s.new('A')
        g.end_scope(s)
        g.end_scope(s)
        assert dealloc_labels(g) == ['A']
        assert s.ended

    def test_binding_into_ended_scope_raises(self):
        """Test an ended scope rejects new bindings."""
        g = Graph()
        with g.scope() as s:
            pass
        node = g.create_node('Late')
        with pytest.raises(UseAfterFree):
            s.bind('late', node)


class TestNestedScopes:
    """Test nested scopes."""

    def test_inner_scope_ends_first(self):
        """Test an inner scope releases before its outer scope."""
        g = Graph()
        with g.scope('outer') as outer:
            a = outer.new('A')
            with g.scope('inner') as inner:
                inner.new('B')
                assert inner.parent is outer
            assert dealloc_labels(g) == ['B']
            assert a.alive
        assert dealloc_labels(g) == ['B', 'A']

    def test_ending_outer_scope_unwinds_inner_scopes(self):
        """Test ending an outer scope ends its open inner scopes first."""
        g = Graph()
        outer = g.open_scope('outer')
        inner = g.open_scope('inner')
        outer.new('A')
        inner.new('B')

        g.end_scope(outer)

        assert inner.ended
        assert dealloc_labels(g) == ['B', 'A']
        assert g.open_scopes == []

    def test_foreign_scope_rejected(self):
        """Test a scope from another graph is rejected."""
        g1 = Graph()
        g2 = Graph()
        with g2.scope() as s:
            with pytest.raises(ValueError):
                g1.create_node('A', scope=s)

    def test_scopes_are_not_reported_as_objects(self):
        """Test scope roots never show up as instances."""
        g = Graph()
        with g.scope() as s:
            s.new('A')
            assert [n.label for n in g.live_nodes()] == ['A']
