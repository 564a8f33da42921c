"""
The ARC playground classes expressed on the simulator.

`User`, `Phone`, `CarrierSubscription` and `WWDCGreeting` become OBJECT nodes
whose stored properties are graph fields:

- User.phones / User.subscriptions: strong, one field per element (``phones.0``)
- Phone.owner: weak (strong reproduces the retain cycle)
- Phone.carrier_subscription: weak
- CarrierSubscription.user: unowned
- WWDCGreeting.greeting: strong field holding a lazy closure that captures
  the greeting itself

The ``demo_*`` functions replay the playground's scoped demonstrations and
return the graph so the event log and leaks can be inspected.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Tuple

from .deferred import Deferred, invoke, make_deferred
from .enums import EdgeKind
from .graph import Graph, Node, Scope


def _next_index(node: Node, prefix: str) -> int:
    """One past the highest element index in use, so dropped slots are never reused."""
    used = [int(name.rsplit(".", 1)[1]) for name in node.fields if name.startswith(prefix + ".")]
    return max(used, default=-1) + 1


def make_user(scope: Scope, name: str, var: str | None = None) -> Node:
    return scope.new(name, name=var or f"user_{name.lower()}", meta={"type": "User", "name": name})


def make_phone(scope: Scope, model: str, var: str | None = None) -> Node:
    return scope.new(model, name=var or "phone", meta={"type": "Phone", "model": model})


def add_phone(graph: Graph, user: Node, phone: Node, owner_kind: EdgeKind = EdgeKind.WEAK) -> None:
    """
    Append `phone` to the user's phones and set the phone's owner.

    This is the only way phones are attached, which keeps the owner field
    consistent with the phones list. Pass ``owner_kind=EdgeKind.STRONG`` to
    reproduce the retain cycle.
    """
    graph.add_strong_edge(user, f"phones.{_next_index(user, 'phones')}", phone)
    graph.add_edge(phone, "owner", user, owner_kind)


def user_phones(graph: Graph, user: Node) -> List[Node]:
    return [graph.read_edge(user, name) for name in user.fields if name.startswith("phones.")]


def phone_owner(graph: Graph, phone: Node) -> Node | None:
    """The phone's owner, or None when the weak owner is gone or was never set."""
    if "owner" not in phone.fields:
        return None
    ref = graph.read_edge(phone, "owner")
    if phone.fields["owner"].kind is EdgeKind.WEAK:
        return ref.node if ref else None
    return ref


def subscribe(graph: Graph, user: Node, phone: Node, country_code: str, number: str) -> Node:
    """
    Create a carrier subscription owned by `user` and provision it on `phone`.

    The subscription refers back to its user through an unowned reference: a
    subscription cannot exist without a user.

    Raises:
        UseAfterFree: `user` or `phone` is already deallocated; nothing is created
    """
    graph._live(user)
    graph._live(phone)
    sub = graph.create_node(
        f"CarrierSubscription {country_code} {number}",
        meta={"type": "CarrierSubscription", "country_code": country_code, "number": number},
    )
    graph.add_strong_edge(user, f"subscriptions.{_next_index(user, 'subscriptions')}", sub)
    graph.add_unowned_edge(sub, "user", user)
    graph.add_weak_edge(phone, "carrier_subscription", sub)
    return sub


def complete_phone_number(subscription: Node) -> str:
    return f"{subscription.meta['country_code']} {subscription.meta['number']}"


def subscriber_name(graph: Graph, subscription: Node) -> str:
    """Read the subscriber through the unowned reference; fatal if the user is gone."""
    return graph.read_edge(subscription, "user").meta["name"]


def make_greeting(
    scope: Scope, who: str, capture: EdgeKind = EdgeKind.STRONG
) -> Tuple[Node, Deferred]:
    """
    Create a WWDCGreeting whose lazy ``greeting`` property captures `self`.

    With a strong capture the greeting and its closure keep each other alive.
    """
    graph = scope.graph
    greeting = scope.new("WWDCGreeting", name="greeting", meta={"type": "WWDCGreeting", "who": who})
    lazy_greeting = make_deferred(
        graph,
        capture,
        greeting,
        lambda node: f"Hello {node.meta['who']}." if node is not None else "Hello.",
        lazy=True,
        label="WWDCGreeting.greeting",
    )
    graph.add_strong_edge(greeting, "greeting", lazy_greeting)
    return greeting, lazy_greeting


# ----- demonstrations -----
def demo_scope_release(graph: Graph | None = None) -> Graph:
    g = graph or Graph()
    with g.scope("do") as s:
        make_user(s, "John", var="user1")
    return g


def demo_phone_owner(owner_kind: EdgeKind = EdgeKind.WEAK, graph: Graph | None = None) -> Graph:
    g = graph or Graph()
    with g.scope("do") as s:
        user = make_user(s, "Tina", var="user2")
        phone = make_phone(s, "iPhone 6s Plus", var="iPhone")
        add_phone(g, user, phone, owner_kind=owner_kind)
    return g


def demo_retain_cycle(graph: Graph | None = None) -> Graph:
    return demo_phone_owner(EdgeKind.STRONG, graph)


def demo_carrier_subscription(graph: Graph | None = None) -> Graph:
    g = graph or Graph()
    with g.scope("do") as s:
        user = make_user(s, "Ray", var="user")
        phone = make_phone(s, "iPhone Xs", var="iPhone")
        add_phone(g, user, phone)
        subscribe(g, user, phone, "0032", "31415926")
    return g


def demo_unowned_after_free(graph: Graph | None = None) -> Tuple[Graph, Node]:
    """
    Keep a subscription alive past its user.

    Returns the graph and the subscription; reading its ``user`` field raises
    `UseAfterFree` and the subscription stays held by an open outer scope.
    """
    g = graph or Graph()
    outer = g.open_scope("outer")
    with g.scope("do") as s:
        user = make_user(s, "Ray", var="user")
        phone = make_phone(s, "iPhone Xs", var="iPhone")
        sub = subscribe(g, user, phone, "0032", "31415926")
        outer.bind("subscription", sub)
    return g, sub


def demo_closure_cycle(capture: EdgeKind = EdgeKind.STRONG, graph: Graph | None = None) -> Graph:
    g = graph or Graph()
    with g.scope("do") as s:
        _, lazy_greeting = make_greeting(s, "Tim", capture=capture)
        invoke(lazy_greeting)
    return g


DEMOS: Dict[str, Callable[[], Graph]] = {
    "scope_release": demo_scope_release,
    "phone_owner_weak": demo_phone_owner,
    "phone_owner_cycle": demo_retain_cycle,
    "carrier_subscription": demo_carrier_subscription,
    "closure_cycle": demo_closure_cycle,
    "closure_weak": lambda: demo_closure_cycle(EdgeKind.WEAK),
    "closure_unowned": lambda: demo_closure_cycle(EdgeKind.UNOWNED),
}
