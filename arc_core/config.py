"""
Configuration objects for the ARC simulator.

Exposes the knobs controlling event recording, logging and the strictness of
unowned reference binding, so experiments do not need to edit core logic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass


@dataclass
class SimulatorConfig:
    """
    Configuration for `Graph` behavior.

    Defaults reproduce the observable behavior of the ARC playground: every
    lifecycle event is recorded and unowned references may only be bound to
    live instances.
    """

    # Event recording
    record_events: bool = True
    max_event_history: int | None = None

    # Level used when logging Initialized/Deallocated events
    event_log_level: int = logging.DEBUG

    # Binding an unowned reference to an already deallocated target raises
    # UseAfterFree instead of recording a dangling edge.
    strict_unowned_binding: bool = True

    # Drop deallocated nodes from the store once each release cascade finishes.
    # Weak fields that pointed at them still read as absent; unowned reads and
    # later access through their handles raise UseAfterFree.
    reclaim_on_release: bool = False
