"""Realtime layer — reconciler, reducer, store, and poll scheduler.

All state changes flow through ``RealtimeStore.dispatch``.  Network work
happens in the scheduler and fetch adapters; their results re-enter the
store as actions.
"""

from assocsync.realtime.scheduler import PollScheduler
from assocsync.realtime.store import RealtimeStore

__all__ = ["PollScheduler", "RealtimeStore"]
