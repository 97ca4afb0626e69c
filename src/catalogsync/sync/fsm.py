"""Loop-prevention state machine for the filter/URL sync controller.

The FSM is purely a transition-legality tool: it has no callbacks and
performs no I/O. SyncController drives it and does the actual work
(encode, write, decode, apply) around each transition.
"""

from __future__ import annotations

from statemachine import State, StateMachine


class SyncStateMachine(StateMachine):
    """Three-state guard for bidirectional filter/URL synchronization.

    States:
        idle              -- Nothing in flight; every address change is external.
        writing_locally   -- A local edit was just written to the URL; the guard
                             window is open and matching echoes are dropped.
        applying_external -- An observed address is being decoded into the store;
                             local edits arriving now are queued.
    """

    idle = State("idle", initial=True, value="idle")
    writing_locally = State("writing_locally", value="writing_locally")
    applying_external = State("applying_external", value="applying_external")

    # A new local edit inside the guard window re-enters writing_locally
    begin_local_write = idle.to(writing_locally) | writing_locally.to.itself()
    guard_elapsed = writing_locally.to(idle)
    abort_local_write = writing_locally.to(idle)
    begin_external_apply = idle.to(applying_external) | writing_locally.to(applying_external)
    finish_external_apply = applying_external.to(idle)


def create_fsm(current_state: str = "idle") -> SyncStateMachine:
    """Create an FSM positioned at *current_state*.

    Args:
        current_state: One of 'idle', 'writing_locally', 'applying_external'.
    """
    return SyncStateMachine(start_value=current_state)
