"""Loop-free synchronization between FilterStore and the address bar."""

from catalogsync.sync.controller import SyncController
from catalogsync.sync.fsm import SyncStateMachine, create_fsm

__all__ = ["SyncController", "SyncStateMachine", "create_fsm"]
