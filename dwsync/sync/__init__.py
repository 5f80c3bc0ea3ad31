"""Cartridge-aware sync engine: discovery, resolution, dispatch, watching."""

from .cartridges import (
    CARTRIDGE_NATURE,
    MARKER_FILE_NAME,
    Cartridge,
    CartridgeIndex,
    CartridgeRegistry,
    discover,
    is_cartridge,
)
from .classifier import (
    ActionType,
    SyncAction,
    SyncEvent,
    SyncEventKind,
    classify,
    events_from_watchdog,
    expand,
    iter_tree_files,
)
from .dispatcher import OperationResult, RemoteOperation, RemoteSyncDispatcher
from .resolver import MatchStrategy, PathResolver, Resolution
from .watcher import CartridgeWatcher, WatcherState

__all__ = [
    "CARTRIDGE_NATURE",
    "MARKER_FILE_NAME",
    "Cartridge",
    "CartridgeIndex",
    "CartridgeRegistry",
    "discover",
    "is_cartridge",
    "ActionType",
    "SyncAction",
    "SyncEvent",
    "SyncEventKind",
    "classify",
    "events_from_watchdog",
    "expand",
    "iter_tree_files",
    "OperationResult",
    "RemoteOperation",
    "RemoteSyncDispatcher",
    "MatchStrategy",
    "PathResolver",
    "Resolution",
    "CartridgeWatcher",
    "WatcherState",
]
