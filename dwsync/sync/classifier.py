"""Classification of filesystem changes into sync actions."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPAND_DEPTH = 10


class SyncEventKind(str, Enum):
    """Kind of local change."""

    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class SyncEvent:
    """One filesystem change notification."""

    local_path: Path
    kind: SyncEventKind
    is_directory: bool = False


class ActionType(str, Enum):
    """Remote response required for a change."""

    UPLOAD_FILE = "upload_file"
    """Upload a single file"""

    UPLOAD_TREE = "upload_tree"
    """Upload every file below a directory"""

    DELETE_REMOTE = "delete_remote"
    """Delete the remote counterpart of a vanished path"""


@dataclass(frozen=True)
class SyncAction:
    """Action derived from a sync event."""

    action: ActionType
    path: Path


def classify(event: SyncEvent) -> Optional[SyncAction]:
    """Decide how to mirror a change.

    The filesystem is checked at call time; the event's own
    ``kind``/``is_directory`` are not trusted because the path may have
    changed since the notification was emitted.

    Args:
        event: Sync event to classify

    Returns:
        SyncAction for the event's path, or None for paths that are neither
        regular files nor directories (FIFOs, sockets, device nodes)
    """
    path = Path(event.local_path)
    if path.is_dir():
        return SyncAction(ActionType.UPLOAD_TREE, path)
    if path.is_file():
        return SyncAction(ActionType.UPLOAD_FILE, path)
    if path.exists():
        logger.debug(f"Skipping special file: {path}")
        return None
    return SyncAction(ActionType.DELETE_REMOTE, path)


def iter_tree_files(directory: Path, max_depth: int = DEFAULT_EXPAND_DEPTH) -> Iterator[Path]:
    """Yield every file below a directory, hidden ones included.

    Walks with an explicit stack; symlinked directories are not followed.

    Args:
        directory: Directory to walk
        max_depth: Maximum number of directory levels to descend
    """
    stack: list[tuple[Path, int]] = [(Path(directory), 1)]

    while stack:
        current, depth = stack.pop()
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name, reverse=True)
        except (FileNotFoundError, NotADirectoryError):
            # Removed while walking; the deletion gets its own event
            continue
        except PermissionError:
            logger.debug(f"Permission denied: {current}")
            continue

        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                if depth < max_depth:
                    stack.append((entry, depth + 1))
            elif entry.is_file():
                yield entry


def expand(action: SyncAction, max_depth: int = DEFAULT_EXPAND_DEPTH) -> Iterator[SyncAction]:
    """Expand a tree upload into one file upload per contained file.

    Other actions are yielded unchanged.
    """
    if action.action != ActionType.UPLOAD_TREE:
        yield action
        return

    logger.debug(f"Handling directory: {action.path}")
    for file_path in iter_tree_files(action.path, max_depth=max_depth):
        yield SyncAction(ActionType.UPLOAD_FILE, file_path)


_KIND_BY_EVENT_TYPE = {
    EVENT_TYPE_CREATED: SyncEventKind.CREATED,
    EVENT_TYPE_MODIFIED: SyncEventKind.MODIFIED,
    EVENT_TYPE_DELETED: SyncEventKind.REMOVED,
}


def events_from_watchdog(event: FileSystemEvent) -> list[SyncEvent]:
    """Translate a watchdog event into sync events.

    A move becomes a removal of the source plus a creation of the
    destination. Directory modifications are dropped: watchdog emits them
    on the parent whenever a child changes, and the child has its own event.
    Other event types (opened, closed) are ignored.
    """
    src_path = Path(os.fsdecode(event.src_path))

    if event.event_type == EVENT_TYPE_MOVED:
        dest_path = Path(os.fsdecode(event.dest_path))
        return [
            SyncEvent(src_path, SyncEventKind.REMOVED, event.is_directory),
            SyncEvent(dest_path, SyncEventKind.CREATED, event.is_directory),
        ]

    kind = _KIND_BY_EVENT_TYPE.get(event.event_type)
    if kind is None:
        return []
    if kind == SyncEventKind.MODIFIED and event.is_directory:
        return []
    return [SyncEvent(src_path, kind, event.is_directory)]
