"""Watch loop mirroring local changes to the remote code version."""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..exceptions import NoCartridgesError, WatcherError
from ..output import OutputFormatter
from .cartridges import CartridgeIndex, CartridgeRegistry
from .classifier import (
    ActionType,
    SyncEvent,
    classify,
    events_from_watchdog,
    expand,
)
from .dispatcher import RemoteSyncDispatcher
from .resolver import PathResolver

logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    """Lifecycle state of the watch loop."""

    STOPPED = "stopped"
    WATCHING = "watching"


class _ChangeHandler(FileSystemEventHandler):
    """Forwards watchdog notifications to the watcher."""

    def __init__(self, watcher: "CartridgeWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        for sync_event in events_from_watchdog(event):
            self.watcher.handle_event(sync_event)


class CartridgeWatcher:
    """Watches a project root and syncs every change to its cartridge.

    Notifications are handled in arrival order on the observer thread;
    the resulting network operations run on the dispatcher's pool.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        registry: CartridgeRegistry,
        dispatcher: RemoteSyncDispatcher,
        resolver: Optional[PathResolver] = None,
        output: Optional[OutputFormatter] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """Initialize the watcher.

        Args:
            project_root: Directory to watch recursively
            registry: Holder of the current cartridge index
            dispatcher: Dispatcher for remote operations
            resolver: Path resolver (first-match by default)
            output: Output formatter for status lines
            observer_factory: Creates the watchdog observer
        """
        self.project_root = Path(project_root).absolute()
        self.registry = registry
        self.dispatcher = dispatcher
        self.resolver = resolver or PathResolver()
        self.output = output or OutputFormatter()
        self.observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> WatcherState:
        if self._observer is None:
            return WatcherState.STOPPED
        return WatcherState.WATCHING

    def start(self) -> bool:
        """Start watching the project root.

        Returns:
            True if the watcher was started, False if it was already running

        Raises:
            NoCartridgesError: If the project has no cartridges
            WatcherError: If the filesystem subscription cannot be started
        """
        with self._lock:
            if self._observer is not None:
                logger.info("Watcher is already running")
                self.output.warning("Watcher is already running")
                return False

            index = self.registry.current

            observer = self.observer_factory()
            try:
                observer.schedule(
                    _ChangeHandler(self), str(self.project_root), recursive=True
                )
                observer.start()
            except OSError as e:
                raise WatcherError(
                    f"Cannot watch {self.project_root}: {e}"
                ) from e

            self._observer = observer

        logger.info(f"Watching {self.project_root} ({len(index)} cartridge(s))")
        self.output.info(f"Watching {self.project_root}")
        return True

    def stop(self) -> bool:
        """Stop watching. In-flight remote operations are not cancelled.

        Returns:
            True if the watcher was stopped, False if it was not running
        """
        with self._lock:
            observer = self._observer
            if observer is None:
                return False
            self._observer = None

        observer.stop()
        observer.join()
        logger.info("Watcher stopped")
        self.output.info("Watcher stopped")
        return True

    def refresh_cartridges(self) -> CartridgeIndex:
        """Rescan the project and replace the cartridge index.

        Raises:
            NoCartridgesError: If the rescan finds no cartridge
        """
        return self.registry.refresh()

    def handle_event(self, event: SyncEvent) -> int:
        """Mirror one change to the remote side.

        Errors are logged and swallowed so that one bad event never stops
        the watch loop.

        Returns:
            Number of remote operations dispatched
        """
        logger.debug(f"File changed ({event.kind.value}): {event.local_path}")
        try:
            return self._process(event)
        except NoCartridgesError as e:
            self.output.error(str(e))
        except OSError as e:
            logger.warning(f"Error handling {event.local_path}: {e}")
            self.output.error(f"Error handling {event.local_path}: {e}")
        return 0

    def _process(self, event: SyncEvent) -> int:
        index = self.registry.current
        action = classify(event)
        if action is None:
            return 0
        dispatched = 0

        for item in expand(action):
            resolution = self.resolver.resolve(item.path, index)
            if resolution is None:
                logger.debug(f"No matching cartridge found for: {item.path}")
                continue

            if item.action == ActionType.DELETE_REMOTE:
                self.dispatcher.delete(resolution.remote_suffix)
            else:
                self.dispatcher.upload(
                    item.path, resolution.remote_suffix, resolution.cartridge
                )
            dispatched += 1

        return dispatched
