"""Tests for the watch loop."""

import os
import shutil
from unittest.mock import Mock

import pytest
from watchdog.events import FileCreatedEvent, FileMovedEvent

from dwsync.exceptions import NoCartridgesError, WatcherError
from dwsync.output import OutputFormatter
from dwsync.sync.cartridges import CartridgeRegistry
from dwsync.sync.classifier import SyncEvent, SyncEventKind
from dwsync.sync.dispatcher import RemoteSyncDispatcher
from dwsync.sync.resolver import MatchStrategy, PathResolver
from dwsync.sync.watcher import CartridgeWatcher, WatcherState, _ChangeHandler

from .helpers import make_cartridge, write_file


class TestHandleEvent:
    """Tests for the classify/resolve/dispatch pipeline."""

    @pytest.fixture
    def project(self, tmp_path):
        """Create a project with one cartridge."""
        make_cartridge(tmp_path, "cartridge_a")
        return tmp_path

    @pytest.fixture
    def mock_dispatcher(self):
        """Create a mock dispatcher."""
        return Mock(spec=RemoteSyncDispatcher)

    @pytest.fixture
    def watcher(self, project, mock_dispatcher):
        """Create a watcher without starting it."""
        return CartridgeWatcher(
            project,
            CartridgeRegistry(project),
            mock_dispatcher,
            output=Mock(spec=OutputFormatter),
        )

    def test_created_file_is_uploaded(self, project, watcher, mock_dispatcher):
        """Test that a new file is uploaded to its cartridge path."""
        init_js = write_file(project / "cartridge_a" / "scripts" / "init.js")

        count = watcher.handle_event(SyncEvent(init_js, SyncEventKind.CREATED))

        assert count == 1
        cartridge = watcher.registry.current.cartridges[0]
        mock_dispatcher.upload.assert_called_once_with(
            init_js, "cartridge_a/scripts/init.js", cartridge
        )
        mock_dispatcher.delete.assert_not_called()

    def test_deleted_directory_is_deleted_remotely(
        self, project, watcher, mock_dispatcher
    ):
        """Test that a removed directory resolves from the event path alone."""
        scripts = project / "cartridge_a" / "scripts"
        write_file(scripts / "init.js")
        shutil.rmtree(scripts)

        count = watcher.handle_event(
            SyncEvent(scripts, SyncEventKind.REMOVED, is_directory=True)
        )

        assert count == 1
        mock_dispatcher.delete.assert_called_once_with("cartridge_a/scripts")
        mock_dispatcher.upload.assert_not_called()

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="requires mkfifo")
    def test_special_file_is_ignored(self, project, watcher, mock_dispatcher):
        """Test that a FIFO inside a cartridge dispatches nothing."""
        pipe = project / "cartridge_a" / "pipe"
        os.mkfifo(pipe)

        count = watcher.handle_event(SyncEvent(pipe, SyncEventKind.CREATED))

        assert count == 0
        mock_dispatcher.upload.assert_not_called()
        mock_dispatcher.delete.assert_not_called()

    def test_created_directory_fans_out(self, project, watcher, mock_dispatcher):
        """Test that a new directory uploads every file inside it."""
        models = project / "cartridge_a" / "scripts" / "models"
        write_file(models / "product.js")
        write_file(models / ".eslintrc")
        write_file(models / "nested" / "price.js")

        count = watcher.handle_event(
            SyncEvent(models, SyncEventKind.CREATED, is_directory=True)
        )

        assert count == 3
        suffixes = {c.args[1] for c in mock_dispatcher.upload.call_args_list}
        assert suffixes == {
            "cartridge_a/scripts/models/product.js",
            "cartridge_a/scripts/models/.eslintrc",
            "cartridge_a/scripts/models/nested/price.js",
        }

    def test_file_outside_cartridges_is_dropped(
        self, project, watcher, mock_dispatcher
    ):
        """Test that project files outside cartridges are ignored."""
        package_json = write_file(project / "package.json")

        count = watcher.handle_event(SyncEvent(package_json, SyncEventKind.MODIFIED))

        assert count == 0
        mock_dispatcher.upload.assert_not_called()
        mock_dispatcher.delete.assert_not_called()

    def test_longest_prefix_resolver(self, tmp_path, mock_dispatcher):
        """Test that the watcher uses the configured resolver."""
        make_cartridge(tmp_path, "foo")
        make_cartridge(tmp_path, "foobar")
        watcher = CartridgeWatcher(
            tmp_path,
            CartridgeRegistry(tmp_path),
            mock_dispatcher,
            resolver=PathResolver(MatchStrategy.LONGEST_PREFIX),
            output=Mock(spec=OutputFormatter),
        )
        x_js = write_file(tmp_path / "foobar" / "x.js")

        watcher.handle_event(SyncEvent(x_js, SyncEventKind.MODIFIED))

        args = mock_dispatcher.upload.call_args.args
        assert args[1] == "foobar/x.js"
        assert args[2].name == "foobar"

    def test_no_cartridges_is_reported(self, tmp_path, mock_dispatcher):
        """Test that a project without cartridges dispatches nothing."""
        output = Mock(spec=OutputFormatter)
        watcher = CartridgeWatcher(
            tmp_path, CartridgeRegistry(tmp_path), mock_dispatcher, output=output
        )

        count = watcher.handle_event(
            SyncEvent(write_file(tmp_path / "a.js"), SyncEventKind.CREATED)
        )

        assert count == 0
        output.error.assert_called_once()

    def test_refresh_picks_up_new_cartridge(self, project, watcher, mock_dispatcher):
        """Test that events after a refresh resolve against the new index."""
        watcher.registry.current
        make_cartridge(project, "cartridge_b")
        x_js = write_file(project / "cartridge_b" / "x.js")

        assert watcher.handle_event(SyncEvent(x_js, SyncEventKind.CREATED)) == 0

        watcher.refresh_cartridges()
        assert watcher.handle_event(SyncEvent(x_js, SyncEventKind.CREATED)) == 1
        assert mock_dispatcher.upload.call_args.args[1] == "cartridge_b/x.js"

    def test_change_handler_forwards_moves(self, tmp_path):
        """Test that a watchdog move reaches the watcher as two events."""
        watcher = Mock(spec=CartridgeWatcher)
        handler = _ChangeHandler(watcher)

        handler.dispatch(FileMovedEvent(str(tmp_path / "a.js"), str(tmp_path / "b.js")))

        kinds = [c.args[0].kind for c in watcher.handle_event.call_args_list]
        assert kinds == [SyncEventKind.REMOVED, SyncEventKind.CREATED]

    def test_change_handler_forwards_creation(self, tmp_path):
        """Test that a watchdog creation is forwarded."""
        watcher = Mock(spec=CartridgeWatcher)
        handler = _ChangeHandler(watcher)

        handler.dispatch(FileCreatedEvent(str(tmp_path / "a.js")))

        watcher.handle_event.assert_called_once_with(
            SyncEvent(tmp_path / "a.js", SyncEventKind.CREATED, False)
        )


class TestWatcherLifecycle:
    """Tests for starting and stopping the watcher."""

    @pytest.fixture
    def project(self, tmp_path):
        """Create a project with one cartridge."""
        make_cartridge(tmp_path, "cartridge_a")
        return tmp_path

    @pytest.fixture
    def mock_observer(self):
        """Create a mock watchdog observer."""
        return Mock()

    @pytest.fixture
    def watcher(self, project, mock_observer):
        """Create a watcher using the mock observer."""
        return CartridgeWatcher(
            project,
            CartridgeRegistry(project),
            Mock(spec=RemoteSyncDispatcher),
            output=Mock(spec=OutputFormatter),
            observer_factory=lambda: mock_observer,
        )

    def test_initial_state(self, watcher):
        """Test that a new watcher is stopped."""
        assert watcher.state == WatcherState.STOPPED

    def test_start_schedules_recursive_watch(self, watcher, mock_observer, project):
        """Test that start subscribes to the project root recursively."""
        assert watcher.start() is True

        assert watcher.state == WatcherState.WATCHING
        args, kwargs = mock_observer.schedule.call_args
        assert args[1] == str(project)
        assert kwargs == {"recursive": True}
        mock_observer.start.assert_called_once()

    def test_second_start_is_noop(self, project, mock_observer):
        """Test that starting twice keeps a single subscription."""
        factory = Mock(return_value=mock_observer)
        watcher = CartridgeWatcher(
            project,
            CartridgeRegistry(project),
            Mock(spec=RemoteSyncDispatcher),
            output=Mock(spec=OutputFormatter),
            observer_factory=factory,
        )

        assert watcher.start() is True
        assert watcher.start() is False

        factory.assert_called_once()
        mock_observer.start.assert_called_once()

    def test_stop(self, watcher, mock_observer):
        """Test that stop tears down the subscription."""
        watcher.start()

        assert watcher.stop() is True

        assert watcher.state == WatcherState.STOPPED
        mock_observer.stop.assert_called_once()
        mock_observer.join.assert_called_once()

    def test_stop_when_stopped_is_noop(self, watcher, mock_observer):
        """Test that stopping a stopped watcher does nothing."""
        assert watcher.stop() is False
        mock_observer.stop.assert_not_called()

    def test_stop_does_not_cancel_dispatches(self, watcher):
        """Test that in-flight operations are left alone."""
        watcher.start()
        watcher.stop()

        watcher.dispatcher.shutdown.assert_not_called()

    def test_restart_after_stop(self, watcher, mock_observer):
        """Test that a stopped watcher can be started again."""
        watcher.start()
        watcher.stop()

        assert watcher.start() is True
        assert mock_observer.start.call_count == 2

    def test_start_failure_raises(self, watcher, mock_observer):
        """Test that a failing subscription is fatal."""
        mock_observer.start.side_effect = OSError("inotify watch limit reached")

        with pytest.raises(WatcherError, match="inotify watch limit"):
            watcher.start()

        assert watcher.state == WatcherState.STOPPED

    def test_start_without_cartridges(self, tmp_path, mock_observer):
        """Test that an empty project cannot be watched."""
        watcher = CartridgeWatcher(
            tmp_path,
            CartridgeRegistry(tmp_path),
            Mock(spec=RemoteSyncDispatcher),
            output=Mock(spec=OutputFormatter),
            observer_factory=lambda: mock_observer,
        )

        with pytest.raises(NoCartridgesError):
            watcher.start()

        mock_observer.schedule.assert_not_called()
        assert watcher.state == WatcherState.STOPPED
