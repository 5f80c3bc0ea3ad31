"""Dispatch of remote upload/delete/clean operations."""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..api import WebDAVClient
from ..exceptions import DwSyncError
from ..output import OutputFormatter
from .cartridges import Cartridge
from .classifier import iter_tree_files

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class RemoteOperation:
    """One network call against the code version."""

    method: str
    """``PUT``, ``DELETE`` or ``GET``"""

    remote_path: str
    """Path below the code version directory"""

    payload: Optional[Path] = None
    """Local file sent as request body (uploads only)"""


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a remote operation."""

    operation: RemoteOperation
    ok: bool
    detail: str


class RemoteSyncDispatcher:
    """Runs remote operations on a bounded worker pool.

    Every call returns immediately with a Future; operations for different
    (or identical) paths complete in any order. Failures are reported and
    returned as results, never raised to the caller, and never retried.
    """

    def __init__(
        self,
        client: WebDAVClient,
        output: Optional[OutputFormatter] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        collect_results: bool = False,
    ):
        """Initialize the dispatcher.

        Args:
            client: WebDAV client bound to the session's connection config
            output: Output formatter for status lines
            max_workers: Maximum number of operations in flight
            collect_results: Keep results for retrieval through :meth:`wait`
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.output = output or OutputFormatter()
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._cancelled = False
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        self._idle = threading.Condition(self._lock)
        self.collect_results = collect_results
        self._results: list[OperationResult] = []
        self.stats = {
            "uploads": 0,
            "deletes": 0,
            "cleans": 0,
            "failures": 0,
            "cancelled": 0,
        }

    def _get_executor(self) -> Optional[ThreadPoolExecutor]:
        """Return the worker pool, or None once queued work was cancelled."""
        with self._lock:
            if self._cancelled:
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="dwsync"
                )
            return self._executor

    def _call(
        self,
        operation: RemoteOperation,
        call: Callable[[], object],
        success_message: str,
        failure_message: str,
    ) -> "Future[OperationResult]":
        """Submit a client call and turn its outcome into a result."""

        def run() -> OperationResult:
            start = time.time()
            try:
                call()
            except DwSyncError as e:
                logger.debug(
                    f"Failed {operation.method} {operation.remote_path} "
                    f"in {time.time() - start:.2f}s"
                )
                return OperationResult(operation, False, f"{failure_message}\n{e}")
            logger.debug(
                f"Completed {operation.method} {operation.remote_path} "
                f"in {time.time() - start:.2f}s"
            )
            return OperationResult(operation, True, success_message)

        return self._submit(run)

    def _submit(self, run: Callable[[], OperationResult]) -> "Future[OperationResult]":
        executor = self._get_executor()
        future: Optional["Future[OperationResult]"] = None
        if executor is not None:
            try:
                future = executor.submit(run)
            except RuntimeError:
                # Pool was shut down between lookup and submit
                future = None
        if future is None:
            future = Future()
            future.cancel()
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: "Future[OperationResult]") -> None:
        result: Optional[OperationResult] = None
        cancelled = future.cancelled()
        try:
            if not cancelled:
                result = self._result_of(future)
                self._report(result)
        finally:
            # Runs even when reporting fails, e.g. on a closed stdout pipe
            with self._lock:
                if cancelled:
                    self.stats["cancelled"] += 1
                else:
                    self._record(result)
                if result is not None and self.collect_results:
                    self._results.append(result)
                self._pending.discard(future)
                if not self._pending:
                    self._idle.notify_all()

    def _result_of(self, future: "Future[OperationResult]") -> Optional[OperationResult]:
        try:
            return future.result()
        except Exception as e:
            logger.exception("Unexpected error in remote operation")
            self.output.error(f"Unexpected error in remote operation: {e}")
            return None

    def _report(self, result: Optional[OperationResult]) -> None:
        if result is None:
            return
        if result.ok:
            logger.info(result.detail)
            self.output.success(result.detail)
        else:
            logger.warning(result.detail)
            self.output.error(result.detail)

    def _record(self, result: Optional[OperationResult]) -> None:
        """Update statistics. Caller holds the lock."""
        if result is None or not result.ok:
            self.stats["failures"] += 1
        elif result.operation.method == "PUT":
            self.stats["uploads"] += 1
        elif result.operation.method == "DELETE":
            if result.operation.remote_path.endswith("/"):
                self.stats["cleans"] += 1
            else:
                self.stats["deletes"] += 1

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def upload(
        self,
        local_file: Path,
        remote_suffix: str,
        cartridge: Optional[Cartridge] = None,
    ) -> "Future[OperationResult]":
        """Upload a local file to ``<code version>/<remote_suffix>``.

        Args:
            local_file: File to send
            remote_suffix: ``<cartridge name>/<path within cartridge>``
            cartridge: Owning cartridge, for diagnostics
        """
        if cartridge is not None:
            logger.debug(f"Uploading {local_file} (cartridge {cartridge.name})")
        operation = RemoteOperation("PUT", remote_suffix, Path(local_file))
        return self._call(
            operation,
            lambda: self.client.put_file(Path(local_file), remote_suffix),
            f"Uploaded: {remote_suffix}",
            f"Failed to upload: {remote_suffix}",
        )

    def delete(self, remote_suffix: str) -> "Future[OperationResult]":
        """Delete ``<code version>/<remote_suffix>`` (file or directory)."""
        operation = RemoteOperation("DELETE", remote_suffix)
        return self._call(
            operation,
            lambda: self.client.delete(remote_suffix),
            f"Deleted: {remote_suffix}",
            f"Failed to delete: {remote_suffix}",
        )

    def clean_cartridge(self, cartridge_name: str) -> "Future[OperationResult]":
        """Recursively delete a whole remote cartridge directory."""
        operation = RemoteOperation("DELETE", f"{cartridge_name}/")
        return self._call(
            operation,
            lambda: self.client.delete(cartridge_name, directory=True),
            f"Cleaned: {cartridge_name}",
            f"Failed to clean project: {cartridge_name}",
        )

    def upload_cartridge(self, cartridge: Cartridge) -> list["Future[OperationResult]"]:
        """Upload every file of a cartridge.

        Returns:
            One future per file
        """
        self.output.info(f"Uploading cartridge: {cartridge.name}")
        futures = []
        for file_path in iter_tree_files(cartridge.root_path):
            relative_path = file_path.relative_to(cartridge.root_path).as_posix()
            futures.append(
                self.upload(file_path, f"{cartridge.name}/{relative_path}", cartridge)
            )
        return futures

    def clean_remote_cartridges(self) -> "Future[OperationResult]":
        """List the cartridges deployed remotely and clean each of them.

        The clean operations are dispatched from the listing task and show up
        in :meth:`wait`.
        """
        operation = RemoteOperation("GET", "")
        found: list[str] = []

        def list_and_clean() -> None:
            cartridges = self.client.list_cartridges()
            if not cartridges:
                raise DwSyncError("No cartridges in directory listing")
            found.extend(cartridges)
            for name in cartridges:
                self.clean_cartridge(name)

        def run() -> OperationResult:
            try:
                list_and_clean()
            except DwSyncError as e:
                return OperationResult(
                    operation, False, f"Failed to get cartridges list: {e}"
                )
            return OperationResult(
                operation, True, f"Cartridges found: {', '.join(found)}"
            )

        return self._submit(run)

    def wait(self, timeout: Optional[float] = None) -> list[OperationResult]:
        """Block until every pending operation has finished.

        Operations dispatched while waiting (e.g. cleans spawned by a
        listing) are waited for as well.

        Args:
            timeout: Maximum number of seconds to wait

        Returns:
            Results collected since the previous call (only when the
            dispatcher was created with ``collect_results=True``)

        Raises:
            TimeoutError: If operations are still pending after ``timeout``
        """
        with self._idle:
            if not self._idle.wait_for(lambda: not self._pending, timeout=timeout):
                raise TimeoutError(
                    f"{len(self._pending)} remote operation(s) still pending"
                )
            results = self._results
            self._results = []
        return results

    def shutdown(self, wait: bool = True) -> None:
        """Release the worker pool.

        Args:
            wait: Wait for in-flight operations to finish first. When False,
                queued operations are cancelled (only those already running
                complete) and later submissions are cancelled immediately.
        """
        if wait:
            self.wait()
        with self._lock:
            executor = self._executor
            self._executor = None
            if not wait:
                self._cancelled = True
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=not wait)
