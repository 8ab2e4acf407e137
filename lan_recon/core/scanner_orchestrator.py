"""
Scan coordination for lan_recon.

This module provides the ScanCoordinator class that runs discovery, port
scanning and identification as one background pipeline, reports phased
progress through a queue and hands the final device list back as the last
message on that same queue.
"""

import asyncio
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, List, Optional, Set

from .data_models import Device, ScanPhase, ScanProgress
from .device_classifier import DeviceClassifier
from ..config.config_loader import ScanConfig
from ..scanners.arp_scanner import ARPScanner
from ..scanners.port_scanner import PortScanner
from ..storage.device_store import DeviceStore, persist_devices
from ..utils.error_handler import ErrorHandler, ScanInProgressError
from ..utils.logger import Logger, get_logger


class ProgressTracker:
    """
    Applies progress events in phase order.

    An event whose phase ranks below the last accepted phase is stale and
    dropped. COMPLETE is always accepted since it carries the result. This
    assumes phases never re-enter; a pipeline that legitimately returns to
    an earlier phase would need sequence numbers instead.
    """

    def __init__(self):
        self.last_phase: Optional[ScanPhase] = None
        self.current: Optional[ScanProgress] = None

    def apply(self, event: ScanProgress) -> bool:
        """
        Accept or discard one event.

        Returns:
            True if the event was applied
        """
        if event.phase is not ScanPhase.COMPLETE and self.last_phase is not None:
            if event.phase.ordinal < self.last_phase.ordinal:
                return False

        self.last_phase = event.phase
        self.current = event
        return True


class ScanCoordinator:
    """
    Runs scans in the background and exposes their progress.

    Only one scan may be in flight per coordinator. Each scan gets its own
    unbounded queue, so emitting progress never slows the scan down, and the
    pipeline owns its device list until it posts the COMPLETE event.

    Blocking discovery work (shelling out to arp, ip and ping) runs on a
    dedicated thread pool and never on the event loop.
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        logger: Optional[Logger] = None,
        error_handler: Optional[ErrorHandler] = None,
        discoverer: Optional[ARPScanner] = None,
        port_scanner: Optional[PortScanner] = None,
        classifier: Optional[DeviceClassifier] = None,
        executor: Optional[Executor] = None,
        store: Optional[DeviceStore] = None,
        network_id: Optional[str] = None,
    ):
        """
        Initialize the scan coordinator.

        Args:
            config: Scan configuration (default: ScanConfig())
            logger: Logger instance
            error_handler: ErrorHandler instance
            discoverer: Device discoverer (default: ARPScanner)
            port_scanner: Port scanner (default: PortScanner)
            classifier: Device classifier (default: DeviceClassifier)
            executor: Pool for blocking discovery calls (default: one thread)
            store: Store receiving completed scans, if any
            network_id: Network identifier passed to the store
        """
        self.config = config or ScanConfig()
        self.logger = logger or get_logger("ScanCoordinator")
        self.error_handler = error_handler or ErrorHandler(self.logger)

        self.discoverer = discoverer or ARPScanner(
            self.config.discovery, self.logger, self.error_handler
        )
        self.port_scanner = port_scanner or PortScanner(
            self.config.port_scan, self.logger, self.error_handler
        )
        self.classifier = classifier or DeviceClassifier()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="lan-recon-discovery"
        )
        self.store = store
        self.network_id = network_id

        # Scan state
        self._queue: Optional[asyncio.Queue] = None
        self._tracker = ProgressTracker()
        self._tasks: Set[asyncio.Task] = set()
        self.was_cancelled = False
        self.last_result: Optional[List[Device]] = None

    @property
    def is_scanning(self) -> bool:
        return self._queue is not None

    @property
    def progress(self) -> Optional[ScanProgress]:
        """Most recently accepted progress snapshot of the current scan."""
        return self._tracker.current if self.is_scanning else None

    def start_scan(self, active_sweep: bool = False) -> asyncio.Queue:
        """
        Launch a scan on the running event loop.

        Args:
            active_sweep: Ping the local subnet before reading the ARP table

        Returns:
            The queue the scan reports into

        Raises:
            ScanInProgressError: If a scan is already running
        """
        if self.is_scanning:
            raise ScanInProgressError("A device scan is already in progress")

        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue
        self._tracker = ProgressTracker()
        self.was_cancelled = False
        self.last_result = None

        task = asyncio.get_running_loop().create_task(self._run_pipeline(queue, active_sweep))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        self.logger.info("Device scan started", active_sweep=active_sweep)
        return queue

    async def _run_pipeline(self, queue: asyncio.Queue, active_sweep: bool) -> None:
        emit = queue.put_nowait

        try:
            emit(ScanProgress(phase=ScanPhase.DISCOVERY, devices_found=0))
            loop = asyncio.get_running_loop()
            devices = await loop.run_in_executor(
                self._executor, self.discoverer.discover, active_sweep
            )
            emit(ScanProgress(phase=ScanPhase.DISCOVERY, devices_found=len(devices)))

            await self.port_scanner.scan_ports(devices, progress=emit)

            emit(ScanProgress(phase=ScanPhase.IDENTIFICATION, devices_found=len(devices)))
            self.classifier.identify_all(devices)
        except Exception as e:
            self.logger.error("Device scan failed", exception=e)
            emit(ScanProgress.failed(e))
            return

        emit(ScanProgress.complete(devices))

    def check_progress(self) -> Optional[List[Device]]:
        """
        Drain pending progress events without waiting.

        Meant to be called on every tick of a UI loop.

        Returns:
            The device list once the scan has completed, otherwise None

        Raises:
            DiscoveryError: If the scan failed during discovery, or whatever
                other error ended the pipeline
        """
        queue = self._queue
        if queue is None:
            return None

        while True:
            try:
                event = queue.get_nowait()
            except asyncio.QueueEmpty:
                return None

            devices = self._handle_event(event)
            if devices is not None:
                return devices

    async def run_scan(
        self,
        active_sweep: bool = False,
        on_progress: Optional[Callable[[ScanProgress], None]] = None,
    ) -> Optional[List[Device]]:
        """
        Run a complete scan and wait for its result.

        Args:
            active_sweep: Ping the local subnet before reading the ARP table
            on_progress: Called with every accepted progress event

        Returns:
            Identified devices, or None if the scan was cancelled

        Raises:
            ScanInProgressError: If a scan is already running
            DiscoveryError: If neither OS table could be read
        """
        queue = self.start_scan(active_sweep)

        while True:
            event = await queue.get()
            if self._queue is not queue:
                return None

            accepted = self._tracker.current
            devices = self._handle_event(event)
            if on_progress is not None and self._tracker.current is not accepted:
                on_progress(event)
            if devices is not None:
                return devices

    def _handle_event(self, event: ScanProgress) -> Optional[List[Device]]:
        if not self._tracker.apply(event):
            self.logger.debug(f"Discarded stale progress event ({event.phase.label})")
            return None

        if event.phase is not ScanPhase.COMPLETE:
            return None

        self._queue = None
        if event.error is not None:
            raise event.error

        devices = list(event.result or ())
        self.last_result = devices
        self.logger.success(f"Found {len(devices)} devices")

        if self.store is not None:
            try:
                persist_devices(self.store, devices, self.network_id, self.logger, self.error_handler)
            except Exception as e:
                # The scan itself succeeded; its result is still returned
                self.logger.error("Saving scan results failed", exception=e)
        return devices

    def cancel(self) -> None:
        """
        Stop listening to the current scan.

        The pipeline keeps running until its own timeouts expire, but its
        progress and result are discarded. A run_scan waiting on it returns
        None at once, and a new scan may start immediately.
        """
        if not self.is_scanning:
            return

        queue = self._queue
        self._queue = None
        # Wakes a run_scan blocked on this queue
        queue.put_nowait(None)
        self._tracker = ProgressTracker()
        self.was_cancelled = True
        self.logger.info("Device scan cancelled")

    def close(self) -> None:
        """Release the discovery thread pool if this coordinator created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=False)
