"""
Capture session controller.

Owns at most one capture handle. Control operations (start, stop,
detach) are serialized by one lock; packet callbacks take a second lock
that also guards the handle reference, so a callback arriving from a
handle that has since been replaced or closed is recognized and ignored.
Handles are closed outside the packet lock: closing joins the sniffer
thread, which may be waiting on that lock.
"""
import logging
import threading
from enum import Enum
from typing import List, Optional

from analysis.aggregator import TrafficAggregator
from analysis.pipeline import describe_frame
from capture.icapture_backend import CaptureConfig, CaptureHandle, CaptureOpenError, ICaptureBackend
from models.packet import RawFrame

from .messages import error_message, packet_message, scan_started_message, scan_stopped_message
from .observer import Observer

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"


class CaptureSessionController:
    def __init__(self,
                 backend: ICaptureBackend,
                 aggregator: TrafficAggregator,
                 include_raw: bool = False,
                 default_interface: Optional[str] = None):
        self.backend = backend
        self.aggregator = aggregator
        self.include_raw = include_raw
        self._last_interface = default_interface

        self._control_lock = threading.RLock()
        self._packet_lock = threading.RLock()
        self._handle: Optional[CaptureHandle] = None
        self._owner: Optional[Observer] = None
        self._filter = ""

    @property
    def state(self) -> CaptureState:
        return CaptureState.CAPTURING if self._handle is not None else CaptureState.IDLE

    @property
    def owner(self) -> Optional[Observer]:
        return self._owner

    @property
    def interface(self) -> Optional[str]:
        handle = self._handle
        return handle.interface if handle is not None else None

    @property
    def filter(self) -> str:
        return self._filter

    def list_interfaces(self) -> List[str]:
        return self.backend.list_interfaces()

    def start(self, observer: Observer, interface: Optional[str] = None,
              filter_expr: Optional[str] = None) -> bool:
        """
        Replace any running capture with a new one on ``interface``.

        Notifies ``observer`` with scan-started on success or error on
        failure; returns whether a capture is now running.
        """
        filter_expr = filter_expr or ""
        with self._control_lock:
            self._teardown()

            interface = interface or self._default_interface()
            if not interface:
                observer.send(error_message("Failed to start capture: no capture interface available"))
                return False

            try:
                handle = self.backend.open(CaptureConfig(interface=interface, filter=filter_expr))
            except CaptureOpenError as e:
                logger.warning("Capture on %s (filter=%r) failed: %s", interface, filter_expr, e)
                observer.send(error_message(f"Failed to start capture: {e}"))
                return False

            with self._packet_lock:
                self._handle = handle
                self._owner = observer
                self._filter = filter_expr
                self._last_interface = interface
            handle.on_packet(lambda frame: self._on_frame(handle, frame))

            logger.info("Capture started on %s (filter=%r) for %r", interface, filter_expr, observer)
            observer.send(scan_started_message(interface, filter_expr))
            return True

    def stop(self, observer: Observer) -> bool:
        """Close the running capture; no-op (and no notification) when idle."""
        with self._control_lock:
            if not self._teardown():
                return False
        observer.send(scan_stopped_message())
        return True

    def detach(self, observer: Observer) -> bool:
        """Observer went away: stop the capture if it owned it."""
        with self._control_lock:
            if self._owner is None or self._owner.id != observer.id:
                return False
            return self._teardown()

    def close(self) -> bool:
        """Stop any capture regardless of owner (process shutdown)."""
        with self._control_lock:
            return self._teardown()

    def _default_interface(self) -> Optional[str]:
        if self._last_interface:
            return self._last_interface
        try:
            interfaces = self.backend.list_interfaces()
        except Exception as e:
            logger.warning("Interface enumeration failed: %s", e)
            return None
        return interfaces[0] if interfaces else None

    def _teardown(self) -> bool:
        """Release the current handle exactly once. Control lock must be held."""
        with self._packet_lock:
            handle = self._handle
            self._handle = None
            self._owner = None
            self._filter = ""
        if handle is None:
            return False
        handle.close()
        logger.info("Capture on %s stopped", handle.interface)
        return True

    def _on_frame(self, handle: CaptureHandle, frame: RawFrame) -> None:
        with self._packet_lock:
            # Frames queued before a stop/restart belong to a handle we no longer own
            if handle is not self._handle:
                return
            owner = self._owner
            try:
                descriptor = describe_frame(frame, include_raw=self.include_raw)
            except Exception:
                logger.exception("Dropping packet that could not be decoded")
                return
            self.aggregator.record(descriptor)
            if owner is not None:
                owner.send(packet_message(descriptor))
