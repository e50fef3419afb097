"""
Transport-independent control service.

Owns the single aggregator, the capture controller and the snapshot
publisher for the process, tracks connected observers and dispatches
inbound control messages. Transports (see server.app) only translate
connect/disconnect/message events into calls on TrafficEngine.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from analysis.aggregator import TrafficAggregator
from capture.icapture_backend import ICaptureBackend
from utils.net import LocalNetworks

from .config import ServerConfig
from .controller import CaptureSessionController
from .messages import (
    CLEAR_STATS,
    GET_INTERFACES,
    START_SCAN,
    STOP_SCAN,
    ControlMessage,
    Message,
    MessageError,
    error_message,
    interfaces_message,
    parse_control_message,
    stats_cleared_message,
)
from .observer import Observer
from .publisher import SnapshotPublisher

logger = logging.getLogger(__name__)


class TrafficEngine:
    def __init__(self, backend: ICaptureBackend, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.aggregator = TrafficAggregator(
            local_networks=LocalNetworks(self.config.local_networks),
            max_hosts=self.config.max_hosts,
            max_sessions_per_host=self.config.max_sessions_per_host,
        )
        self.controller = CaptureSessionController(
            backend,
            self.aggregator,
            include_raw=self.config.include_raw,
            default_interface=self.config.default_interface,
        )
        self.publisher = SnapshotPublisher(self.aggregator, self.broadcast, self.config.snapshot_interval)

        self._observers: Dict[str, Observer] = {}
        self._lock = threading.RLock()
        self._handlers: Dict[str, Callable[[Observer, ControlMessage], None]] = {
            GET_INTERFACES: self._handle_get_interfaces,
            START_SCAN: self._handle_start_scan,
            STOP_SCAN: self._handle_stop_scan,
            CLEAR_STATS: self._handle_clear_stats,
        }

    # ---------- observers ----------

    def connect(self, observer: Observer) -> None:
        with self._lock:
            self._observers[observer.id] = observer
        logger.info("Observer %s connected (%d total)", observer.id, len(self._observers))
        self._send_interfaces(observer)

    def disconnect(self, observer_id: str) -> None:
        with self._lock:
            observer = self._observers.pop(observer_id, None)
        if observer is None:
            return
        if self.controller.detach(observer):
            logger.info("Capture stopped: owner %s disconnected", observer_id)
        logger.info("Observer %s disconnected", observer_id)

    def observer(self, observer_id: str) -> Optional[Observer]:
        with self._lock:
            return self._observers.get(observer_id)

    @property
    def observers(self) -> List[Observer]:
        with self._lock:
            return list(self._observers.values())

    def broadcast(self, message: Message) -> None:
        for observer in self.observers:
            try:
                observer.send(message)
            except Exception:
                logger.exception("Failed to deliver %s to %s", message.get("type"), observer.id)

    # ---------- control messages ----------

    def handle_message(self, observer: Observer, data: Any) -> None:
        """Act on one inbound message; failures become error notifications."""
        try:
            message = parse_control_message(data)
        except MessageError as e:
            logger.warning("Rejected message from %s: %s", observer.id, e)
            observer.send(error_message(str(e)))
            return
        self._handlers[message.type](observer, message)

    def _handle_get_interfaces(self, observer: Observer, message: ControlMessage) -> None:
        self._send_interfaces(observer)

    def _handle_start_scan(self, observer: Observer, message: ControlMessage) -> None:
        self.controller.start(observer, message.interface, message.filter)

    def _handle_stop_scan(self, observer: Observer, message: ControlMessage) -> None:
        self.controller.stop(observer)

    def _handle_clear_stats(self, observer: Observer, message: ControlMessage) -> None:
        self.aggregator.clear()
        logger.info("Statistics cleared by %s", observer.id)
        observer.send(stats_cleared_message())

    def _send_interfaces(self, observer: Observer) -> None:
        try:
            names = self.controller.list_interfaces()
        except Exception as e:
            logger.exception("Interface enumeration failed")
            observer.send(error_message(f"Failed to list interfaces: {e}"))
            return
        observer.send(interfaces_message(names))

    # ---------- lifecycle ----------

    def start(self) -> None:
        self.publisher.start()

    def shutdown(self) -> None:
        self.publisher.stop(timeout=self.config.snapshot_interval)
        self.controller.close()
