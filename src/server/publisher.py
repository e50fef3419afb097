"""
Snapshot publisher.

Broadcasts the aggregator state on a fixed period, independent of the
packet rate. Packets folded between two ticks show up in the next one.
"""
import logging
import threading
from typing import Callable, Optional

from analysis.aggregator import TrafficAggregator

from .messages import Message, user_stats_message

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


class SnapshotPublisher:
    def __init__(self,
                 aggregator: TrafficAggregator,
                 broadcast: Callable[[Message], None],
                 interval: float = DEFAULT_INTERVAL):
        if interval <= 0:
            raise ValueError(f"Snapshot interval must be > 0, got {interval}")
        self.aggregator = aggregator
        self.broadcast = broadcast
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> Message:
        """Take one snapshot and push it to every observer."""
        message = user_stats_message(self.aggregator.snapshot())
        logger.debug("Publishing stats for %d hosts", len(message["data"]))
        self.broadcast(message)
        return message

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="snapshot-publisher", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Snapshot broadcast failed")
