"""
Capture backend interface.

A backend enumerates capture-capable interfaces and opens capture
handles. A handle delivers RawFrames to a single callback until closed.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from models.packet import RawFrame

# Pseudo-interfaces that never carry host traffic worth classifying
INTERFACE_DENYLIST = frozenset({"any", "lo", "nflog", "nfqueue", "dbus-system", "dbus-session"})

PacketCallback = Callable[[RawFrame], None]


class CaptureOpenError(RuntimeError):
    """Raised when a capture handle cannot be opened (bad interface, permissions, filter)."""


@dataclass(frozen=True)
class CaptureConfig:
    interface: str
    filter: str = ""
    promisc: bool = True


class CaptureHandle(ABC):
    """A single open capture. close() is idempotent."""

    def __init__(self, config: CaptureConfig):
        self.config = config
        self._callback: Optional[PacketCallback] = None
        self._closed = False

    @property
    def interface(self) -> str:
        return self.config.interface

    @property
    def closed(self) -> bool:
        return self._closed

    def on_packet(self, callback: PacketCallback) -> None:
        """Register the callback that receives each captured frame."""
        self._callback = callback

    def _deliver(self, frame: RawFrame) -> None:
        callback = self._callback
        if callback is not None and not self._closed:
            callback(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()

    @abstractmethod
    def _release(self) -> None:
        """Release the underlying capture resources (called once)."""


class ICaptureBackend(ABC):
    @abstractmethod
    def list_interfaces(self) -> List[str]:
        """Names of capture-capable interfaces, loopback and pseudo-interfaces excluded."""

    @abstractmethod
    def open(self, config: CaptureConfig) -> CaptureHandle:
        """Open a capture handle or raise CaptureOpenError."""


def filter_capture_interfaces(names: Iterable[str], loopback: Optional[str] = None) -> List[str]:
    """Drop loopback and denylisted pseudo-interfaces, keeping order and uniqueness."""
    result = []
    for name in names:
        if not name or name in INTERFACE_DENYLIST or name == loopback:
            continue
        if name.startswith("lo") and name[2:].isdigit():
            continue
        if name not in result:
            result.append(name)
    return result
