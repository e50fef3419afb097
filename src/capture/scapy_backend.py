import logging
from typing import List

from scapy.all import AsyncSniffer, conf, get_if_list
from scapy.error import Scapy_Exception
from scapy.layers.inet import IP
from scapy.layers.inet6 import IPv6
from scapy.layers.l2 import CookedLinux, Ether, Loopback

from models.packet import RawFrame
from .icapture_backend import (
    CaptureConfig,
    CaptureHandle,
    CaptureOpenError,
    ICaptureBackend,
    filter_capture_interfaces,
)
from .packet_decoder import DLT_EN10MB, DLT_LINUX_SLL, DLT_NULL, DLT_RAW

logger = logging.getLogger(__name__)


def _link_type_of(packet) -> int:
    """Map the outermost scapy layer to a libpcap link type."""
    if isinstance(packet, Ether):
        return DLT_EN10MB
    if isinstance(packet, CookedLinux):
        return DLT_LINUX_SLL
    if isinstance(packet, Loopback):
        return DLT_NULL
    if isinstance(packet, (IP, IPv6)):
        return DLT_RAW
    return DLT_EN10MB


class ScapyCaptureHandle(CaptureHandle):
    """Live capture on one interface, driven by a Scapy AsyncSniffer."""

    def __init__(self, config: CaptureConfig, socket):
        super().__init__(config)
        self._socket = socket
        self._sniffer = AsyncSniffer(
            opened_socket=socket,
            prn=self._packet_callback,
            store=False,  # Don't store in Scapy's memory
        )

    def start(self) -> None:
        self._sniffer.start()

    def _packet_callback(self, packet) -> None:
        """Callback for each captured packet (runs on the sniffer thread)."""
        try:
            data = bytes(packet)
            frame = RawFrame(
                timestamp=float(packet.time),
                data=data,
                link_type=_link_type_of(packet),
                wire_length=getattr(packet, "wirelen", None) or len(data),
            )
            self._deliver(frame)
        except Exception:
            logger.exception("Error in packet callback on %s", self.interface)

    def _release(self) -> None:
        try:
            if self._sniffer.running:
                self._sniffer.stop(join=True)
        except Scapy_Exception as e:
            logger.debug("Sniffer on %s already stopped: %s", self.interface, e)
        finally:
            self._socket.close()


class ScapyBackend(ICaptureBackend):
    """Scapy-based capture backend."""

    def list_interfaces(self) -> List[str]:
        return filter_capture_interfaces(get_if_list(), loopback=conf.loopback_name)

    def open(self, config: CaptureConfig) -> ScapyCaptureHandle:
        # Open the socket here so bad interfaces, filters and permissions
        # fail synchronously instead of inside the sniffer thread.
        try:
            socket = conf.L2listen(
                iface=config.interface,
                filter=config.filter or None,
                promisc=config.promisc,
            )
        except Exception as e:
            raise CaptureOpenError(str(e) or e.__class__.__name__) from e

        handle = ScapyCaptureHandle(config, socket)
        try:
            handle.start()
        except Exception as e:
            socket.close()
            raise CaptureOpenError(str(e) or e.__class__.__name__) from e
        logger.info("Scapy sniffer started on %s (filter=%r)", config.interface, config.filter)
        return handle
