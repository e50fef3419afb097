"""
Traffic aggregator.

Folds packet descriptors into per-local-host counters and per-host,
per-hostname sessions. ``record`` is the only mutator; ``snapshot``
returns detached copies; ``clear`` swaps in an empty table in one step.

All three take the same lock, so packet callbacks, control requests and
the snapshot timer never observe a half-applied update.
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.descriptor import PacketDescriptor
from models.stats import SiteSession, UserStats
from utils.net import LocalNetworks, bare_ip

DEFAULT_MAX_HOSTS = 4096
DEFAULT_MAX_SESSIONS_PER_HOST = 512


class TrafficAggregator:
    """
    Cumulative traffic per local IP.

    Args:
        local_networks: decides which addresses are local hosts
        max_hosts: hosts kept before the least recently updated is evicted (None = unbounded)
        max_sessions_per_host: same bound for each host's sessions; visited_sites is
            never trimmed by it and only goes away with its host
    """

    def __init__(self,
                 local_networks: Optional[LocalNetworks] = None,
                 max_hosts: Optional[int] = DEFAULT_MAX_HOSTS,
                 max_sessions_per_host: Optional[int] = DEFAULT_MAX_SESSIONS_PER_HOST):
        for name, bound in (("max_hosts", max_hosts), ("max_sessions_per_host", max_sessions_per_host)):
            if bound is not None and bound < 1:
                raise ValueError(f"{name} must be >= 1 or None, got {bound}")
        self.local_networks = local_networks or LocalNetworks()
        self.max_hosts = max_hosts
        self.max_sessions_per_host = max_sessions_per_host
        self._hosts: "OrderedDict[str, UserStats]" = OrderedDict()
        self._lock = threading.RLock()

    def record(self, descriptor: PacketDescriptor) -> None:
        """Fold one descriptor into the sender's and receiver's stats."""
        src_ip = bare_ip(descriptor.source)
        dst_ip = bare_ip(descriptor.destination)
        now = descriptor.timestamp
        size = descriptor.size
        site = descriptor.hostname

        with self._lock:
            if self.local_networks.is_local(src_ip):
                stats = self._host(src_ip, now)
                stats.total_data_sent += size
                if site:
                    stats.visited_sites.add(site)
                    self._session(stats, site, now).data_sent += size

            # Independent of the sender: both ends may be local
            if self.local_networks.is_local(dst_ip):
                stats = self._host(dst_ip, now)
                stats.total_data_received += size
                if site:
                    self._session(stats, site, now).data_received += size

    def snapshot(self) -> List[UserStats]:
        """Detached copies ordered by total traffic, busiest first."""
        with self._lock:
            copies = [stats.copy() for stats in self._hosts.values()]
        copies.sort(key=lambda s: (-s.total_bytes, s.ip))
        return copies

    def snapshot_dicts(self) -> List[Dict[str, Any]]:
        return [stats.to_dict() for stats in self.snapshot()]

    def clear(self) -> None:
        with self._lock:
            self._hosts = OrderedDict()

    def get(self, ip: str) -> Optional[UserStats]:
        with self._lock:
            stats = self._hosts.get(ip)
            return stats.copy() if stats is not None else None

    @property
    def host_count(self) -> int:
        with self._lock:
            return len(self._hosts)

    # ---------- internals (lock held) ----------

    def _host(self, ip: str, now: datetime) -> UserStats:
        stats = self._hosts.get(ip)
        if stats is None:
            stats = UserStats(ip=ip, first_seen=now, last_seen=now)
            self._hosts[ip] = stats
            if self.max_hosts is not None:
                while len(self._hosts) > self.max_hosts:
                    self._hosts.popitem(last=False)
        else:
            stats.touch(now)
            self._hosts.move_to_end(ip)
        return stats

    def _session(self, stats: UserStats, site: str, now: datetime) -> SiteSession:
        session = stats.sessions.pop(site, None)
        if session is None:
            session = SiteSession(site=site, start_time=now, last_seen=now)
        else:
            session.touch(now)
        # Re-insert so dict order tracks recency
        stats.sessions[site] = session
        if self.max_sessions_per_host is not None:
            while len(stats.sessions) > self.max_sessions_per_host:
                del stats.sessions[next(iter(stats.sessions))]
        return session
