"""
Per-host traffic statistics.

Durations are always derived from the two timestamps they span and are
never stored.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Set


@dataclass
class SiteSession:
    """Traffic between one local host and one hostname."""
    site: str
    start_time: datetime
    last_seen: datetime
    data_sent: int = 0
    data_received: int = 0

    @property
    def duration(self) -> float:
        """Seconds between the first and the most recent packet."""
        return (self.last_seen - self.start_time).total_seconds()

    def touch(self, when: datetime) -> None:
        if when > self.last_seen:
            self.last_seen = when

    def to_dict(self) -> Dict[str, Any]:
        return {
            "site": self.site,
            "startTime": self.start_time.isoformat(),
            "lastSeen": self.last_seen.isoformat(),
            "duration": self.duration,
            "dataSent": self.data_sent,
            "dataReceived": self.data_received,
        }


@dataclass
class UserStats:
    """Cumulative counters for one local IP address."""
    ip: str
    first_seen: datetime
    last_seen: datetime
    total_data_sent: int = 0
    total_data_received: int = 0
    visited_sites: Set[str] = field(default_factory=set)
    sessions: Dict[str, SiteSession] = field(default_factory=dict)

    @property
    def session_duration(self) -> float:
        return (self.last_seen - self.first_seen).total_seconds()

    @property
    def total_bytes(self) -> int:
        return self.total_data_sent + self.total_data_received

    def touch(self, when: datetime) -> None:
        if when > self.last_seen:
            self.last_seen = when

    def copy(self) -> "UserStats":
        """Detached copy; mutating the original afterwards does not affect it."""
        return replace(
            self,
            visited_sites=set(self.visited_sites),
            sessions={site: replace(session) for site, session in self.sessions.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        sessions = sorted(
            self.sessions.values(),
            key=lambda s: (-(s.data_sent + s.data_received), s.site),
        )
        return {
            "ip": self.ip,
            "firstSeen": self.first_seen.isoformat(),
            "lastSeen": self.last_seen.isoformat(),
            "sessionDuration": self.session_duration,
            "totalDataSent": self.total_data_sent,
            "totalDataReceived": self.total_data_received,
            "visitedSites": sorted(self.visited_sites),
            "sessions": [session.to_dict() for session in sessions],
        }
