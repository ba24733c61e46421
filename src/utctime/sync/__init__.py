"""Clock-sync status — shared-memory reader, peer-query fallback, monitor."""

from utctime.sync.errors import (
    InvalidSampleError,
    PeerQueryError,
    PeerQueryTimeoutError,
    SegmentUnavailableError,
    StaleSampleError,
    SyncError,
    TornReadError,
)
from utctime.sync.models import SyncSource, SyncStatus
from utctime.sync.peers import (
    NtpqPeerQuery,
    Peer,
    PeerList,
    PeerQuery,
    SystemQuery,
    SystemVariables,
    parse_ntpq_peers,
    parse_ntpq_rv,
)
from utctime.sync.shm import ShmReader, ShmSample, segment_factory
from utctime.sync.status import SyncMonitor

__all__ = [
    "InvalidSampleError",
    "NtpqPeerQuery",
    "Peer",
    "PeerList",
    "PeerQuery",
    "PeerQueryError",
    "PeerQueryTimeoutError",
    "SegmentUnavailableError",
    "ShmReader",
    "ShmSample",
    "StaleSampleError",
    "SyncError",
    "SyncMonitor",
    "SyncSource",
    "SyncStatus",
    "SystemQuery",
    "SystemVariables",
    "TornReadError",
    "parse_ntpq_peers",
    "parse_ntpq_rv",
    "segment_factory",
]
