"""Error types for the clock-sync status subsystem.

None of these escape :meth:`SyncMonitor.query_status`; they select the next
fallback tier or degrade the result to ``available: false``.
"""


class SyncError(Exception):
    """Base error for clock-sync status failures."""


class SegmentUnavailableError(SyncError):
    """The shared-memory segment is absent, inaccessible, or too small."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Shared-memory segment unavailable" + (f": {detail}" if detail else ""))


class TornReadError(SyncError):
    """Every read attempt observed a concurrent update of the segment."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Inconsistent shared-memory sample after {attempts} attempts")


class StaleSampleError(SyncError):
    """The segment holds a consistent sample that is too old to trust."""

    def __init__(self, age: float, max_age: float) -> None:
        self.age = age
        self.max_age = max_age
        super().__init__(f"Shared-memory sample is {age:.1f}s old (max {max_age:.1f}s)")


class InvalidSampleError(SyncError):
    """The segment's writer has not marked its sample valid."""

    def __init__(self) -> None:
        super().__init__("Shared-memory sample is not marked valid")


class PeerQueryError(SyncError):
    """The peer-status command failed or produced unparsable output."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Peer query failed" + (f": {detail}" if detail else ""))


class PeerQueryTimeoutError(PeerQueryError):
    """The peer-status command did not finish within its timeout."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"timed out after {timeout}s")
