"""Transport errors."""


class TransportIOError(Exception):
    """Reading from or writing to a channel failed; fatal to that channel only."""

    def __init__(self, channel: str, detail: str = "") -> None:
        self.channel = channel
        self.detail = detail
        super().__init__(f"{channel} transport I/O error" + (f": {detail}" if detail else ""))
