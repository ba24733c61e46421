"""Error types for the time service."""


class TimeServiceError(Exception):
    """Base error for time lookup and formatting failures."""


class TimezoneError(TimeServiceError):
    """The timezone name is not a known IANA zone."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid timezone: {name}")


class FormatError(TimeServiceError):
    """The strftime format string contains an unsupported directive."""

    def __init__(self, spec: str, detail: str = "") -> None:
        self.spec = spec
        self.detail = detail
        super().__init__(f"Invalid format string: {spec!r}" + (f" ({detail})" if detail else ""))
