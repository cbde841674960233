"""Exception hierarchy for procsnap."""


class ProcsnapError(Exception):
    """Base class for all procsnap errors."""


class MalformedRecord(ProcsnapError, ValueError):
    """A process record does not match the kernel stat layout."""


class ProcessVanished(ProcsnapError):
    """A process exited between discovery and read."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        message = f"process vanished: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class EnrichmentUnavailable(ProcsnapError):
    """One auxiliary per-process lookup failed."""

    def __init__(self, pid: int, field: str, reason: str = "") -> None:
        self.pid = pid
        self.field = field
        self.reason = reason
        super().__init__(f"{field} unavailable for pid {pid}: {reason}")


class DiscoveryFailed(ProcsnapError):
    """The process table could not be enumerated at all."""


class ScanCancelled(ProcsnapError):
    """A scan was abandoned because its cancel event was set."""
