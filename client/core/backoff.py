from __future__ import annotations


class ReconnectBackoff:
    """Doubling reconnect delay: base * 2**failures, capped at `maximum`."""

    def __init__(self, base: float = 0.5, maximum: float = 10.0) -> None:
        self.base = base
        self.maximum = maximum
        self.failures = 0

    @property
    def delay(self) -> float:
        # cap the exponent too so long outages cannot overflow
        return min(self.base * (2 ** min(self.failures, 32)), self.maximum)

    def record_failure(self) -> float:
        """Return the delay to wait now, then double it for next time."""
        current = self.delay
        self.failures += 1
        return current

    def reset(self) -> None:
        self.failures = 0
