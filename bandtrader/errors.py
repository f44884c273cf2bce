"""BandTrader — error taxonomy.

Degenerate inputs (zero range, zero ATR, zero middle band) are not errors:
guarded functions simply return ``None`` / ``False``.
"""


class DataUnavailableError(LookupError):
    """A bar or indicator value needed for a decision is not available."""


class SizingError(ValueError):
    """Position size could not be computed (non-positive equity, stop or value)."""


class GatewayRejectedError(RuntimeError):
    """The execution gateway refused or did not fill a request."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
