"""
Exception taxonomy for the RTSM flows.

Only mandatory-state failures are raised.  Optional / transient UI
(popups, spinners, table readiness) reports status instead.
"""


class RtsmError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(RtsmError, ValueError):
    """Required configuration is missing or malformed. Raised before any flow starts."""


class FlowError(RtsmError, RuntimeError):
    """A mandatory element of a flow never appeared."""


class LoginError(FlowError):
    pass


class CookieError(FlowError):
    pass


class RetryError(FlowError):
    """All attempts of a retried operation failed."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error
