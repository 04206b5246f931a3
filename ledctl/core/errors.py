"""Domain-specific errors for ledctl."""


class LedctlError(Exception):
    """Base error for ledctl."""


class ProfileValidationError(LedctlError):
    """Raised when a profile file does not conform to schema or semantics."""


class ProfileLoadError(LedctlError):
    """Raised when loading profile sources fails."""


class SettingResolutionError(LedctlError):
    """Raised when a setting or option cannot be found in a profile."""


class MalformedResponseError(LedctlError):
    """Raised when a device response lacks the expected shape or field."""


class RequestFailedError(LedctlError):
    """Raised when a queued request exhausted its retries."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransportError(LedctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when the device cannot be reached."""


class TransportTimeoutError(TransportError):
    """Raised when the device does not answer in time."""


class TransportResponseError(TransportError):
    """Raised on a non-success HTTP status."""

    def __init__(self, message: str, *, status: int) -> None:
        super().__init__(message)
        self.status = status
