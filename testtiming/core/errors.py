"""testtiming exception hierarchy.

Each failure class the pipeline distinguishes has its own type, so the
composition root can decide what is fatal while components stay testable.
"""


class TestTimingError(Exception):
    """Base exception for all testtiming failures."""

    __test__ = False


class RemoteServiceError(TestTimingError):
    """Raised when a remote service call fails or returns a non-2xx reply."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


class ResponseFormatError(TestTimingError):
    """Raised when a remote service replies with an undecodable payload."""


class InvariantViolationError(TestTimingError):
    """Raised when a build contradicts what was requested of the service.

    Signals an unexpected upstream protocol change. Never retried or absorbed.
    """

    def __init__(self, message: str, build_url: str = ""):
        super().__init__(f"{message} {build_url}".rstrip())
        self.build_url = build_url
