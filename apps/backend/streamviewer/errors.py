from __future__ import annotations


class ViewerError(Exception):
    """Base class for failures the control API turns into a JSON error body."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(ViewerError):
    status_code = 404


class ValidationError(ViewerError):
    status_code = 400


class PersistenceError(ViewerError):
    status_code = 500


class InternalError(ViewerError):
    status_code = 500


class UpstreamError(ViewerError):
    status_code = 500


class UpstreamUnreachable(UpstreamError):
    pass


class DiscoveryFailed(UpstreamError):
    def __init__(self, http_status: int) -> None:
        super().__init__(f"Failed to discover cameras: HTTP {http_status}")
        self.http_status = http_status


class DiscoveryUnreachable(UpstreamUnreachable):
    pass
