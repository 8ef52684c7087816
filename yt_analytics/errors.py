from __future__ import annotations


class AnalyticsSnapshotError(Exception):
    pass


class ConfigurationError(AnalyticsSnapshotError):
    pass


class UpstreamHttpError(AnalyticsSnapshotError):
    def __init__(self, message: str, *, status_code: int | None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ResponseShapeError(AnalyticsSnapshotError):
    pass
