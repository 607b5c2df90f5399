"""
Error taxonomy for feature-service queries.

InvalidSpecError fails fast before any network call. TransportError is raised
once the retry policy is exhausted. RemoteServiceError and
MalformedResponseError describe a single dataset's failure and are attached to
that dataset's (partial) result rather than aborting sibling queries.
"""

from typing import Optional


class FeatureQueryError(Exception):
    """Base class for every error raised by the proximity engine."""


class InvalidSpecError(FeatureQueryError):
    pass


class TransportError(FeatureQueryError):
    def __init__(self, message: str, status: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status = status
        self.url = url


class RemoteServiceError(FeatureQueryError):
    """The service answered with a JSON ``error`` object."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code

    @classmethod
    def from_payload(cls, payload) -> "RemoteServiceError":
        if isinstance(payload, dict):
            return cls(str(payload.get("message") or "Unknown service error"), payload.get("code"))
        return cls(str(payload))


class MalformedResponseError(FeatureQueryError):
    pass
