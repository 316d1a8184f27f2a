"""
Domain error taxonomy.

Every error the request layer may surface carries its HTTP status and a
stable machine-readable code; main.py renders them as
{"error": {"code": ..., "message": ...}}.
"""
from fastapi import status


class MediaHubError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidTarget(MediaHubError):
    """Target is missing, malformed, or inactive. Client error, not retried."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_target"
    default_message = "Target does not exist or is inactive"


class InvalidRelationKind(InvalidTarget):
    code = "invalid_kind"
    default_message = "Unknown relation kind"


class InvalidActor(MediaHubError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_message = "Unauthorized request"


class NotOwner(MediaHubError):
    # Same answer whether or not the entity exists.
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(MediaHubError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class Conflict(MediaHubError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflict"


class SelfReferenceNotAllowed(MediaHubError):
    status_code = status.HTTP_409_CONFLICT
    code = "self_reference_not_allowed"
    default_message = "A channel cannot subscribe to itself"


class CounterDesyncError(MediaHubError):
    """
    Counter ledger and relation store disagree; needs operator repair.

    Raised when a rollback of this request's relation write failed, or when
    an unlike finds the counter already at zero (drift left by something
    earlier; this request's write has been rolled back).
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "counter_desync"
    default_message = "Counter ledger is out of sync with relations"


class DuplicateRelation(Exception):
    """Raised by the relation store when the uniqueness constraint fires."""


class RetryableExternalError(Exception):
    """Blob storage refused or failed a release; safe to retry later."""

    def __init__(self, handle: str, reason: str) -> None:
        self.handle = handle
        self.reason = reason
        super().__init__(f"release of {handle!r} failed: {reason}")


class InvalidRequest(MediaHubError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"
    default_message = "Invalid request"


class ServiceUnavailable(MediaHubError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "service_unavailable"
    default_message = "A backing service is unavailable"
