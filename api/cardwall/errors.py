"""Error taxonomy for interaction operations.

Services raise these; the API maps them to HTTP responses with a stable
``kind`` and ``code`` so clients can branch without parsing messages.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CardwallError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "error"
    code = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.message, "kind": self.kind, "code": self.code}


# ============================================================================
# NOT FOUND
# ============================================================================


class NotFound(CardwallError):
    kind = "not_found"
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


# ============================================================================
# VALIDATION
# ============================================================================


class ValidationError(CardwallError):
    kind = "validation_error"
    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class SelfFollow(ValidationError):
    code = "self_follow"
    default_message = "You cannot follow yourself"


# ============================================================================
# AUTHORIZATION
# ============================================================================


class Forbidden(CardwallError):
    kind = "forbidden"
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to do this"


# ============================================================================
# CONFLICTS (action repeated against existing state)
# ============================================================================


class Conflict(CardwallError):
    kind = "conflict"
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class AlreadyLiked(Conflict):
    code = "already_liked"
    default_message = "You have already liked this item"


class AlreadyFollowing(Conflict):
    code = "already_following"
    default_message = "You are already following this user"


class AlreadySaved(Conflict):
    code = "already_saved"
    default_message = "Post already saved"


class DuplicateReport(Conflict):
    code = "duplicate_report"
    default_message = "You already reported this item"


class DuplicateEntity(Conflict):
    code = "duplicate_entity"
    default_message = "An entity with this name already exists"


# ============================================================================
# STATE ERRORS (action requested against absent state)
# ============================================================================


class StateError(CardwallError):
    kind = "state_error"
    code = "state_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid state for this action"


class NotLiked(StateError):
    code = "not_liked"
    default_message = "You have not liked this item"


class NotFollowing(StateError):
    code = "not_following"
    default_message = "You are not following this user"


class NotSaved(StateError):
    code = "not_saved"
    default_message = "Post not found in saved list"


# ============================================================================
# RETRYABLE
# ============================================================================


class Unavailable(CardwallError):
    """A store or image-store step failed; the operation can be retried."""

    kind = "unavailable"
    code = "unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Temporarily unavailable, please retry"


def register_error_handlers(app: FastAPI) -> None:
    """Render CardwallError subclasses as JSON problem bodies."""

    @app.exception_handler(CardwallError)
    async def handle_cardwall_error(request: Request, exc: CardwallError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
        headers = {"Retry-After": "1"} if isinstance(exc, Unavailable) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
