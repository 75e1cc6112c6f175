"""Error handling utilities and custom exceptions."""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger


class ChatError(Exception):
    """Base class for failures raised by chat data-access operations."""

    pass


class InvalidArgumentError(ChatError):
    """A required identifying argument (such as ``user_id``) is missing."""


class ValidationError(ChatError):
    """A record attribute failed a domain constraint at write time."""


class NotFoundError(ChatError):
    """The referenced chat or message is absent or not owned by the caller."""


class ConflictError(ChatError):
    """A record with the same primary key already exists."""


class ConditionFailedError(Exception):
    """Raised by storage backends when a conditional write is rejected."""


class UnprocessedItemsError(Exception):
    """Raised when a batch write still has unprocessed items after its re-sends."""


_STATUS_CODES: dict[type[ChatError], int] = {
    InvalidArgumentError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    ValidationError: 422,
}


def status_code_for(exc: ChatError) -> int:
    """Return the HTTP status code matching a chat error kind."""
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 500


async def http_exception_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Convert a ChatError into a JSON error response."""
    code = status_code_for(exc)
    if code >= 500:
        logger.error("ChatError occurred: {}", exc)
    else:
        logger.info("{} on {} {}: {}", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )
