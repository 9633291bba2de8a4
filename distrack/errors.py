"""
Error Taxonomy
Domain errors raised by the services and caught at the command boundary
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Optional

import discord

logger = logging.getLogger('distrack.errors')


class DisTrackError(Exception):
    """Base class for every error that is shown to the invoking user."""

    title = "Error"

    def __init__(self, user_message: str, *, detail: Optional[str] = None):
        super().__init__(detail or user_message)
        self.user_message = user_message


class PermissionDenied(DisTrackError):
    title = "Permission Denied"


class ForbiddenTarget(DisTrackError):
    title = "Invalid Target"


class InvalidInput(DisTrackError):
    title = "Invalid Input"


class InvalidDuration(InvalidInput):
    title = "Invalid Duration"


class NotFound(DisTrackError):
    title = "Not Found"


class AlreadyInState(DisTrackError):
    title = "Nothing To Do"


class AlreadyBanned(AlreadyInState):
    title = "Already Banned"


class LimitExceeded(AlreadyInState):
    title = "Limit Reached"


class InvalidState(DisTrackError):
    title = "Invalid State"


class ExternalFailure(DisTrackError):
    title = "Something Went Wrong"

    def __init__(self, detail: str):
        super().__init__(
            "An unexpected error occurred while talking to Discord or the database. Please try again later.",
            detail=detail
        )


@asynccontextmanager
async def translate_discord_errors(action: str) -> AsyncIterator[None]:
    """Classify discord.py HTTP failures raised inside the block.

    NotFound and Forbidden become the matching domain errors, anything else
    the platform raises becomes ExternalFailure.
    """
    try:
        yield
    except discord.NotFound as e:
        raise NotFound(f"Could not {action}: the target no longer exists.") from e
    except discord.Forbidden as e:
        raise PermissionDenied(f"I don't have permission to {action}.") from e
    except discord.HTTPException as e:
        raise ExternalFailure(f"{action} failed: {e}") from e


async def notify_best_effort(coro: Awaitable, what: str) -> bool:
    try:
        await coro
        return True
    except discord.HTTPException as e:
        logger.warning(f"Best-effort {what} failed: {e}")
        return False
