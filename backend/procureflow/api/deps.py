"""ProcureFlow: FastAPI dependencies (auth, DB, capabilities, event fan-out)."""
from functools import lru_cache
from typing import TypeVar

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from procureflow.core.auth_middleware import CurrentUser
from procureflow.core.capabilities import Capabilities, resolve_capabilities
from procureflow.core.events import EventPublisher, Outcome
from procureflow.core.notifications import NotificationDispatcher
from procureflow.db.session import get_db

T = TypeVar("T")


async def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user. Raise 401 if not logged in."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


async def get_capabilities(user: CurrentUser = Depends(require_auth)) -> Capabilities:
    """Resolve role checks once per request."""
    return resolve_capabilities(user)


@lru_cache
def get_event_publisher() -> EventPublisher:
    return EventPublisher()


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


class OutcomeCommitter:
    """Commit the request's transaction, then hand its events and notifications off."""

    def __init__(self, db: AsyncSession, publisher: EventPublisher, dispatcher: NotificationDispatcher):
        self.db = db
        self.publisher = publisher
        self.dispatcher = dispatcher

    async def __call__(self, outcome: Outcome[T]) -> T:
        await self.db.commit()
        await self.publisher.publish(outcome.events)
        self.dispatcher.dispatch_all(outcome.notifications)
        return outcome.value


async def get_committer(
    db: AsyncSession = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> OutcomeCommitter:
    return OutcomeCommitter(db, publisher, dispatcher)
