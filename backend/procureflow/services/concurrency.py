"""
ProcureFlow: optimistic-conflict retry for mutating operations.

Orders and requests carry a ``version`` column; a concurrent writer makes the
losing flush fail with ``StaleDataError`` (or ``IntegrityError`` when two
writers insert the same unique key). The losing operation is rolled back and
re-run from scratch, so it observes the winner's committed state and takes the
matching path (idempotent success, Conflict, or existing-row lookup).

Decorated operations take ids, never ORM instances, and re-read everything
they touch. Only top-level operations are decorated; helpers they call are not.
"""
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from procureflow.config import get_settings
from procureflow.core.exceptions import Conflict, ServerError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def retry_on_conflict(func: F) -> F:
    """Flush at the end of the operation and re-run it after a lost race."""

    @functools.wraps(func)
    async def wrapper(db: AsyncSession, *args: Any, **kwargs: Any) -> Any:
        attempts = max(1, get_settings().CONFLICT_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                result = await func(db, *args, **kwargs)
                await db.flush()
                return result
            except (StaleDataError, IntegrityError) as exc:
                await db.rollback()
                logger.warning(
                    "%s lost a concurrent update (attempt %d/%d): %s",
                    func.__qualname__, attempt, attempts, exc.__class__.__name__,
                )
            except DBAPIError as exc:
                await db.rollback()
                logger.error("%s failed in the data store: %s", func.__qualname__, exc, exc_info=True)
                raise ServerError() from exc
        raise Conflict("The record was modified concurrently, please retry")

    return wrapper  # type: ignore[return-value]
