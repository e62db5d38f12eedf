"""ProcureFlow: common response envelope."""
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard response envelope: {success, message, data, errors?}."""

    success: bool = True
    message: str | None = None
    data: T | None = None
    errors: list[dict[str, Any]] | None = None
