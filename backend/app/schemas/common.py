"""Response envelope shared by all journey actions."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ActionResponse(BaseModel, Generic[T]):
    """Structured result of a journey action.

    ``warning`` is only ever set on a successful action, when the committed
    transition could not be followed by a patient notification.
    """

    success: bool = True
    data: T | None = None
    message: str | None = None
    warning: str | None = Field(
        default=None,
        description="Non-fatal problem, e.g. the patient could not be notified",
    )


class ErrorResponse(BaseModel):
    """Body returned for every rejected request."""

    success: bool = False
    error: str
    code: str
