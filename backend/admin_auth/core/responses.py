"""Response envelope models.

Every auth endpoint answers with a `success` flag so browser code can branch
without inspecting status codes:

- success with text:   {"success": true, "message": "..."}
- success with data:   {"success": true, "data": {...}}
- failure:             {"success": false, "error": "CODE", "message": "..."}
"""

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class MessageResponse(BaseModel):
    """Success envelope carrying only a human-readable message."""

    success: Literal[True] = True
    message: str


class DataResponse(BaseModel, Generic[T]):
    """Standard success envelope for a payload.

    Usage:
        @router.get("/me")
        async def me(...) -> DataResponse[MeData]:
            return DataResponse(data=MeData(...))
    """

    success: Literal[True] = True
    message: str | None = None
    data: T


class ErrorResponse(BaseModel):
    """Standard error envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.code, message=exc.message).model_dump(),
        )

    Attributes:
        error: Machine-readable error code (e.g., "EXPIRED_TOKEN").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    success: Literal[False] = False
    error: str
    message: str
    details: list[dict] | None = None
