"""Response envelope shared by every comment endpoint.

Successful responses are ``{"success": true, "message": ..., "data": ...}``;
failures are ``{"success": false, "message": ..., "error": <code>}``.
"""

from typing import Any, Generic, TypeVar

from fastapi import HTTPException
from pydantic import BaseModel


DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Standard response envelope."""

    success: bool = True
    message: str | None = None
    data: DataT | None = None
    error: str | None = None


class ApiError(HTTPException):
    """HTTP exception that carries a machine-readable error code."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str,
        details: list[dict[str, Any]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code
        self.details = details


def error_body(
    message: str,
    code: str,
    request_id: str | None = None,
    details: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a failure envelope."""
    body: dict[str, Any] = {"success": False, "message": message, "error": code}
    if request_id:
        body["request_id"] = request_id
    if details:
        body["details"] = details
    return body
