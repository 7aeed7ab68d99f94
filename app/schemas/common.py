"""
Response envelope shared by every endpoint:
    {"success": bool, "status": "OK" | "ERROR", "message": str, "data": object | null}
"""
from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    status: str = "OK"
    message: str = ""
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    success: bool = False
    status: str = "ERROR"
    message: str
    data: Optional[dict] = None


def error_body(message: str, data: Optional[dict] = None) -> dict:
    return ErrorResponse(message=message, data=data).model_dump()
