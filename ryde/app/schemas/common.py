"""
Response envelope shared by every endpoint.
"""

from typing import Any
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ApiResponse(BaseModel):
    """
    Standard response body: ``{"success", "data", "message"}``.

    `success` mirrors the HTTP status class (anything below 400 succeeds).
    """
    success: bool
    data: Any = None
    message: str = "Success"

    @classmethod
    def build(cls, status_code: int, data: Any = None, message: str = "Success") -> "ApiResponse":
        return cls(success=status_code < 400, data=data if data is not None else {}, message=message)


def send_response(status_code: int, data: Any = None, message: str = "Success") -> JSONResponse:
    """Serialize an ApiResponse with the given status code."""
    body = ApiResponse.build(status_code, data, message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
