"""``{message, data, code}`` envelope used by every endpoint."""
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(message: str, data: Any = None, code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content={
            "message": message,
            "data": jsonable_encoder(data if data is not None else []),
            "code": code,
        },
    )
