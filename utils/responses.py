# utils/responses.py
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(message: str, data=None, status_code: int = 200) -> JSONResponse:
    """Every response body is ``{"message": str, "data": ...}``."""
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "data": jsonable_encoder(data)},
    )


def error_envelope(message: str, error: str, status_code: int) -> JSONResponse:
    return envelope(message, {"error": error}, status_code=status_code)
