"""ProcureFlow: API response helpers."""
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def error_response(message: str, code: str, errors: list[dict] | None = None) -> dict:
    body: dict[str, Any] = {"success": False, "message": message, "data": None, "code": code}
    if errors:
        body["errors"] = errors
    return body


def error_json(status_code: int, message: str, code: str, errors: list[dict] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_response(message, code, errors)),
    )
