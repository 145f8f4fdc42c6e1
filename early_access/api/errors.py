from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


class ApiError(Exception):
    """An HTTP error with an exact JSON body.

    The public contract uses ``{"message": ...}`` / ``{"success": false, "message": ...}``
    bodies rather than FastAPI's ``{"detail": ...}``, so routes raise this instead of
    HTTPException.
    """

    def __init__(self, status_code: int, body: Dict[str, Any], headers: Dict[str, str] | None = None):
        super().__init__(body.get("message") or str(status_code))
        self.status_code = status_code
        self.body = body
        self.headers = headers


GENERIC_SERVER_ERROR = "An unexpected error occurred."


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.body, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed JSON bodies (wrong types, not an object, ...).
        return JSONResponse(status_code=400, content={"success": False, "message": "Invalid request body."})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        _debug(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
        return JSONResponse(status_code=500, content={"success": False, "message": GENERIC_SERVER_ERROR})
