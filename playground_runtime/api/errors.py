from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from playground_runtime.core.errors import PlaygroundError


def format_error(message: str, *, err_type: str = "server_error", code: str | None = None, status_code: int | None = None) -> JSONResponse:
    payload = {"error": {"message": message, "type": err_type, "param": None, "code": code}}
    if status_code is not None:
        status = status_code
    elif err_type == "invalid_request_error":
        status = 400
    elif err_type == "not_found":
        status = 404
    else:
        status = 500
    return JSONResponse(payload, status_code=status)


async def playground_error_handler(request: Request, exc: PlaygroundError) -> JSONResponse:
    logger = request.app.state.logger
    logger.info(
        "request.failed",
        extra={"endpoint": str(request.url.path), "err_type": exc.err_type, "error": exc.message},
    )
    return format_error(exc.message, err_type=exc.err_type, code=exc.code, status_code=exc.status_code)
