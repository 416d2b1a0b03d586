from __future__ import annotations

from typing import AsyncIterator

from fastapi import APIRouter, Query, Request
from fastapi.responses import StreamingResponse

from playground_runtime.core.events import CHANNELS, DevExitEvent, format_sse
from playground_runtime.core.errors import InvalidInputError
from playground_runtime.records import StartDevRequest

router = APIRouter()


@router.post("/playgrounds/{playground_id}/dev/start")
async def start_dev(request: Request, playground_id: str, body: StartDevRequest | None = None) -> dict:
    command = body.command if body else None
    result = await request.app.state.supervisor.start(playground_id, command)
    return result.to_dict()


@router.post("/playgrounds/{playground_id}/dev/stop")
async def stop_dev(request: Request, playground_id: str) -> dict:
    await request.app.state.supervisor.stop(playground_id)
    return {"ok": True}


@router.get("/playgrounds/{playground_id}/dev/log")
async def dev_log(request: Request, playground_id: str) -> dict:
    return request.app.state.supervisor.get_log(playground_id).to_dict()


@router.get("/events")
async def events(
    request: Request,
    channel: list[str] | None = Query(default=None),
    id: str | None = None,
    until_exit: bool = False,
) -> StreamingResponse:
    """Server-sent dev events; with ``until_exit`` the stream ends after the first exit it delivers."""
    selected = channel or list(CHANNELS)
    try:
        subscription = request.app.state.events.subscribe(selected, playground_id=id)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc

    async def stream() -> AsyncIterator[str]:
        with subscription:
            yield ": connected\n\n"
            async for event in subscription:
                yield format_sse(event)
                if until_exit and isinstance(event, DevExitEvent):
                    break

    return StreamingResponse(stream(), media_type="text/event-stream")
