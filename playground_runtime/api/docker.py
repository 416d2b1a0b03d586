from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(prefix="/docker")


@router.get("/installed")
async def docker_installed(request: Request) -> dict:
    return {"installed": request.app.state.lifecycle.docker_installed()}


@router.post("/{container_id}/stop")
async def stop_container(request: Request, container_id: str) -> dict:
    await request.app.state.lifecycle.stop_container(container_id)
    return {"ok": True}


@router.post("/{container_id}/remove")
async def remove_container(request: Request, container_id: str) -> dict:
    await request.app.state.lifecycle.remove_container(container_id)
    return {"ok": True}
