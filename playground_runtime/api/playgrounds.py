from __future__ import annotations

from fastapi import APIRouter, Request

from playground_runtime.core import launchers
from playground_runtime.records import CreateDockerRequest, CreateGithubRequest

router = APIRouter(prefix="/playgrounds")


@router.get("")
async def list_playgrounds(request: Request) -> list[dict]:
    views = await request.app.state.lifecycle.list_all()
    return [view.to_dict() for view in views]


@router.post("/github")
async def create_github(request: Request, body: CreateGithubRequest) -> dict:
    record = await request.app.state.lifecycle.create_github(
        body.repo_url, run_command=body.run_command, port=body.port
    )
    return record.to_json_dict()


@router.post("/docker")
async def create_docker(request: Request, body: CreateDockerRequest) -> dict:
    record = await request.app.state.lifecycle.create_docker(
        body.image, port=body.port, extra_args=body.extra_args
    )
    return record.to_json_dict()


@router.post("/open-directory")
async def open_directory(request: Request) -> dict:
    launchers.open_playgrounds_directory(request.app.state.config.base_path)
    return {"ok": True}


@router.delete("/{playground_id}")
async def delete_playground(request: Request, playground_id: str) -> dict:
    report = await request.app.state.lifecycle.delete(playground_id)
    return report.to_dict()


@router.post("/{playground_id}/open-editor")
async def open_editor(request: Request, playground_id: str) -> dict:
    launchers.open_in_editor(request.app.state.store, playground_id)
    return {"ok": True}


@router.post("/{playground_id}/open-terminal")
async def open_terminal(request: Request, playground_id: str) -> dict:
    launchers.open_terminal(request.app.state.store, playground_id)
    return {"ok": True}
