from __future__ import annotations

from fastapi import APIRouter, Request

from playground_runtime.core.doctor import run_doctor
from playground_runtime.core.logging import get_log_dir, get_recent_logs
from playground_runtime.core.platform import current_platform, dev_shell

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict:
    state = request.app.state
    data = state.readiness.as_payload()
    data["platform"] = current_platform()
    data["dev_shell"] = dev_shell()
    data["dev_processes"] = [entry.to_dict() for entry in state.supervisor.running()]
    return data


@router.get("/doctor")
async def doctor() -> dict:
    return {"checks": [check.__dict__ for check in run_doctor()]}


@router.get("/meta/paths")
async def meta_paths(request: Request) -> dict:
    config = request.app.state.config
    return {
        "base_dir": str(config.base_path),
        "meta_path": str(config.meta_path),
        "catalog_dir": str(config.catalog_path),
        "log_dir": str(get_log_dir()),
    }


@router.get("/logs/recent")
async def recent_logs(limit: int = 200, playground_id: str | None = None) -> dict:
    return {"logs": get_recent_logs(limit, playground_id=playground_id)}
