from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(prefix="/catalog")


@router.get("")
async def get_catalog(request: Request) -> list[dict]:
    return [entry.to_json_dict() for entry in request.app.state.catalog.entries()]


@router.post("/{app_id}/install")
async def install_app(request: Request, app_id: str) -> dict:
    record = await request.app.state.lifecycle.install_from_catalog(app_id)
    return record.to_json_dict()
