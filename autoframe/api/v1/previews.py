"""Preview endpoints for recently generated images.

Endpoints:
    GET    /api/v1/previews       - Recent images, newest first
    DELETE /api/v1/previews/{id}  - Remove one image
    DELETE /api/v1/previews       - Remove all images
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from autoframe.api.deps import Runtime, get_runtime
from autoframe.schemas import PreviewItem

router = APIRouter(prefix="/previews", tags=["previews"])


class PreviewListResponse(BaseModel):
    previews: list[PreviewItem]
    total: int


class DeleteResponse(BaseModel):
    deleted: bool
    id: str


@router.get("", response_model=PreviewListResponse)
async def list_previews(runtime: Runtime = Depends(get_runtime)) -> PreviewListResponse:
    items = runtime.previews.items()
    return PreviewListResponse(previews=items, total=len(items))


@router.delete("/{preview_id}", response_model=DeleteResponse)
async def delete_preview(
    preview_id: str,
    runtime: Runtime = Depends(get_runtime),
) -> DeleteResponse:
    if not runtime.previews.remove(preview_id):
        raise HTTPException(status_code=404, detail="Preview not found")
    return DeleteResponse(deleted=True, id=preview_id)


@router.delete("", response_model=PreviewListResponse)
async def clear_previews(runtime: Runtime = Depends(get_runtime)) -> PreviewListResponse:
    runtime.previews.clear()
    return PreviewListResponse(previews=[], total=0)
