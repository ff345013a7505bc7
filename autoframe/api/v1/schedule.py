"""Scheduler control endpoints.

Endpoints:
    GET    /api/v1/schedule                 - Scheduler status and countdown
    PATCH  /api/v1/schedule                 - Run/pause, interval, skip-if-unchanged, mode
    POST   /api/v1/schedule/fire            - Generate now (honours backoff and spacing)
    POST   /api/v1/schedule/reset           - Forget fingerprint, error and backoff
    GET    /api/v1/schedule/context         - Current generation inputs
    PUT    /api/v1/schedule/context         - Update journal / style / images
    POST   /api/v1/schedule/context/images  - Include a reference image
    DELETE /api/v1/schedule/context/images  - Drop all reference images

Tests:
    - tests/unit/test_api.py::TestScheduleEndpoints
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from autoframe.api.deps import Runtime, get_runtime
from autoframe.core.scheduler import Defer, Fire, Skip
from autoframe.schemas import ContextUpdate, ReferenceImage, ScheduleStatus, ScheduleUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedule", tags=["schedule"])


class FireResponse(BaseModel):
    """Outcome of a manual fire.

    Attributes:
        action: fire, skip or defer
        reason: Why the fire was skipped or deferred
        status: Scheduler status after the attempt (or decision)
    """

    action: str
    reason: str | None = None
    status: ScheduleStatus


class ContextView(BaseModel):
    """Current generation inputs (images summarised)."""

    page_id: str
    journal: str
    style_preset: str
    aspect_hint: str
    negative_hint: str
    reference_image_count: int
    prompt: str


def _context_view(runtime: Runtime) -> ContextView:
    context = runtime.controller.context
    return ContextView(
        page_id=context.current_page,
        journal=context.journal,
        style_preset=context.style_preset,
        aspect_hint=context.aspect_hint,
        negative_hint=context.negative_hint,
        reference_image_count=len(context.reference_images),
        prompt=context.prompt(),
    )


@router.get("", response_model=ScheduleStatus)
async def get_status(runtime: Runtime = Depends(get_runtime)) -> ScheduleStatus:
    """Scheduler status, with the countdown to the next run or the backoff end."""
    return runtime.controller.status()


@router.patch("", response_model=ScheduleStatus)
async def update_schedule(
    body: ScheduleUpdate,
    runtime: Runtime = Depends(get_runtime),
) -> ScheduleStatus:
    """Update scheduler settings. Omitted fields are left unchanged.

    Raises:
        HTTPException: 400 for an interval outside the allowed options.
    """
    controller = runtime.controller

    if body.interval_ms is not None:
        try:
            controller.set_interval(body.interval_ms)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
    if body.skip_if_unchanged is not None:
        controller.set_skip_if_unchanged(body.skip_if_unchanged)
    if body.provider_mode is not None:
        controller.set_provider_mode(body.provider_mode)

    if body.running is True:
        runtime.runner.start_schedule()
    elif body.running is False:
        controller.stop()

    return controller.status()


@router.post("/fire", response_model=FireResponse)
async def fire_now(
    wait: bool = Query(default=True, description="Wait for the attempt to finish"),
    runtime: Runtime = Depends(get_runtime),
) -> FireResponse:
    """Generate now, bypassing the interval.

    In-flight attempts, an active backoff and Gemini spacing still apply.
    """
    controller = runtime.controller
    if wait:
        action = await controller.fire_now()
    else:
        action = runtime.runner.fire_now()

    if isinstance(action, Fire):
        return FireResponse(action="fire", status=controller.status())
    if isinstance(action, Skip):
        return FireResponse(action="skip", reason=action.reason.value, status=controller.status())
    assert isinstance(action, Defer)
    return FireResponse(action="defer", reason=action.reason.value, status=controller.status())


@router.post("/reset", response_model=ScheduleStatus)
async def reset(runtime: Runtime = Depends(get_runtime)) -> ScheduleStatus:
    runtime.controller.reset()
    return runtime.controller.status()


@router.get("/context", response_model=ContextView)
async def get_context(runtime: Runtime = Depends(get_runtime)) -> ContextView:
    return _context_view(runtime)


@router.put("/context", response_model=ContextView)
async def update_context(
    body: ContextUpdate,
    runtime: Runtime = Depends(get_runtime),
) -> ContextView:
    """Update the generation inputs. Omitted fields are left unchanged.

    ``page_id`` selects the page; ``journal`` is written to that page.
    """
    context = runtime.controller.context
    if body.page_id is not None:
        context.select_page(body.page_id)
    if body.journal is not None:
        context.set_journal(body.journal)
    if body.style_preset is not None:
        context.style_preset = body.style_preset
    if body.aspect_hint is not None:
        context.aspect_hint = body.aspect_hint
    if body.negative_hint is not None:
        context.negative_hint = body.negative_hint
    if body.reference_images is not None:
        context.set_images(body.reference_images)
    return _context_view(runtime)


@router.post("/context/images", response_model=ContextView)
async def add_image(
    image: ReferenceImage,
    runtime: Runtime = Depends(get_runtime),
) -> ContextView:
    """Include a reference image (newest first, capped)."""
    runtime.controller.context.add_image(image)
    return _context_view(runtime)


@router.delete("/context/images", response_model=ContextView)
async def clear_images(runtime: Runtime = Depends(get_runtime)) -> ContextView:
    runtime.controller.context.clear_images()
    return _context_view(runtime)
