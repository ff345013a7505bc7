"""Direct image generation endpoint.

Endpoints:
    POST /api/generate    - Generate one image now (also under /api/v1)

Examples:
    >>> POST /api/generate
    >>> {"textContext": "A quiet harbour at dawn", "providerMode": "auto", "aspectHint": "16:9"}
    >>>
    >>> # Response
    >>> {"mimeType": "image/png", "data": "iVBORw0...", "providerUsed": "gemini"}

Failures are rendered by the ClassifiedError handler in ``autoframe.main``:
    {"error": "...", "status": 429, "retryDelaySeconds": 45}

Tests:
    - tests/unit/test_api.py::TestGenerateEndpoint
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from autoframe.api.deps import Runtime, get_runtime
from autoframe.schemas import ErrorResponse, GenerateRequest, GenerateResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generate"])


@router.post(
    "/generate",
    response_model=GenerateResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def generate(
    body: GenerateRequest,
    runtime: Runtime = Depends(get_runtime),
) -> GenerateResponse:
    """Generate an image immediately, outside the schedule.

    Runs through the schedule controller: refused with 429 while a scheduled
    attempt is in flight or Gemini spacing has not elapsed, and Gemini calls
    made here count towards that spacing.

    Args:
        body: Prompt, reference images, provider mode and hints.

    Returns:
        GenerateResponse with the base64 image and the provider used.

    Raises:
        ClassifiedError: Rendered as an ErrorResponse by the app handler.
    """
    result = await runtime.controller.generate_direct(body.to_generation_request())
    logger.info(f"Direct generation served by {result.provider_used.value}")
    return GenerateResponse.from_result(result)
