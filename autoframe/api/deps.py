"""Shared application runtime and FastAPI dependencies."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from autoframe.config import Settings
from autoframe.core.orchestrator import ProviderOrchestrator
from autoframe.core.preview import PreviewBuffer
from autoframe.core.scheduler import Clock, ScheduleController, ScheduleRunner, wall_clock_ms


@dataclass
class Runtime:
    """Everything the routes need, created once per app.

    Attributes:
        settings: Application settings
        orchestrator: Provider orchestrator used by direct and scheduled generation
        controller: The schedule controller
        runner: asyncio driver for the controller
        previews: Recent results
    """

    settings: Settings
    orchestrator: ProviderOrchestrator
    controller: ScheduleController
    runner: ScheduleRunner
    previews: PreviewBuffer

    @classmethod
    def build(
        cls,
        settings: Settings,
        orchestrator: ProviderOrchestrator | None = None,
        clock: Clock = wall_clock_ms,
    ) -> Runtime:
        orchestrator = orchestrator or ProviderOrchestrator.from_settings(settings)
        previews = PreviewBuffer(limit=settings.PREVIEW_LIMIT)
        controller = ScheduleController.from_settings(
            settings,
            orchestrator,
            clock=clock,
            sink=previews.add,
        )
        return cls(
            settings=settings,
            orchestrator=orchestrator,
            controller=controller,
            runner=ScheduleRunner(controller),
            previews=previews,
        )


def get_runtime(request: Request) -> Runtime:
    """FastAPI dependency returning the app's runtime."""
    return request.app.state.runtime
