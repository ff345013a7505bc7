"""
Pytest configuration and fixtures for autoframe tests.

Providers are never called for real: Gemini and Imagen are real provider
objects whose ``generate`` is replaced by an AsyncMock, and the scheduler
runs on a fake millisecond clock.
"""
import base64
from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from autoframe.config import ProviderType, Settings
from autoframe.core.context import GenerationContext
from autoframe.core.orchestrator import ProviderOrchestrator
from autoframe.core.providers import GeminiProvider, ImagenProvider
from autoframe.core.scheduler import ScheduleController
from autoframe.main import create_app
from autoframe.schemas import AttemptResult

PNG_BYTES = b"\x89PNG\r\n\x1a\n-autoframe-test-"
PNG_B64 = base64.b64encode(PNG_BYTES).decode("utf-8")

START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


# ============================================
# Building blocks
# ============================================

@pytest.fixture
def png_b64() -> str:
    """Valid base64 image data."""
    return PNG_B64


@pytest.fixture
def make_result() -> Callable[[ProviderType], AttemptResult]:
    """Factory for successful attempt results."""
    def _make(provider: ProviderType = ProviderType.GEMINI) -> AttemptResult:
        return AttemptResult(mime_type="image/png", data=PNG_B64, provider_used=provider)
    return _make


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gemini(make_result) -> GeminiProvider:
    """Configured Gemini provider with a mocked generate()."""
    provider = GeminiProvider(api_key="test-key", model="gemini-test")
    provider.generate = AsyncMock(return_value=make_result(ProviderType.GEMINI))
    return provider


@pytest.fixture
def imagen(make_result) -> ImagenProvider:
    """Configured Imagen provider with a mocked generate()."""
    provider = ImagenProvider(api_key="test-key", model="imagen-test")
    provider.generate = AsyncMock(return_value=make_result(ProviderType.IMAGEN))
    return provider


@pytest.fixture
def orchestrator(gemini, imagen) -> ProviderOrchestrator:
    return ProviderOrchestrator(primary=gemini, secondary=imagen)


@pytest.fixture
def context() -> GenerationContext:
    ctx = GenerationContext()
    ctx.set_journal("Walked along the harbour at dawn; the fog was lifting off the boats.")
    return ctx


@pytest.fixture
def sink() -> list[AttemptResult]:
    """Collects results delivered by the controller."""
    return []


@pytest.fixture
def controller(orchestrator, context, clock, sink) -> ScheduleController:
    return ScheduleController(
        orchestrator,
        context=context,
        clock=clock,
        sink=sink.append,
    )


# ============================================
# App fixtures
# ============================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's .env."""
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="test-key",
        AUTO_START=False,
        DEBUG=True,
    )


@pytest.fixture
def app(test_settings, orchestrator, clock):
    return create_app(settings=test_settings, orchestrator=orchestrator, clock=clock)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (lifespan not run, so no background loop)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no external API calls)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests against the real Gemini API (requires GEMINI_API_KEY)"
    )
