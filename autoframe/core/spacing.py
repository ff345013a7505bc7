"""Per-provider call spacing.

Gemini image calls are rate-limited, so consecutive Gemini attempts are kept
at least ``PRIMARY_MIN_SPACING_MS`` apart. The spacing is independent of the
scheduler interval and of any quota backoff.

Examples:
    >>> tracker = SpacingTracker()
    >>> tracker.record_attempt(ProviderType.GEMINI, 1_000)
    >>> tracker.earliest_allowed(ProviderType.GEMINI, now=2_000)
    61000

Tests:
    - tests/unit/test_spacing.py
"""

from collections.abc import Iterable

from autoframe.config import PRIMARY_MIN_SPACING_MS, ProviderMode, ProviderType


def mode_uses_primary(mode: ProviderMode) -> bool:
    """Check whether an attempt in ``mode`` may call the primary provider."""
    return mode in (ProviderMode.AUTO, ProviderMode.GEMINI)


class SpacingTracker:
    """Records the last attempt per provider and enforces minimum spacing.

    Attributes:
        min_spacing_ms: Minimum gap between attempts on a rate-limited provider
        rate_limited: Providers the spacing applies to
    """

    def __init__(
        self,
        min_spacing_ms: int = PRIMARY_MIN_SPACING_MS,
        rate_limited: Iterable[ProviderType] = (ProviderType.GEMINI,),
    ) -> None:
        self.min_spacing_ms = min_spacing_ms
        self.rate_limited = frozenset(rate_limited)
        self._last_attempt: dict[ProviderType, int] = {}

    def record_attempt(self, provider: ProviderType, at: int) -> None:
        """Record an attempt on ``provider`` at ``at`` (epoch ms)."""
        self._last_attempt[provider] = at

    def last_attempt(self, provider: ProviderType) -> int | None:
        return self._last_attempt.get(provider)

    def earliest_allowed(self, provider: ProviderType, now: int) -> int:
        """Earliest time (epoch ms) the next attempt on ``provider`` may start."""
        last = self._last_attempt.get(provider)
        if provider not in self.rate_limited or last is None:
            return now
        return last + self.min_spacing_ms
