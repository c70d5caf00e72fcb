"""Shared test fixtures for Luna tests.

This module provides common fixtures used across all test modules:
- A frozen request clock and a hand-driven monotonic clock
- Context factories
- A fully wired engine with default configuration

Usage:
    def test_something(engine):
        result = engine.process("Calculate 25 * 8")
        ...
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from tools.luna.cache import ResponseCache
from tools.luna.config import LunaConfig
from tools.luna.context import ContextResolver
from tools.luna.engine import LocalExecutionEngine, create_engine
from tools.luna.models import AppContext
from tools.luna.parser.intent_classifier import IntentClassifier


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"

# Saturday afternoon
FIXED_NOW = datetime(2026, 10, 17, 15, 45, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ─────────────────────────────────────────────────────────────────────────────
# Clock Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def fixed_now() -> datetime:
    """The request clock every context is resolved against."""
    return FIXED_NOW


@pytest.fixture
def monotonic() -> FakeClock:
    """Cache clock, advanced explicitly."""
    return FakeClock()


# ─────────────────────────────────────────────────────────────────────────────
# Context Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def resolver() -> ContextResolver:
    return ContextResolver(clock=lambda: FIXED_NOW)


@pytest.fixture
def make_context(resolver: ContextResolver):
    """Factory for resolved contexts.

    Usage:
        ctx = make_context(module="tasks")
    """

    def _make(module: str | None = None, session=None, **hints) -> AppContext:
        if module is not None:
            hints["module"] = module
        return resolver.resolve(hints, session)

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Engine Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def config() -> LunaConfig:
    """Default configuration (never reads args/luna.yaml)."""
    return LunaConfig()


@pytest.fixture
def classifier(config: LunaConfig) -> IntentClassifier:
    return IntentClassifier(config.classifier)


@pytest.fixture
def cache(monotonic: FakeClock) -> ResponseCache:
    return ResponseCache(max_entries=256, ttl_seconds=300, clock=monotonic)


@pytest.fixture
def engine(config: LunaConfig, cache: ResponseCache) -> LocalExecutionEngine:
    """Engine with default capabilities, frozen request clock, manual cache clock."""
    return create_engine(config=config, clock=lambda: FIXED_NOW, cache=cache)
