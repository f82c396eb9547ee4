# pyright: strict
"""Shared pytest fixtures for pipecycle tests."""

from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from loguru import logger

from pipecycle.engine.description import simple_blueprint
from pipecycle.engine.types import PipelineBlueprint
from pipecycle.lifecycle.controller import PipelineLifecycleController
from pipecycle.lifecycle.phases import PhasePlan
from pipecycle.lifecycle.stats import LifecycleStatsCollector
from pipecycle.metrics import MetricRegistry
from pipecycle.models import CycleConfig
from pipecycle.supervisor.signals import SignalCell
from pipecycle.utils import LoggingConfig

from .doubles import FakeEngine, FakeProcessFactory, ManualClock


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None]:
    """Start every test with loguru unconfigured."""
    LoggingConfig.reset()
    yield
    LoggingConfig.reset()


@pytest.fixture
def log_messages() -> Generator[list[str]]:
    """Capture rendered log messages."""
    messages: list[str] = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)


@pytest.fixture
def clock() -> ManualClock:
    """Virtual clock starting at t=0."""
    return ManualClock()


@pytest.fixture
def engine() -> FakeEngine:
    """Engine double with unlimited pad capacity."""
    return FakeEngine()


@pytest.fixture
def cycle_config() -> CycleConfig:
    """Default controller configuration."""
    return CycleConfig()


@pytest.fixture
def blueprint(cycle_config: CycleConfig) -> PipelineBlueprint:
    """Single-encoder blueprint with the udp and fps branches."""
    return simple_blueprint(cycle_config)


@pytest.fixture
def registry() -> MetricRegistry:
    """Fresh metric registry."""
    return MetricRegistry()


@pytest.fixture
def stats(registry: MetricRegistry) -> LifecycleStatsCollector:
    """Lifecycle statistics over the fresh registry."""
    return LifecycleStatsCollector(registry)


@pytest.fixture
def make_controller(
    engine: FakeEngine,
    clock: ManualClock,
    blueprint: PipelineBlueprint,
    stats: LifecycleStatsCollector,
) -> Callable[..., PipelineLifecycleController]:
    """Factory for controllers wired to the fake engine and virtual clock."""

    def _make(*, extended: bool = False, **kwargs: object) -> PipelineLifecycleController:
        plan = PhasePlan(extended=extended)
        return PipelineLifecycleController(
            engine, clock, blueprint, plan, stats=stats, **kwargs  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture
def signal_cell() -> SignalCell:
    """Signal cell that is never installed as a real handler."""
    return SignalCell()


@pytest.fixture
def process_factory() -> FakeProcessFactory:
    """Factory for fake children that exit when interrupted."""
    return FakeProcessFactory()
