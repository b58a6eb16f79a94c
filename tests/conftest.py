"""Pytest configuration and shared fixtures."""

import random

import pytest

from tunebridge.fetcher.circuit_breaker import CircuitBreakerRegistry
from tunebridge.models.config import AppConfig
from tunebridge.monitoring.logger import StructuredLogger
from tests.fixtures.sample_data import FakeClock


@pytest.fixture(scope="session")
def deterministic_seed():
    """Set a fixed random seed for deterministic test results."""
    random.seed(42)
    return 42


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def logger():
    return StructuredLogger(name="tunebridge.tests", level="DEBUG")


@pytest.fixture
def registry(fake_clock, logger):
    return CircuitBreakerRegistry(failure_threshold=5, cooldown_ms=30000, clock=fake_clock, logger=logger)


@pytest.fixture
def sample_config():
    """Provide a sample configuration for testing."""
    return AppConfig(
        circuit_breaker_failure_threshold=5,
        circuit_breaker_cooldown_ms=30000,
        fuzzy_threshold=0.6,
        max_retries=2,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter_max=0.0,
        total_timeout=30.0,
    )
