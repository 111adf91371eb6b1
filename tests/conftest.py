"""
Shared fixtures for the sandwich scanner test suite.
"""

import pytest
from prometheus_client import CollectorRegistry

from pumpfun.curve import BondingCurve, initial_state
from sandwich_scanner.config_loader import DetectorConfig, FetchConfig
from sandwich_scanner.metrics import DetectionMetrics

SOL = 1_000_000_000


@pytest.fixture
def test_registry():
    """Create a test-specific registry"""
    return CollectorRegistry()


@pytest.fixture
def metrics(test_registry):
    """Create DetectionMetrics instance with test registry"""
    return DetectionMetrics(test_registry)


@pytest.fixture
def detector_config():
    return DetectorConfig()


@pytest.fixture
def launch_state():
    """Fresh pump.fun curve state"""
    return initial_state()


@pytest.fixture
def curve(launch_state):
    return BondingCurve(launch_state)


@pytest.fixture
def fetch_config():
    """Fast-retrying fetch config for mocked RPC tests"""
    return FetchConfig(
        rpc_url="https://rpc.example.test",
        signature_limit=50,
        page_size=1000,
        concurrency=2,
        max_retries=2,
        backoff_base_sec=0,
        timeout_sec=5,
    )
