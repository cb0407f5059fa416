"""Shared fixtures for explorer, processor and mapper tests."""

import httpx
import pytest

from endpoint_mapper.discovery import (
    CommAPIClient,
    ExplorationConfig,
    RateLimitConfig,
    RateLimiter,
    StateStore,
    TreeExplorer,
)

BASE_URL = "http://commapi.test"


@pytest.fixture
def simple_tree():
    """Root A with endpoint E1 and child B; B with endpoint E2."""
    return {
        "A": {"endpoints": {"E1": 1.5}, "nodes": ["B"]},
        "A/B": {"endpoints": {"E2": "on"}, "nodes": []},
    }


@pytest.fixture
def deep_tree():
    """Root with two branches, the first three levels deep."""
    return {
        "Root": {"endpoints": {"Speed": 10, "Gear": 2}, "nodes": ["Left", "Right"]},
        "Root/Left": {"endpoints": {"Value": 1}, "nodes": ["Inner"]},
        "Root/Left/Inner": {"endpoints": {"Deep": True}, "nodes": ["Leaf"]},
        "Root/Left/Inner/Leaf": {"endpoints": {"Bottom": "x"}, "nodes": []},
        "Root/Right": {"endpoints": {"A": 1, "B": 2}, "nodes": []},
    }


@pytest.fixture
def store(tmp_path):
    """State store writing under a temporary endpoints directory."""
    return StateStore(tmp_path / "endpoints")


@pytest.fixture
def make_explorer(store):
    """Build an explorer against a FakeCommAPI with no pacing delay."""

    def _make(api, **config) -> TreeExplorer:
        client = httpx.AsyncClient(transport=api.transport())
        api_client = CommAPIClient(client, BASE_URL, RateLimiter(RateLimitConfig(delay_ms=0)))
        return TreeExplorer(api_client, store, ExplorationConfig(**config))

    return _make
