"""Pytest configuration for all tests."""

import pytest
from prometheus_client import CollectorRegistry

from fakes import FakeGitLab
from gitlab_ci_bridge.gitlab.catalog import ProjectCatalog
from gitlab_ci_bridge.lifecycle.metrics import BridgeMetrics


@pytest.fixture
def gitlab():
    """An empty non-admin fake GitLab instance."""
    return FakeGitLab()


@pytest.fixture
def catalog(gitlab):
    with gitlab.client() as client:
        yield ProjectCatalog(client)


@pytest.fixture
def metrics():
    """Metrics bound to a private registry."""
    return BridgeMetrics(registry=CollectorRegistry())


@pytest.fixture
def bridge_env(monkeypatch):
    """Minimal environment for BridgeSettings."""
    monkeypatch.setenv("BRIDGE_GITLAB_TOKEN", "glpat-test-token")
    monkeypatch.setenv("BRIDGE_SERVER_BASE_URL", "https://bridge.test/")
    monkeypatch.setenv("BRIDGE_GITLAB_URL", "https://gitlab.test")
