from __future__ import annotations

import os
import uuid

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--kubeconfig",
        action="store",
        default=None,
        help="kubeconfig file for live tests",
    )


@pytest.fixture(scope="session")
def kubeconfig(request):
    """Get kubeconfig path from CLI option or environment."""
    path = request.config.getoption("--kubeconfig") or os.environ.get("PODLEADER_TEST_KUBECONFIG")
    if not path:
        pytest.skip("No kubeconfig provided (use --kubeconfig or PODLEADER_TEST_KUBECONFIG)")
    return path


@pytest.fixture(scope="session")
def test_namespace():
    return os.environ.get("PODLEADER_TEST_NAMESPACE", "default")


@pytest.fixture
def lock_name():
    """Random lock name to avoid collisions between tests."""
    return f"podleader-test-{uuid.uuid4().hex[:10]}"
