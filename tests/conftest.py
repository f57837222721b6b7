"""Shared pytest setup: live LiteLLM tests only run on request."""

import pytest

INTEGRATION_MARKER = "integration"


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Also run tests that call real models through LiteLLM (needs API keys)",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", f"{INTEGRATION_MARKER}: calls a real model; skipped without --run-integration"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return

    skip_live = pytest.mark.skip(reason="live model test; pass --run-integration")
    for item in items:
        if item.get_closest_marker(INTEGRATION_MARKER):
            item.add_marker(skip_live)
