"""Pytest configuration and fixtures for pmenvelope tests."""

import pytest


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )


@pytest.fixture
def no_logging_setup(monkeypatch):
    """Keep CLI invocations from installing handlers or creating log files."""
    monkeypatch.setattr("pmenvelope.logging_config._logging_configured", True)


@pytest.fixture
def params_file(tmp_path):
    """Path to a not-yet-created parameter file."""
    return tmp_path / "params.toml"
