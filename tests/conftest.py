"""Shared test fixtures."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any structlog configuration a test installed (e.g. via cli.main)."""
    yield
    structlog.reset_defaults()
