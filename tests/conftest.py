"""Pytest configuration shared across the suite."""

import os

import pytest

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - conftest is loaded outside a package
    import _bootstrap  # type: ignore # noqa: F401


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def restore_environ():
    """Undo environment writes made outside of ``monkeypatch`` (e.g. .env loading)."""
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)
