import pytest
from fastapi.testclient import TestClient
from sse_starlette import sse

from live_queue.api.main import create_app
from live_queue.core.config import Settings


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    """
    sse-starlette 2.x caches one exit event per process, bound to the first
    event loop that waits on it. Every TestClient and live server here runs its
    own loop, so the cached event is cleared before each test.
    """
    app_status = getattr(sse, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    yield


@pytest.fixture
def settings(tmp_path):
    """Settings pointing the state file and static directory at a temp dir."""
    static_dir = tmp_path / "static"
    static_dir.mkdir()
    return Settings(
        state_file=tmp_path / "state.json",
        static_dir=static_dir,
        broadcast_capacity=8,
        keepalive_interval=0.05,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """
    FastAPI TestClient fixture for testing the application.

    Used as a context manager so the lifespan handler builds the app state.
    """
    with TestClient(app) as client:
        yield client
