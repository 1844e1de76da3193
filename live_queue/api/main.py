import logging
import socket
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles

from ..core.config import Settings
from ..core.errors import PersistenceError, RenderError
from ..core.models import TicketUpdate
from ..core.state import AppState, get_app_state
from ..db.store import StateStore
from ..services.broadcaster import Broadcaster
from ..services.sse import SubscriptionSession
from ..services.tickets import apply_update, render_snapshot
from ..utils.rendering import TicketRenderer

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def _error_page(request: Request) -> HTMLResponse:
    """Renders the generic error page, falling back to plain text if even that fails."""
    try:
        body = request.app.state.live.renderer.render_error()
    except (AttributeError, RenderError):
        return PlainTextResponse("Something went wrong", status_code=500)
    return HTMLResponse(body, status_code=500)


async def _persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Update rejected, state was not persisted: {exc}")
    return _error_page(request)


async def _render_error_handler(request: Request, exc: RenderError):
    logger.error(f"Page could not be rendered: {exc}")
    return _error_page(request)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Builds the application.

    The store, broadcaster and renderer are created in the lifespan handler and
    hung off `app.state.live`; nothing is shared through module globals.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Handles application startup and shutdown events.
        """
        configure_logging(settings.log_level)
        store = StateStore.open(settings.state_file)
        app.state.live = AppState(
            settings=settings,
            store=store,
            broadcaster=Broadcaster(capacity=settings.broadcast_capacity),
            renderer=TicketRenderer(),
        )
        logger.info(f"Application startup: current ticket state is {store.read()}")
        yield
        app.state.live.broadcaster.close()
        logger.info("Application shutdown: cleaning up resources.")

    app = FastAPI(
        title="Live Queue",
        description="Broadcasts the current ticket number and counter to every connected viewer via Server-Sent Events.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(PersistenceError, _persistence_error_handler)
    app.add_exception_handler(RenderError, _render_error_handler)

    app.mount("/static", StaticFiles(directory=settings.static_dir, check_dir=False), name="static")

    @app.get("/", response_class=HTMLResponse, summary="Page Shell")
    async def index(state: AppState = Depends(get_app_state)):
        """
        Renders the page with the latest ticket already in place, so a new
        viewer does not have to wait for the next update.
        """
        return HTMLResponse(state.renderer.render_index(render_snapshot(state)))

    @app.post("/", response_class=PlainTextResponse, summary="Update Ticket")
    async def update_ticket(update: TicketUpdate, state: AppState = Depends(get_app_state)):
        """
        Persists the new ticket state and broadcasts it to all connected viewers.

        Responds 500 without broadcasting if the state file cannot be written.
        """
        await apply_update(state, update)
        return PlainTextResponse("Updated")

    @app.get("/events", summary="Live Ticket Stream")
    async def ticket_events(request: Request, state: AppState = Depends(get_app_state)):
        """
        Opens a Server-Sent Events stream that pushes rendered markup for every
        ticket update published after the connection was made.
        """
        session = SubscriptionSession(
            request,
            state.broadcaster,
            state.renderer,
            state.settings.keepalive_interval,
        )
        return session.response()

    return app


app = create_app()


class LiveQueueServer(uvicorn.Server):
    """
    Uvicorn server that ends every open event stream as soon as shutdown begins.

    Uvicorn waits for open connections to finish before running the lifespan
    shutdown, and event streams never finish on their own, so the broadcaster
    has to be closed before that wait starts.
    """

    def __init__(self, config: uvicorn.Config, app: FastAPI):
        super().__init__(config)
        self.live_app = app

    async def shutdown(self, sockets: Optional[List[socket.socket]] = None) -> None:
        state = getattr(self.live_app.state, "live", None)
        if state is not None:
            logger.info(f"Shutting down, closing {state.broadcaster.subscriber_count} event stream(s).")
            state.broadcaster.close()
        await super().shutdown(sockets=sockets)


def run() -> None:
    """Console entry point: starts uvicorn on the configured host and port."""
    settings = Settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    config = uvicorn.Config(app, host=settings.host, port=settings.port)
    logger.info(f"Server running at http://{settings.host}:{settings.port}")
    LiveQueueServer(config, app).run()


if __name__ == "__main__":
    run()
