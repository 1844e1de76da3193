import asyncio
from dataclasses import dataclass, field

from fastapi import Request

from ..db.store import StateStore
from ..services.broadcaster import Broadcaster
from ..utils.rendering import TicketRenderer
from .config import Settings


@dataclass
class AppState:
    """Everything the request handlers share, built once at start-up."""
    settings: Settings
    store: StateStore
    broadcaster: Broadcaster
    renderer: TicketRenderer
    # Held across persist + publish so broadcast order matches commit order
    commit_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency returning the AppState attached by the lifespan handler."""
    return request.app.state.live
