import asyncio
import logging

from ..core.models import TicketUpdate
from ..core.state import AppState

logger = logging.getLogger(__name__)


async def apply_update(state: AppState, record: TicketUpdate) -> int:
    """
    Commits an update from the writer.

    The record is persisted first and only broadcast once the write succeeded,
    so viewers never see a value that is not on disk. A PersistenceError from
    the store propagates unchanged. Once started, the commit runs to completion
    even if the calling request is cancelled. Returns the number of live
    viewers reached.
    """
    return await asyncio.shield(_commit(state, record))


async def _commit(state: AppState, record: TicketUpdate) -> int:
    async with state.commit_lock:
        await state.store.write(record)
        reached = state.broadcaster.publish(record)
    logger.info(f"Ticket update committed: {record} (sent to {reached} viewer(s))")
    return reached


def render_snapshot(state: AppState) -> str:
    """Renders the current value for a fresh page load, or an empty string when there is none."""
    record = state.store.read()
    if record is None:
        return ""
    return state.renderer.render_ticket(record)
