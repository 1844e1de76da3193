import html
import logging
from typing import AsyncIterator, Optional

from fastapi import Request
from sse_starlette.sse import EventSourceResponse

from ..core.errors import RenderError
from ..utils.rendering import TicketRenderer
from .broadcaster import Broadcaster, Subscription, SubscriptionClosed, SubscriptionLagged

logger = logging.getLogger(__name__)


def render_error_payload(error: Exception) -> str:
    return f'<div class="ticket-error">Error occurred!: {html.escape(str(error))}</div>'


class SubscriptionSession:
    """
    Streams ticket updates to one connected viewer.

    Owns one broadcaster subscription, opened when streaming starts (or
    earlier through `open`), and releases it when the stream ends for any
    reason, cancellation included.
    """

    def __init__(
        self,
        request: Request,
        broadcaster: Broadcaster,
        renderer: TicketRenderer,
        keepalive_interval: float,
    ):
        self.request = request
        self.broadcaster = broadcaster
        self.subscription: Optional[Subscription] = None
        self.renderer = renderer
        self.keepalive_interval = keepalive_interval

    def open(self) -> Subscription:
        """Subscribes to the broadcaster; updates published from here on will be streamed."""
        if self.subscription is None:
            self.subscription = self.broadcaster.subscribe()
        return self.subscription

    def render(self, record) -> str:
        try:
            return self.renderer.render_ticket(record)
        except RenderError as e:
            logger.warning(f"Sending error payload instead of {record}: {e}")
            return render_error_payload(e)

    async def events(self) -> AsyncIterator[dict]:
        """
        Yields one event per ticket update until the viewer leaves or the broadcaster closes.
        """
        subscription = self.open()
        try:
            while True:
                if await self.request.is_disconnected():
                    logger.info("Viewer disconnected, stopping ticket stream.")
                    break

                try:
                    record = await subscription.recv()
                except SubscriptionLagged as e:
                    logger.warning(f"Slow viewer skipped ahead: {e}")
                    continue
                except SubscriptionClosed:
                    logger.info("Broadcaster closed, ending ticket stream.")
                    break

                yield {"data": self.render(record)}
        finally:
            subscription.close()
            logger.info("Ticket event stream finished.")

    def response(self) -> EventSourceResponse:
        """
        Wraps the session in an event-stream response.

        The response pings the viewer every keep-alive interval and stops the
        stream when the viewer disconnects or the server is told to exit.
        """
        return EventSourceResponse(
            self.events(),
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
            ping=self.keepalive_interval,
        )
