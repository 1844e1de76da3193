import logging
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from ..core.errors import RenderError
from ..core.models import TicketUpdate

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

INDEX_TEMPLATE = "index.html"
TICKET_TEMPLATE = "components/ticket_update.html"
ERROR_TEMPLATE = "error.html"


class TicketRenderer:
    """
    Turns ticket updates into HTML fragments and pages.

    Every failure inside Jinja2 surfaces as a RenderError so callers only have
    to deal with one exception type.
    """

    def __init__(self, templates_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
        )

    def _render(self, name: str, **context) -> str:
        try:
            return self.env.get_template(name).render(**context)
        except TemplateError as e:
            logger.error(f"Could not render template {name}: {e}")
            raise RenderError(f"could not render template {name}") from e

    def render_ticket(self, record: TicketUpdate) -> str:
        return self._render(
            TICKET_TEMPLATE,
            ticket_number=record.ticket_number,
            counter=record.counter,
        )

    def render_index(self, initial_html: str) -> str:
        """Renders the page shell around already-rendered ticket markup."""
        return self._render(INDEX_TEMPLATE, initial_html=initial_html)

    def render_error(self) -> str:
        return self._render(ERROR_TEMPLATE)
