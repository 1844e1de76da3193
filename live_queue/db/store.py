import asyncio
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..core.errors import PersistenceError
from ..core.models import TicketUpdate

logger = logging.getLogger(__name__)


class StateStore:
    """
    Holds the current TicketUpdate and mirrors it to a single JSON file.

    The file is overwritten in full on every write. Records are immutable, so
    readers only ever see a complete old or new value.
    """

    def __init__(self, path: Path, initial: Optional[TicketUpdate] = None):
        self.path = Path(path)
        self._current = initial
        self._write_lock = asyncio.Lock()

    @classmethod
    def open(cls, path: Path) -> "StateStore":
        """Creates a store hydrated from whatever is already on disk."""
        store = cls(path)
        store._current = store.load_from_disk()
        return store

    def read(self) -> Optional[TicketUpdate]:
        return self._current

    async def write(self, record: TicketUpdate) -> None:
        """
        Persists `record`, then makes it the current value.

        Raises PersistenceError if the file cannot be written; the previous
        value stays current in that case. Cancelling the caller does not
        interrupt a write already under way, so memory and disk stay in step.
        """
        await asyncio.shield(self._persist(record))

    async def _persist(self, record: TicketUpdate) -> None:
        payload = record.model_dump_json(indent=2)
        async with self._write_lock:
            try:
                await asyncio.to_thread(self.path.write_text, payload, encoding="utf-8")
            except OSError as e:
                logger.error(f"Failed to persist state to {self.path}: {e}")
                raise PersistenceError(f"could not write {self.path}") from e
            self._current = record
        logger.info(f"{self.path.name} updated!")

    def load_from_disk(self) -> Optional[TicketUpdate]:
        """Reads the persisted record. Any failure means a cold start, not an error."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"No state file at {self.path}, starting empty.")
            return None
        except OSError as e:
            logger.warning(f"Could not read state file {self.path}: {e}")
            return None

        if not content.strip():
            return None

        try:
            record = TicketUpdate.model_validate_json(content)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed state file {self.path}: {e.error_count()} error(s)")
            return None

        logger.info(f"Loaded state from {self.path}: {record}")
        return record
