import json

import pytest

from live_queue.core.errors import PersistenceError
from live_queue.core.models import TicketUpdate
from live_queue.db.store import StateStore


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "state.json"


@pytest.mark.asyncio
async def test_write_persists_pretty_json_and_updates_current(state_file):
    """The file holds exactly the current record, pretty-printed."""
    store = StateStore(state_file)
    record = TicketUpdate(ticket_number=42, counter=1)

    await store.write(record)

    assert store.read() == record
    assert state_file.read_text() == '{\n  "ticket_number": 42,\n  "counter": 1\n}'


@pytest.mark.asyncio
async def test_write_overwrites_previous_state(state_file):
    store = StateStore(state_file)

    await store.write(TicketUpdate(ticket_number=42, counter=1))
    await store.write(TicketUpdate(ticket_number=43, counter=2))

    assert json.loads(state_file.read_text()) == {"ticket_number": 43, "counter": 2}
    assert store.read() == TicketUpdate(ticket_number=43, counter=2)


@pytest.mark.asyncio
async def test_failed_write_raises_and_keeps_previous_value(tmp_path):
    """If the file cannot be written the update is not committed."""
    previous = TicketUpdate(ticket_number=1, counter=1)
    store = StateStore(tmp_path / "missing-dir" / "state.json", initial=previous)

    with pytest.raises(PersistenceError):
        await store.write(TicketUpdate(ticket_number=2, counter=2))

    assert store.read() == previous


def test_read_is_empty_before_any_write(state_file):
    assert StateStore(state_file).read() is None


def test_open_hydrates_from_disk(state_file):
    state_file.write_text('{\n  "ticket_number": 7,\n  "counter": 3\n}')

    store = StateStore.open(state_file)

    assert store.read() == TicketUpdate(ticket_number=7, counter=3)


@pytest.mark.parametrize("content", [
    "",
    "   \n",
    "{not json",
    '{"ticket_number": -1, "counter": 0}',
    '{"ticket_number": 1}',
])
def test_load_from_disk_treats_bad_content_as_cold_start(state_file, content):
    state_file.write_text(content)
    assert StateStore(state_file).load_from_disk() is None


def test_load_from_disk_without_file_is_cold_start(state_file):
    assert StateStore(state_file).load_from_disk() is None


def test_load_from_disk_on_unreadable_path_is_cold_start(tmp_path):
    # A directory cannot be read as a file
    assert StateStore(tmp_path).load_from_disk() is None
