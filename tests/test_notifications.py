import pytest

from notifications import format_amount
from schemas import Ticket


@pytest.fixture
def ticket():
    return Ticket(
        id=3, date="2024-03-01", amount=20.0, type="snack", category="food", description="Popcorn"
    )


def test_format_amount_drops_trailing_zero():
    assert format_amount(20.0) == "20"
    assert format_amount(12.5) == "12.5"


def test_unregister_is_idempotent(hub, make_observer):
    observer = make_observer()
    hub.register(observer)
    hub.unregister(observer)
    hub.unregister(observer)
    assert hub.count == 0


@pytest.mark.asyncio
async def test_broadcast_skips_observers_that_are_not_ready(hub, make_observer, ticket):
    ready, closing = make_observer(), make_observer(ready=False)
    hub.register(ready)
    hub.register(closing)

    delivered = await hub.broadcast(ticket)

    assert delivered == 1
    assert ready.sent[0]["message"] == "New snack added: Popcorn - $20"
    assert closing.sent == []
    # skipped, not dropped
    assert hub.count == 2


@pytest.mark.asyncio
async def test_send_failure_is_isolated(hub, make_observer, ticket):
    broken, healthy = make_observer(fail=True), make_observer()
    hub.register(broken)
    hub.register(healthy)

    delivered = await hub.broadcast(ticket)

    assert delivered == 1
    assert healthy.sent[0]["ticket"]["id"] == 3
    assert hub.count == 1


@pytest.mark.asyncio
async def test_broadcast_without_observers(hub, ticket):
    assert await hub.broadcast(ticket) == 0


@pytest.mark.asyncio
async def test_greet_sends_connection_event(hub, make_observer):
    observer = make_observer()
    await hub.greet(observer)
    assert observer.sent == [
        {"type": "connection", "message": "Connected to Movie Budget Server"}
    ]


@pytest.mark.asyncio
async def test_close_all_empties_registry(hub, make_observer):
    observers = [make_observer(), make_observer()]
    for observer in observers:
        hub.register(observer)

    await hub.close_all()

    assert all(o.closed for o in observers)
    assert hub.count == 0
