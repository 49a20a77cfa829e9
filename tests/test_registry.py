import pytest

from relay.connection import Connection, ConnectionState
from relay.errors import DeliveryFailure, DuplicateConnection
from relay.registry import ConnectionRegistry
from tests.helpers import drain


def test_register_creates_open_connection_without_rooms():
    registry = ConnectionRegistry()
    connection = registry.register("c1")

    assert connection.state == ConnectionState.OPEN
    assert connection.rooms == set()
    assert "c1" in registry
    assert registry.get("c1") is connection


def test_register_duplicate_id_fails():
    registry = ConnectionRegistry()
    registry.register("c1")

    with pytest.raises(DuplicateConnection) as exc:
        registry.register("c1")
    assert exc.value.connection_id == "c1"
    assert len(registry) == 1


def test_unregister_closes_and_discards():
    registry = ConnectionRegistry()
    connection = registry.register("c1")

    assert registry.unregister("c1") is True
    assert "c1" not in registry
    assert connection.state == ConnectionState.CLOSED
    # Writer is woken with the close sentinel
    assert drain(connection) == [None]


def test_unregister_is_idempotent():
    registry = ConnectionRegistry()
    registry.register("c1")

    assert registry.unregister("c1") is True
    assert registry.unregister("c1") is False
    assert registry.unregister("never-seen") is False


def test_teardown_hooks_run_while_connection_is_resolvable():
    registry = ConnectionRegistry()
    seen = []
    registry.add_teardown_hook(lambda cid: seen.append((cid, registry.get(cid).state)))
    registry.register("c1")

    registry.unregister("c1")

    assert seen == [("c1", ConnectionState.CLOSING)]


def test_unregister_all():
    registry = ConnectionRegistry()
    for cid in ("a", "b", "c"):
        registry.register(cid)

    assert registry.unregister_all() == 3
    assert len(registry) == 0
    assert registry.total_registered == 3


def test_connection_state_machine_is_one_directional():
    connection = Connection("c1")
    connection.transition_to(ConnectionState.CLOSING)
    connection.transition_to(ConnectionState.CLOSED)

    with pytest.raises(ValueError):
        connection.transition_to(ConnectionState.OPEN)


def test_deliver_to_closed_connection_fails():
    connection = Connection("c1")
    connection.close()

    with pytest.raises(DeliveryFailure):
        connection.deliver({"type": "pong"})


def test_deliver_beyond_queue_size_fails():
    connection = Connection("c1", queue_size=1)
    connection.deliver({"n": 1})

    with pytest.raises(DeliveryFailure) as exc:
        connection.deliver({"n": 2})
    assert exc.value.reason == "send queue full"


def test_close_drops_backlog_even_when_queue_is_full():
    connection = Connection("c1", queue_size=2)
    connection.deliver({"n": 1})
    connection.deliver({"n": 2})

    connection.close()

    assert drain(connection) == [None]
