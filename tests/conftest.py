import os

import pytest

# Tests build their own relays; never pick up a developer's deployment settings.
os.environ["RELAY_BACKEND"] = "memory"
os.environ.pop("RELAY_PUBLISH_TOKEN", None)

from relay.hub import Relay  # noqa: E402


@pytest.fixture
def relay() -> Relay:
    return Relay(max_room_size=0, max_rooms_per_connection=0, send_queue_size=100, publish_token=None)
