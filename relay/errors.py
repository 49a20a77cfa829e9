class RelayError(Exception):
    """Base class for every error raised by the relay."""


class InvalidRequest(RelayError):
    """A publish request is missing its room key or payload."""


class Unauthorized(RelayError):
    """A publish request did not present the configured publish token."""


class RelayUnavailable(RelayError):
    """The fan-out backend could not accept a publish."""


class DuplicateConnection(RelayError):
    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Connection {connection_id} is already registered")


class ConnectionNotFound(RelayError):
    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Connection {connection_id} is not registered")


class RoomLimitExceeded(RelayError):
    def __init__(self, connection_id: str, room_key: str, reason: str):
        self.connection_id = connection_id
        self.room_key = room_key
        self.reason = reason
        super().__init__(f"Connection {connection_id} cannot join room {room_key}: {reason}")


class DeliveryFailure(RelayError):
    def __init__(self, connection_id: str, reason: str):
        self.connection_id = connection_id
        self.reason = reason
        super().__init__(f"Delivery to connection {connection_id} failed: {reason}")
