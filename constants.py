import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3001))

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
# Seconds; bounds how long a stalled Redis can hold a publish or a connect
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", 2.0))

# "memory" fans out inside this process only, "redis" distributes publishes to every instance
RELAY_BACKEND = os.getenv("RELAY_BACKEND", "memory")

ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

# Shared secret the persistence service presents on /emit. Unset means the relay trusts its network.
PUBLISH_TOKEN = os.getenv("RELAY_PUBLISH_TOKEN", None)

# 0 means unbounded
MAX_ROOMS_PER_CONNECTION = int(os.getenv("MAX_ROOMS_PER_CONNECTION", 0))
MAX_ROOM_SIZE = int(os.getenv("MAX_ROOM_SIZE", 0))

SEND_QUEUE_SIZE = int(os.getenv("SEND_QUEUE_SIZE", 100))

RELAY_URL = os.getenv("RELAY_URL", "http://localhost:3001")
RELAY_TIMEOUT = float(os.getenv("RELAY_TIMEOUT", 2.0))
