REDIS_ROOM_CHANNEL = "relay:room:{slug}" # room key - pub/sub channel name
REDIS_ROOM_PATTERN = "relay:room:*" # every room channel, one pattern subscription per instance

# **Channel payload**
# - JSON encoded message payload exactly as received on /emit
# - the room key is recovered from the channel name, not the body
