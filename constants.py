import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
RELOAD = os.getenv("RELOAD", "false").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

DEFAULT_STUN_SERVERS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
    "stun:stun2.l.google.com:19302",
]
STUN_SERVERS = [url.strip() for url in os.getenv("STUN_SERVERS", ",".join(DEFAULT_STUN_SERVERS)).split(",") if url.strip()]

TURN_SERVER_URL = os.getenv("TURN_SERVER_URL", None)
TURN_USERNAME = os.getenv("TURN_USERNAME", None)
TURN_CREDENTIAL = os.getenv("TURN_CREDENTIAL", None)

# 0 disables the cap
MAX_ROOM_CAPACITY = int(os.getenv("MAX_ROOM_CAPACITY", 10))

SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", 60))
STALE_ROOM_SECONDS = float(os.getenv("STALE_ROOM_SECONDS", 300))

# Frames queued per connection before new ones are dropped; 0 disables the bound
OUTBOX_MAX_FRAMES = int(os.getenv("OUTBOX_MAX_FRAMES", 256))
