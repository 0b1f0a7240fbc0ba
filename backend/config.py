import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma-separated list of origins allowed for HTTP and Socket.IO
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173',
    ).split(',') if o.strip()]
    # Per-room message log size (oldest evicted first)
    MESSAGE_LOG_CAP = int(os.environ.get('MESSAGE_LOG_CAP', '300'))
    # Messages included in the snapshot sent on room join
    ROOM_STATE_MESSAGES = int(os.environ.get('ROOM_STATE_MESSAGES', '50'))
    # Max names in a typing:list broadcast
    TYPING_LIST_LIMIT = int(os.environ.get('TYPING_LIST_LIMIT', '4'))
    # Proximity chat radius for the walk namespace (world pixels)
    WALK_CHAT_RADIUS = float(os.environ.get('WALK_CHAT_RADIUS', '180'))
