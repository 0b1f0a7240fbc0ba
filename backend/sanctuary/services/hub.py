from typing import Dict

from sanctuary.models import Room
from .presence import PresenceBroadcaster
from .rooms import DEFAULT_ROOMS, DEFAULT_VOICE_CHANNELS, RoomStore
from .sessions import SessionRegistry
from .voice import VoiceCoordinator
from .walk import WalkWorld


class Sanctuary:
    """Process-wide coordination state, wired once at startup."""

    def __init__(self, emitter, walk_emitter=None, seed_rooms=None, voice_template=None,
                 message_cap: int = 300, state_messages: int = 50,
                 typing_limit: int = 4, walk_chat_radius: float = 180):
        self.rooms: Dict[str, Room] = {}
        self.sessions = SessionRegistry()
        self.presence = PresenceBroadcaster(self.sessions, self.rooms, emitter)
        self.room_store = RoomStore(
            self.sessions,
            self.rooms,
            self.presence,
            voice_template=voice_template if voice_template is not None else DEFAULT_VOICE_CHANNELS,
            message_cap=message_cap,
            state_messages=state_messages,
            typing_limit=typing_limit,
        )
        self.voice = VoiceCoordinator(self.sessions, self.rooms, self.presence)
        self.room_store.voice = self.voice
        self.walk = WalkWorld(walk_emitter or emitter, chat_radius=walk_chat_radius)
        self.room_store.seed(seed_rooms if seed_rooms is not None else DEFAULT_ROOMS)

    @classmethod
    def from_config(cls, config, emitter, walk_emitter=None):
        return cls(
            emitter,
            walk_emitter=walk_emitter,
            message_cap=int(config.get('MESSAGE_LOG_CAP', 300)),
            state_messages=int(config.get('ROOM_STATE_MESSAGES', 50)),
            typing_limit=int(config.get('TYPING_LIST_LIMIT', 4)),
            walk_chat_radius=float(config.get('WALK_CHAT_RADIUS', 180)),
        )

    def disconnect(self, sid: str) -> bool:
        session = self.sessions.get(sid)
        if session is None:
            return False
        self.room_store.leave_all(session)
        self.sessions.disconnect(sid)
        return True
