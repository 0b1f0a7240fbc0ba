import re
from collections import deque
from typing import Dict, Optional

from sanctuary.models import (
    EMOJI_MAX,
    TEXT_MAX,
    Message,
    Room,
    Session,
    VoiceChannel,
    make_id,
    now_ms,
)

DEFAULT_ROOMS = [
    {'id': 'fireside', 'name': 'Fireside Lounge', 'desc': 'Warm, calm conversation + prayer requests.'},
    {'id': 'garden', 'name': 'Prayer Garden', 'desc': 'Quiet, supportive chat. Slow mode vibes.'},
    {'id': 'study', 'name': 'Word Study', 'desc': 'Scripture discussion, questions, and notes.'},
    {'id': 'youth', 'name': 'Youth Hangout', 'desc': 'Chill talk, school life, encouragement.'},
]

DEFAULT_VOICE_CHANNELS = [
    {'id': 'lounge', 'name': 'Lounge'},
    {'id': 'prayer', 'name': 'Prayer Circle'},
    {'id': 'quiet', 'name': 'Quiet Corner'},
]

NEW_ROOM_DESC = 'A new sanctuary room.'
ROOM_NAME_MAX = 28
ROOM_ID_MAX = 18

_SLUG_STRIP = re.compile(r'[^a-z0-9_-]')


def slugify(value) -> str:
    return _SLUG_STRIP.sub('', str(value or '').strip().lower())[:ROOM_ID_MAX]


class RoomStore:
    """Room membership, message logs and typing sets.

    All mutation of a room's ``members``, ``typing`` and ``messages`` goes
    through here. Voice membership is owned by the VoiceCoordinator; this
    store only asks it to evict a session whenever room membership changes.
    """

    def __init__(self, registry, rooms: Dict[str, Room], presence,
                 voice_template=None, message_cap: int = 300,
                 state_messages: int = 50, typing_limit: int = 4):
        self.registry = registry
        self.rooms = rooms
        self.presence = presence
        self.voice = None  # wired by the Sanctuary hub
        self.voice_template = list(voice_template if voice_template is not None else DEFAULT_VOICE_CHANNELS)
        self.message_cap = message_cap
        self.state_messages = state_messages
        self.typing_limit = typing_limit

    def seed(self, rooms=None) -> None:
        for entry in (rooms if rooms is not None else DEFAULT_ROOMS):
            self._add_room(entry['id'], entry['name'], entry.get('desc', ''))

    def get(self, room_id) -> Optional[Room]:
        return self.rooms.get(room_id)

    def _add_room(self, room_id: str, name: str, desc: str) -> Room:
        room = Room(id=room_id, name=name, desc=desc, messages=deque())
        room.voice_channels = [
            VoiceChannel(id=c['id'], name=c['name'], room_id=room_id)
            for c in self.voice_template
        ]
        self.rooms[room_id] = room
        return room

    def create_room(self, name, room_id=None) -> Optional[Room]:
        name = str(name or '').strip()[:ROOM_NAME_MAX]
        if not name:
            return None
        rid = slugify(room_id) or make_id()[:10]
        if rid in self.rooms:
            return None
        room = self._add_room(rid, name, NEW_ROOM_DESC)
        self.presence.broadcast_lobby()
        return room

    # ---- membership ----

    def _remove_member(self, session: Session, room: Room) -> None:
        was_typing = session.id in room.typing
        room.members.discard(session.id)
        room.typing.discard(session.id)
        if session.room_id == room.id:
            session.room_id = None
        if self.voice is not None:
            self.voice.evict(session, room)
        if was_typing:
            self._broadcast_typing(room)
        self.presence.broadcast_roster(room)

    def join(self, session: Session, room_id) -> bool:
        room = self.rooms.get(room_id)
        if room is None:
            return False

        previous = self.rooms.get(session.room_id) if session.room_id else None
        if previous is not None and previous is not room:
            self._remove_member(session, previous)

        room.members.add(session.id)
        session.room_id = room.id

        self.presence.system_toast(room, 'Joined sanctuary', f"{session.name} entered {room.name}.")
        self.presence.send(session.id, 'room:state', self.presence.room_state(room, self.state_messages))
        self.presence.broadcast_roster(room)
        self.presence.broadcast_lobby()
        return True

    def leave(self, session: Session, room_id) -> bool:
        room = self.rooms.get(room_id)
        if room is None or session.id not in room.members:
            return False
        self._remove_member(session, room)
        self.presence.system_toast(room, 'Left sanctuary', f"{session.name} left {room.name}.")
        self.presence.broadcast_lobby()
        return True

    def leave_all(self, session: Session) -> None:
        """Drop every trace of ``session``; used when the connection goes away."""
        room = self.rooms.get(session.room_id) if session.room_id else None
        if room is not None:
            self._remove_member(session, room)
            self.presence.system_toast(room, 'Left sanctuary', f"{session.name} stepped away.")
        if self.voice is not None:
            self.voice.evict(session)
        self.presence.broadcast_lobby()

    # ---- chat ----

    def _broadcast_typing(self, room: Room, skip_sid: Optional[str] = None) -> None:
        names = self.presence.typing_names(room, self.typing_limit)
        self.presence.to_room(room, 'typing:list', names, skip_sid=skip_sid)

    def _member_room(self, session: Session, room_id) -> Optional[Room]:
        room = self.rooms.get(room_id)
        if room is None or session.id not in room.members:
            return None
        return room

    def set_typing(self, session: Session, room_id, is_typing) -> bool:
        room = self._member_room(session, room_id)
        if room is None:
            return False
        if is_typing:
            room.typing.add(session.id)
        else:
            room.typing.discard(session.id)
        self._broadcast_typing(room, skip_sid=session.id)
        return True

    def send_message(self, session: Session, room_id, text) -> Optional[Message]:
        text = str(text or '').strip()[:TEXT_MAX]
        if not text:
            return None
        room = self._member_room(session, room_id)
        if room is None:
            return None

        msg = Message(
            id=make_id(),
            room_id=room.id,
            user=session.to_dict(),
            text=text,
            ts=now_ms(),
        )
        room.messages.append(msg)
        while len(room.messages) > self.message_cap:
            room.messages.popleft()

        room.typing.discard(session.id)
        self._broadcast_typing(room, skip_sid=session.id)

        self.presence.to_room(room, 'message:new', msg.to_dict())
        return msg

    def react(self, session: Session, room_id, msg_id, emoji) -> bool:
        emoji = str(emoji or '')[:EMOJI_MAX]
        if not emoji:
            return False
        room = self._member_room(session, room_id)
        if room is None:
            return False
        msg = room.get_message(msg_id)
        if msg is None:
            return False

        msg.toggle_reaction(emoji, session.id)
        self.presence.to_room(room, 'message:reactions', {'msgId': msg.id, 'reactions': msg.reactions_dict()})
        return True
