import random
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set

DEFAULT_NAME = 'Guest'
DEFAULT_BADGE = 'Seeker'
NAME_MAX = 24
BADGE_MAX = 18
TEXT_MAX = 2000
EMOJI_MAX = 8


def now_ms() -> int:
    return int(time.time() * 1000)


def make_id() -> str:
    """Short time-ordered id: base36 milliseconds plus a random suffix."""
    ms = now_ms()
    digits = '0123456789abcdefghijklmnopqrstuvwxyz'
    out = ''
    while ms:
        ms, rem = divmod(ms, 36)
        out = digits[rem] + out
    return f"{out or '0'}-{uuid.uuid4().hex[:7]}"


def safe_name(name) -> str:
    s = str(name or '').strip()[:NAME_MAX]
    return s if s else f"Guest{random.randint(1000, 9999)}"


def safe_badge(badge) -> str:
    s = str(badge or '')[:BADGE_MAX]
    return s if s else DEFAULT_BADGE


@dataclass
class Session:
    id: str
    name: str = DEFAULT_NAME
    badge: str = DEFAULT_BADGE
    room_id: Optional[str] = None
    voice_channel_id: Optional[str] = None
    muted: bool = False
    deafened: bool = False
    speaking: bool = False

    def reset_voice_flags(self) -> None:
        self.muted = False
        self.deafened = False
        self.speaking = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'badge': self.badge,
        }

    def to_participant(self):
        return {
            'id': self.id,
            'name': self.name,
            'badge': self.badge,
            'muted': self.muted,
            'deafened': self.deafened,
            'speaking': self.speaking,
        }


@dataclass
class VoiceChannel:
    id: str
    name: str
    room_id: str
    members: Set[str] = field(default_factory=set)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'count': len(self.members),
        }


@dataclass
class Reaction:
    by: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.by)

    def to_dict(self):
        return {'count': self.count, 'by': list(self.by)}


@dataclass
class Message:
    id: str
    room_id: str
    user: Dict[str, str]
    text: str
    ts: int
    reactions: Dict[str, Reaction] = field(default_factory=dict)

    def toggle_reaction(self, emoji: str, sid: str) -> bool:
        """Flip ``sid``'s vote for ``emoji``. Returns True if the vote is now on."""
        entry = self.reactions.get(emoji)
        if entry is None:
            entry = self.reactions[emoji] = Reaction()
        if sid in entry.by:
            entry.by.remove(sid)
            if not entry.by:
                del self.reactions[emoji]
            return False
        entry.by.append(sid)
        return True

    def reactions_dict(self):
        return {emoji: r.to_dict() for emoji, r in self.reactions.items()}

    def to_dict(self):
        return {
            'id': self.id,
            'roomId': self.room_id,
            'user': dict(self.user),
            'text': self.text,
            'ts': self.ts,
            'reactions': self.reactions_dict(),
        }


@dataclass
class Room:
    id: str
    name: str
    desc: str = ''
    members: Set[str] = field(default_factory=set)
    typing: Set[str] = field(default_factory=set)
    messages: Deque[Message] = field(default_factory=deque)
    voice_channels: List[VoiceChannel] = field(default_factory=list)

    def get_channel(self, channel_id) -> Optional[VoiceChannel]:
        for channel in self.voice_channels:
            if channel.id == channel_id:
                return channel
        return None

    def get_message(self, msg_id) -> Optional[Message]:
        for msg in self.messages:
            if msg.id == msg_id:
                return msg
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'desc': self.desc,
        }
