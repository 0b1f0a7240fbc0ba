import math
import random
from dataclasses import dataclass
from typing import Dict, Optional

from sanctuary.models import make_id, now_ms, safe_name

WORLD_MIN_X, WORLD_MAX_X = 40, 1240
WORLD_MIN_Y, WORLD_MAX_Y = 40, 840
WALK_CHAT_MAX = 240


def clamp(n, lo, hi):
    return max(lo, min(hi, n))


@dataclass
class WalkPlayer:
    id: str
    name: str
    x: float
    y: float
    ts: int

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'x': self.x, 'y': self.y, 'ts': self.ts}


class WalkWorld:
    """Positions and proximity chat for the ``/walk`` namespace."""

    def __init__(self, emitter, chat_radius: float = 180):
        self.emitter = emitter
        self.chat_radius = chat_radius
        self.players: Dict[str, WalkPlayer] = {}

    def join(self, sid: str, name=None) -> WalkPlayer:
        player = WalkPlayer(
            id=sid,
            name=safe_name(name),
            x=240 + random.random() * 280,
            y=240 + random.random() * 220,
            ts=now_ms(),
        )
        self.players[sid] = player
        self.emitter.to_session(sid, 'walk:state:init', {
            'you': player.to_dict(),
            'players': [p.to_dict() for p in self.players.values()],
        })
        self.emitter.to_sessions(self.players.keys(), 'walk:player:join', player.to_dict(), skip_sid=sid)
        return player

    def move(self, sid: str, x, y) -> Optional[WalkPlayer]:
        player = self.players.get(sid)
        if player is None:
            return None
        player.x = clamp(_number(x, player.x), WORLD_MIN_X, WORLD_MAX_X)
        player.y = clamp(_number(y, player.y), WORLD_MIN_Y, WORLD_MAX_Y)
        player.ts = now_ms()
        self.emitter.to_sessions(self.players.keys(), 'walk:player:update', {
            'id': sid, 'x': player.x, 'y': player.y, 'ts': player.ts,
        }, skip_sid=sid)
        return player

    def chat(self, sid: str, text) -> Optional[dict]:
        player = self.players.get(sid)
        if player is None:
            return None
        text = str(text or '').strip()[:WALK_CHAT_MAX]
        if not text:
            return None
        msg = {
            'id': make_id(),
            'from': {'id': sid, 'name': player.name},
            'text': text,
            'x': player.x,
            'y': player.y,
            'ts': now_ms(),
            'radius': self.chat_radius,
        }
        self.emitter.to_session(sid, 'walk:chat:recv', msg)
        for other in list(self.players.values()):
            if other.id == sid:
                continue
            if math.hypot(other.x - player.x, other.y - player.y) <= self.chat_radius:
                self.emitter.to_session(other.id, 'walk:chat:recv', msg)
        return msg

    def leave(self, sid: str) -> bool:
        player = self.players.pop(sid, None)
        if player is None:
            return False
        self.emitter.to_sessions(self.players.keys(), 'walk:player:leave', {'id': sid})
        return True


def _number(value, fallback):
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(n) or n == 0:
        return fallback
    return n
