"""Read-side projections of rooms and voice channels, plus their fan-out.

Nothing here mutates state. Every view is recomputed from the live rooms and
sessions at the moment it is sent, so a broadcast always reflects one
consistent snapshot.
"""

from typing import Dict, List, Optional

from sanctuary.models import Room, Session, VoiceChannel


def _by_name(session: Session):
    return (session.name.lower(), session.name, session.id)


class PresenceBroadcaster:

    def __init__(self, registry, rooms: Dict[str, Room], emitter):
        self.registry = registry
        self.rooms = rooms
        self.emitter = emitter

    # ---- projections ----

    def roster(self, room: Room) -> List[dict]:
        members = sorted(self.registry.resolve(room.members), key=_by_name)
        return [s.to_dict() for s in members]

    def participants(self, channel: VoiceChannel) -> List[dict]:
        members = sorted(self.registry.resolve(channel.members), key=_by_name)
        return [s.to_participant() for s in members]

    def voice_summaries(self, room: Room) -> List[dict]:
        return [c.to_dict() for c in room.voice_channels]

    def voice_counts(self, room: Room) -> List[dict]:
        return [{'id': c.id, 'count': len(c.members)} for c in room.voice_channels]

    def typing_names(self, room: Room, limit: int = 4) -> List[str]:
        return [s.name for s in self.registry.resolve(room.typing)][:limit]

    def lobby_summary(self) -> List[dict]:
        return [
            {
                'id': r.id,
                'name': r.name,
                'desc': r.desc,
                'online': len(r.members),
                'voice': self.voice_summaries(r),
            }
            for r in self.rooms.values()
        ]

    def room_state(self, room: Room, message_limit: int = 50) -> dict:
        messages = list(room.messages)[-message_limit:] if message_limit > 0 else []
        return {
            'room': room.to_dict(),
            'roster': self.roster(room),
            'messages': [m.to_dict() for m in messages],
            'voiceChannels': self.voice_summaries(room),
        }

    # ---- fan-out ----

    def send(self, sid: str, event: str, data) -> None:
        self.emitter.to_session(sid, event, data)

    def to_room(self, room: Room, event: str, data, skip_sid: Optional[str] = None) -> None:
        self.emitter.to_sessions(room.members, event, data, skip_sid=skip_sid)

    def to_channel(self, channel: VoiceChannel, event: str, data, skip_sid: Optional[str] = None) -> None:
        self.emitter.to_sessions(channel.members, event, data, skip_sid=skip_sid)

    def broadcast_lobby(self) -> None:
        self.emitter.to_all('lobby:rooms', self.lobby_summary())

    def broadcast_roster(self, room: Room) -> None:
        self.to_room(room, 'room:roster', self.roster(room))

    def broadcast_participants(self, room: Room, channel: VoiceChannel) -> None:
        self.to_room(room, 'voice:channel:participants', {
            'roomId': room.id,
            'channelId': channel.id,
            'participants': self.participants(channel),
        })

    def broadcast_voice(self, room: Room, channel: Optional[VoiceChannel] = None) -> None:
        """Refresh participant lists (one channel, or all of them) and counts."""
        channels = [channel] if channel is not None else room.voice_channels
        for c in channels:
            self.broadcast_participants(room, c)
        self.to_room(room, 'voice:counts', self.voice_counts(room))

    def system_toast(self, room: Room, title: str, message: str, kind: str = 'presence') -> None:
        self.to_room(room, 'toast:system', {'kind': kind, 'title': title, 'message': message})
