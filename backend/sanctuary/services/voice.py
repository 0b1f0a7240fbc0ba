"""Voice channel membership and the negotiation relay.

The coordinator never touches media. It keeps track of who is in which
channel, hands each newcomer the roster it must offer to, and forwards
offer/answer/ice payloads between two sessions only while both sit in the
same channel of the same room.
"""

from typing import Dict, Optional

from sanctuary.models import Room, Session, VoiceChannel

SIGNAL_TYPES = ('offer', 'answer', 'ice')


class VoiceCoordinator:

    def __init__(self, registry, rooms: Dict[str, Room], presence):
        self.registry = registry
        self.rooms = rooms
        self.presence = presence
        # sid -> channel the session is active in
        self._active: Dict[str, VoiceChannel] = {}

    def channel_of(self, session: Session) -> Optional[VoiceChannel]:
        return self._active.get(session.id)

    def _active_in(self, session: Session, room_id, channel_id=None) -> Optional[VoiceChannel]:
        channel = self._active.get(session.id)
        if channel is None or channel.room_id != room_id:
            return None
        if channel_id is not None and channel.id != channel_id:
            return None
        return channel

    def _detach(self, session: Session, channel: VoiceChannel) -> None:
        channel.members.discard(session.id)
        self._active.pop(session.id, None)
        session.voice_channel_id = None
        session.reset_voice_flags()

        room = self.rooms.get(channel.room_id)
        self.presence.to_channel(channel, 'voice:peer-left', {
            'roomId': channel.room_id,
            'channelId': channel.id,
            'id': session.id,
        })
        if room is not None:
            self.presence.broadcast_voice(room, channel)

    def evict(self, session: Session, room: Optional[Room] = None) -> bool:
        """Drop ``session`` from its channel; limited to ``room`` when given."""
        channel = self._active.get(session.id)
        if channel is None:
            return False
        if room is not None and channel.room_id != room.id:
            return False
        self._detach(session, channel)
        return True

    def join_voice(self, session: Session, room_id, channel_id) -> bool:
        room = self.rooms.get(room_id)
        if room is None or session.id not in room.members:
            return False
        channel = room.get_channel(channel_id)
        if channel is None:
            return False

        current = self._active.get(session.id)
        if current is channel:
            return False
        if current is not None:
            self._detach(session, current)

        peers = self.registry.resolve(channel.members)

        channel.members.add(session.id)
        self._active[session.id] = channel
        session.voice_channel_id = channel.id
        session.reset_voice_flags()

        # The newcomer offers to everyone already present; they only prepare.
        self.presence.send(session.id, 'voice:peers', {
            'roomId': room.id,
            'channelId': channel.id,
            'peers': [p.to_dict() for p in peers],
        })
        for peer in peers:
            self.presence.send(peer.id, 'voice:new-peer', {
                'roomId': room.id,
                'channelId': channel.id,
                'peer': session.to_dict(),
            })

        self.presence.broadcast_voice(room, channel)
        self.presence.broadcast_lobby()
        return True

    def leave_voice(self, session: Session, room_id) -> bool:
        channel = self._active_in(session, room_id)
        if channel is None:
            return False
        self._detach(session, channel)
        self.presence.broadcast_lobby()
        return True

    def set_state(self, session: Session, room_id, channel_id, muted, deafened) -> bool:
        channel = self._active_in(session, room_id, channel_id)
        if channel is None:
            return False
        session.deafened = bool(deafened)
        # deafening always takes the mic with it
        session.muted = bool(muted) or session.deafened
        if session.muted:
            session.speaking = False
        self.presence.broadcast_participants(self.rooms[channel.room_id], channel)
        return True

    def set_speaking(self, session: Session, room_id, channel_id, speaking) -> bool:
        channel = self._active_in(session, room_id, channel_id)
        if channel is None:
            return False
        speaking = bool(speaking)
        if session.speaking == speaking:
            return False
        session.speaking = speaking
        self.presence.to_room(self.rooms[channel.room_id], 'voice:speaking', {
            'id': session.id,
            'roomId': channel.room_id,
            'channelId': channel.id,
            'speaking': speaking,
        }, skip_sid=session.id)
        return True

    def relay_signal(self, sender: Session, to_id, room_id, channel_id, sig_type, data) -> bool:
        if sig_type not in SIGNAL_TYPES:
            return False
        channel = self._active_in(sender, room_id, channel_id)
        if channel is None:
            return False
        if to_id == sender.id or to_id not in channel.members:
            return False
        self.presence.send(to_id, 'voice:signal', {
            'from': sender.id,
            'roomId': channel.room_id,
            'channelId': channel.id,
            'type': sig_type,
            'data': data,
        })
        return True
