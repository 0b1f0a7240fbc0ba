"""Client-side peer mesh for one voice channel.

One PeerLink per other channel member. The server tells us who to offer to
(``voice:peers``) and who will offer to us (``voice:new-peer``); everything
else arrives as relayed ``voice:signal`` messages. The link map is only ever
touched from the event loop thread and is updated before any await, so a
leave always wins over a negotiation that is still in flight.
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from .speech import DEFAULT_INTERVAL, DEFAULT_THRESHOLD, SpeechDetector

log = logging.getLogger(__name__)

DROP_STATES = ('failed', 'disconnected', 'closed')


class LinkState(str, Enum):
    IDLE = 'idle'
    OFFER_SENT = 'offer_sent'
    AWAITING_OFFER = 'awaiting_offer'
    ANSWER_SENT = 'answer_sent'
    CONNECTED = 'connected'
    CLOSED = 'closed'


class PeerLink:
    """Negotiation state for the audio link to a single peer.

    Initiator: idle -> offer_sent -> connected -> closed
    Responder: awaiting_offer -> answer_sent -> connected -> closed
    """

    def __init__(self, peer_id: str, initiator: bool, transport=None):
        self.peer_id = peer_id
        self.initiator = initiator
        self.transport = transport
        self.state = LinkState.IDLE if initiator else LinkState.AWAITING_OFFER

    @property
    def closed(self) -> bool:
        return self.state is LinkState.CLOSED

    async def make_offer(self) -> dict:
        offer = await self.transport.create_offer()
        if not self.closed:
            self.state = LinkState.OFFER_SENT
        return offer

    async def accept_offer(self, description) -> dict:
        answer = await self.transport.accept_offer(description)
        if not self.closed:
            self.state = LinkState.ANSWER_SENT
        return answer

    async def accept_answer(self, description) -> bool:
        if self.state is not LinkState.OFFER_SENT:
            return False
        await self.transport.accept_answer(description)
        if not self.closed:
            self.state = LinkState.CONNECTED
        return True

    async def add_candidate(self, candidate) -> bool:
        if self.closed:
            return False
        await self.transport.add_candidate(candidate)
        return True

    def mark_connected(self) -> None:
        if not self.closed:
            self.state = LinkState.CONNECTED

    def set_playback(self, enabled: bool) -> None:
        self.transport.set_playback_enabled(enabled)

    async def close(self) -> None:
        if self.closed:
            return
        self.state = LinkState.CLOSED
        await self.transport.close()


class PeerMesh:

    def __init__(self, emit: Callable[[str, dict], Awaitable[None]],
                 transport_factory,
                 microphone_factory: Callable[[], Awaitable[object]],
                 room_id: Optional[str] = None,
                 local_id: Optional[str] = None,
                 on_notice: Optional[Callable[[str, str, str], None]] = None,
                 speech_threshold: float = DEFAULT_THRESHOLD,
                 speech_interval: float = DEFAULT_INTERVAL):
        self.emit = emit
        self.transport_factory = transport_factory
        self.microphone_factory = microphone_factory
        self.room_id = room_id
        self.local_id = local_id
        self.on_notice = on_notice
        self.speech_threshold = speech_threshold
        self.speech_interval = speech_interval

        self.links: Dict[str, PeerLink] = {}
        self.channel_id: Optional[str] = None
        self.joining: Optional[str] = None
        self.microphone = None
        self.detector: Optional[SpeechDetector] = None
        self.muted = False
        self.deafened = False

    def _notice(self, kind: str, title: str, message: str) -> None:
        if self.on_notice is not None:
            self.on_notice(kind, title, message)

    def _ours(self, payload: dict) -> bool:
        if payload.get('roomId') != self.room_id:
            return False
        return self.channel_id is not None and payload.get('channelId') == self.channel_id

    # ---- local lifecycle ----

    async def join(self, channel_id: str) -> bool:
        if not channel_id or channel_id == self.channel_id:
            return False
        if channel_id == self.joining:
            # Still unconfirmed; the server may have dropped the first request
            await self.emit('voice:join', {'roomId': self.room_id, 'channelId': channel_id})
            return True
        if self.channel_id or self.joining:
            await self.leave()

        try:
            microphone = await self.microphone_factory()
        except Exception as exc:
            log.warning("microphone unavailable: %s", exc)
            self._notice('danger', 'Microphone blocked', 'Allow mic permission to use voice.')
            return False

        self.microphone = microphone
        self.muted = False
        self.deafened = False
        self.microphone.set_enabled(True)
        self.joining = channel_id

        self.detector = SpeechDetector(
            lambda: microphone.level,
            self._emit_speaking,
            gate=lambda: self.channel_id is not None and not self.muted,
            threshold=self.speech_threshold,
            interval=self.speech_interval,
        )
        self.detector.start()
        await self.emit('voice:join', {'roomId': self.room_id, 'channelId': channel_id})
        return True

    async def leave(self) -> bool:
        """Drop every link and the microphone. State is Idle before the first await."""
        if not self.channel_id and not self.joining:
            return False
        previous = self.channel_id or self.joining
        self.channel_id = None
        self.joining = None

        links = list(self.links.values())
        self.links.clear()
        for link in links:
            link.state = LinkState.CLOSED

        if self.detector is not None:
            self.detector.stop()
            self.detector = None
        microphone, self.microphone = self.microphone, None

        await self.emit('voice:leave', {'roomId': self.room_id, 'channelId': previous})
        for link in links:
            await link.transport.close()
        if microphone is not None:
            microphone.stop()
        log.info("left voice channel %s", previous)
        return True

    # ---- mute / deafen ----

    def _apply_microphone(self) -> None:
        if self.microphone is not None:
            self.microphone.set_enabled(not self.muted)

    async def _emit_state(self) -> None:
        if not self.channel_id:
            return
        await self.emit('voice:state', {
            'roomId': self.room_id,
            'channelId': self.channel_id,
            'muted': self.muted,
            'deafened': self.deafened,
        })

    async def set_muted(self, muted: bool) -> bool:
        # Deafened always implies muted
        self.muted = bool(muted) or self.deafened
        self._apply_microphone()
        await self._emit_state()
        return self.muted

    async def toggle_mute(self) -> bool:
        return await self.set_muted(not self.muted)

    async def set_deafened(self, deafened: bool) -> bool:
        self.deafened = bool(deafened)
        if self.deafened:
            self.muted = True
        self._apply_microphone()
        for link in self.links.values():
            link.set_playback(not self.deafened)
        await self._emit_state()
        return self.deafened

    async def toggle_deafen(self) -> bool:
        return await self.set_deafened(not self.deafened)

    async def _emit_speaking(self, speaking: bool) -> None:
        if not self.channel_id:
            return
        await self.emit('voice:speaking', {
            'roomId': self.room_id,
            'channelId': self.channel_id,
            'speaking': speaking,
        })

    # ---- links ----

    def _ensure_link(self, peer_id: str, initiator: bool) -> PeerLink:
        link = self.links.get(peer_id)
        if link is not None:
            return link
        link = PeerLink(peer_id, initiator)

        async def on_state(state: str) -> None:
            await self._on_transport_state(link, state)

        link.transport = self.transport_factory.create(peer_id, self.microphone, on_state)
        link.set_playback(not self.deafened)
        self.links[peer_id] = link
        return link

    def _current(self, link: PeerLink) -> bool:
        return not link.closed and self.links.get(link.peer_id) is link

    async def _drop(self, peer_id: str) -> bool:
        link = self.links.pop(peer_id, None)
        if link is None:
            return False
        await link.close()
        return True

    async def _on_transport_state(self, link: PeerLink, state: str) -> None:
        if not self._current(link):
            return
        if state == 'connected':
            link.mark_connected()
        elif state in DROP_STATES:
            log.info("link to %s ended (%s)", link.peer_id, state)
            await self._drop(link.peer_id)

    async def _signal(self, peer_id: str, sig_type: str, data) -> None:
        await self.emit('voice:signal', {
            'to': peer_id,
            'roomId': self.room_id,
            'channelId': self.channel_id,
            'type': sig_type,
            'data': data,
        })

    async def _offer_to(self, peer_id: str) -> None:
        link = self._ensure_link(peer_id, initiator=True)
        if not link.initiator:
            return
        try:
            offer = await link.make_offer()
        except Exception as exc:
            log.warning("offer to %s failed: %s", peer_id, exc)
            self._notice('warning', 'Voice', 'Could not reach a voice peer.')
            return
        if self._current(link):
            await self._signal(peer_id, 'offer', offer)

    # ---- server events ----

    async def on_peers(self, payload: dict) -> None:
        if payload.get('roomId') != self.room_id:
            return
        channel_id = payload.get('channelId')
        if self.joining is None or channel_id != self.joining:
            return
        self.channel_id = channel_id
        self.joining = None

        # the newcomer offers to everyone already present
        for peer in payload.get('peers') or []:
            peer_id = peer.get('id')
            if peer_id and peer_id != self.local_id:
                await self._offer_to(peer_id)
        self._notice('success', 'Voice connected', f"Joined {channel_id}")

    async def on_new_peer(self, payload: dict) -> None:
        if not self._ours(payload) or self.microphone is None:
            return
        peer = payload.get('peer') or {}
        if not peer.get('id'):
            return
        self._ensure_link(peer['id'], initiator=False)
        self._notice('presence', 'Voice', f"{peer.get('name', 'Someone')} joined voice.")

    async def on_peer_left(self, payload: dict) -> None:
        if not self._ours(payload):
            return
        if await self._drop(payload.get('id')):
            self._notice('presence', 'Voice', 'Someone left voice.')

    async def on_signal(self, payload: dict) -> None:
        if not self._ours(payload):
            return
        peer_id = payload.get('from')
        sig_type = payload.get('type')
        data = payload.get('data')
        if not peer_id:
            return

        try:
            if sig_type == 'offer':
                await self._answer(peer_id, data)
            elif sig_type == 'answer':
                link = self.links.get(peer_id)
                if link is not None:
                    await link.accept_answer(data)
            elif sig_type == 'ice':
                link = self.links.get(peer_id)
                if link is not None and data:
                    await link.add_candidate(data)
        except Exception as exc:
            log.warning("voice signal from %s failed: %s", peer_id, exc)
            self._notice('warning', 'Voice', 'A voice connection hit a snag.')

    async def _answer(self, peer_id: str, offer) -> None:
        link = self.links.get(peer_id)
        if link is not None and link.state is LinkState.OFFER_SENT:
            # Glare: both sides offered. The lower session id keeps the
            # initiator role; the other side drops its offer and answers.
            if self.local_id is not None and self.local_id < peer_id:
                log.debug("ignoring glare offer from %s", peer_id)
                return
            await self._drop(peer_id)
            link = None
        if link is None:
            link = self._ensure_link(peer_id, initiator=False)

        answer = await link.accept_offer(offer)
        if self._current(link):
            await self._signal(peer_id, 'answer', answer)
