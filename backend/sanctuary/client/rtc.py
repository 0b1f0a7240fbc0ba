"""aiortc-backed transports and microphone capture for the peer mesh."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

import numpy as np
from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.contrib.media import MediaPlayer, MediaRelay
from aiortc.mediastreams import MediaStreamError
from aiortc.sdp import candidate_from_sdp
from av import AudioFrame

from .speech import rms_level

log = logging.getLogger(__name__)

DEFAULT_ICE_SERVERS = ['stun:stun.l.google.com:19302']


def describe(description) -> dict:
    return {'type': description.type, 'sdp': description.sdp}


def parse_description(data) -> RTCSessionDescription:
    return RTCSessionDescription(sdp=data['sdp'], type=data['type'])


def parse_candidate(data):
    """Browser-style ``{candidate, sdpMid, sdpMLineIndex}`` to an aiortc candidate."""
    raw = data.get('candidate') or ''
    if raw.startswith('candidate:'):
        raw = raw[len('candidate:'):]
    candidate = candidate_from_sdp(raw)
    candidate.sdpMid = data.get('sdpMid')
    candidate.sdpMLineIndex = data.get('sdpMLineIndex')
    return candidate


class GatedAudioTrack(MediaStreamTrack):
    """Passes microphone audio through, or silence while disabled.

    Also records the level of the last frame for the speech detector.
    """

    kind = 'audio'

    def __init__(self, source):
        super().__init__()
        self.source = source
        self.enabled = True
        self.level = 0.0

    async def recv(self):
        frame = await self.source.recv()
        samples = frame.to_ndarray()
        self.level = rms_level(samples)
        if self.enabled:
            return frame
        silent = AudioFrame.from_ndarray(np.zeros_like(samples), format=frame.format.name, layout=frame.layout.name)
        silent.sample_rate = frame.sample_rate
        silent.pts = frame.pts
        silent.time_base = frame.time_base
        return silent


class Microphone:
    """A capture device shared by every link through a MediaRelay."""

    def __init__(self, player: MediaPlayer):
        self.player = player
        self.gate = GatedAudioTrack(player.audio)
        self.relay = MediaRelay()
        # keep frames flowing for the level meter even with no peers
        self._meter = asyncio.ensure_future(self._drain(self.relay.subscribe(self.gate)))

    @classmethod
    async def open(cls, device: str = 'default', fmt: str = 'pulse', options: Optional[dict] = None):
        player = MediaPlayer(device, format=fmt, options=options or {})
        if player.audio is None:
            raise RuntimeError(f"no audio track on {fmt}:{device}")
        return cls(player)

    @staticmethod
    async def _drain(track) -> None:
        try:
            while True:
                await track.recv()
        except MediaStreamError:
            return

    @property
    def level(self) -> float:
        return self.gate.level

    def set_enabled(self, enabled: bool) -> None:
        self.gate.enabled = enabled

    def subscribe(self):
        return self.relay.subscribe(self.gate)

    def stop(self) -> None:
        self._meter.cancel()
        if self.player.audio is not None:
            self.player.audio.stop()


class AiortcTransport:
    """One RTCPeerConnection carrying our microphone and one remote stream."""

    def __init__(self, peer_id: str, microphone: Optional[Microphone],
                 on_state: Callable[[str], Awaitable[None]],
                 ice_servers: List[str],
                 sink: Optional[Callable[[str, AudioFrame], None]] = None):
        self.peer_id = peer_id
        self.on_state = on_state
        self.sink = sink
        self.playback_enabled = True
        self._players: List[asyncio.Future] = []
        self.pc = RTCPeerConnection(RTCConfiguration(iceServers=[RTCIceServer(urls=ice_servers)]))
        if microphone is not None:
            self.pc.addTrack(microphone.subscribe())

        @self.pc.on('connectionstatechange')
        async def on_connectionstatechange():
            await self.on_state(self.pc.connectionState)

        @self.pc.on('track')
        def on_track(track):
            if track.kind == 'audio':
                self._players.append(asyncio.ensure_future(self._play(track)))

    async def _play(self, track) -> None:
        while True:
            try:
                frame = await track.recv()
            except MediaStreamError:
                return
            if self.playback_enabled and self.sink is not None:
                self.sink(self.peer_id, frame)

    async def create_offer(self) -> dict:
        await self.pc.setLocalDescription(await self.pc.createOffer())
        return describe(self.pc.localDescription)

    async def accept_offer(self, data) -> dict:
        await self.pc.setRemoteDescription(parse_description(data))
        await self.pc.setLocalDescription(await self.pc.createAnswer())
        return describe(self.pc.localDescription)

    async def accept_answer(self, data) -> None:
        await self.pc.setRemoteDescription(parse_description(data))

    async def add_candidate(self, data) -> None:
        await self.pc.addIceCandidate(parse_candidate(data))

    def set_playback_enabled(self, enabled: bool) -> None:
        self.playback_enabled = enabled

    async def close(self) -> None:
        for task in self._players:
            task.cancel()
        self._players.clear()
        await self.pc.close()


class AiortcTransportFactory:

    def __init__(self, ice_servers: Optional[List[str]] = None, sink=None):
        self.ice_servers = ice_servers or list(DEFAULT_ICE_SERVERS)
        self.sink = sink

    def create(self, peer_id: str, microphone, on_state) -> AiortcTransport:
        log.debug("new peer connection for %s", peer_id)
        return AiortcTransport(peer_id, microphone, on_state, self.ice_servers, sink=self.sink)
