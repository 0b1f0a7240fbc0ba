import logging
from typing import Callable, Optional

import socketio

from .mesh import PeerMesh

log = logging.getLogger(__name__)


class SanctuaryClient:
    """Joins a room over Socket.IO and drives a PeerMesh from its voice events."""

    def __init__(self, url: str, name: str, room_id: str, badge: str = 'Seeker',
                 transport_factory=None, microphone_factory=None,
                 on_notice: Optional[Callable[[str, str, str], None]] = None,
                 sio: Optional[socketio.AsyncClient] = None):
        self.url = url
        self.name = name
        self.badge = badge
        self.room_id = room_id
        self.sio = sio or socketio.AsyncClient(logger=False, engineio_logger=False)
        self.on_notice = on_notice or self._log_notice
        self.mesh = PeerMesh(
            self.sio.emit,
            transport_factory,
            microphone_factory,
            room_id=room_id,
            on_notice=self.on_notice,
        )
        self._bind()

    @staticmethod
    def _log_notice(kind: str, title: str, message: str) -> None:
        log.info("[%s] %s: %s", kind, title, message)

    def _bind(self) -> None:
        self.sio.on('connect', self._on_connect)
        self.sio.on('voice:peers', self.mesh.on_peers)
        self.sio.on('voice:new-peer', self.mesh.on_new_peer)
        self.sio.on('voice:peer-left', self.mesh.on_peer_left)
        self.sio.on('voice:signal', self.mesh.on_signal)
        self.sio.on('toast:system', self._on_toast)

    async def _on_connect(self) -> None:
        self.mesh.local_id = self.sio.get_sid()

    async def _on_toast(self, data) -> None:
        data = data or {}
        self.on_notice(data.get('kind', 'info'), data.get('title', 'System'), data.get('message', ''))

    async def connect(self) -> None:
        await self.sio.connect(self.url)
        self.mesh.local_id = self.sio.get_sid()
        # identity and room come before any voice:join so the server accepts it
        await self.sio.emit('session:hello', {'name': self.name, 'badge': self.badge})
        await self.sio.emit('room:join', {'roomId': self.room_id})

    async def join_voice(self, channel_id: str) -> bool:
        return await self.mesh.join(channel_id)

    async def leave_voice(self) -> bool:
        return await self.mesh.leave()

    async def close(self) -> None:
        await self.mesh.leave()
        await self.sio.disconnect()
