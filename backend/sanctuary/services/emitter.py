from typing import Iterable, Optional


class SocketIOEmitter:
    """Delivers outbound events through the shared Flask-SocketIO server.

    Every connected socket sits in a room named after its own sid, so a
    per-session emit is ``socketio.emit(..., to=sid)``. Room fan-out walks the
    membership set we own instead of socket.io rooms, which keeps the domain
    state the single source of truth for who hears what.
    """

    def __init__(self, socketio, namespace: str = '/'):
        self.socketio = socketio
        self.namespace = namespace

    def to_session(self, sid: str, event: str, data) -> None:
        self.socketio.emit(event, data, to=sid, namespace=self.namespace)

    def to_sessions(self, sids: Iterable[str], event: str, data, skip_sid: Optional[str] = None) -> None:
        for sid in list(sids):
            if sid == skip_sid:
                continue
            self.to_session(sid, event, data)

    def to_all(self, event: str, data) -> None:
        self.socketio.emit(event, data, namespace=self.namespace)
