from typing import Dict, Iterable, List, Optional

from sanctuary.models import Session, safe_badge, safe_name


class SessionRegistry:
    """Live connections keyed by socket id."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def connect(self, sid: str) -> Session:
        session = self._sessions.get(sid)
        if session is None:
            session = self._sessions[sid] = Session(id=sid)
        return session

    def hello(self, sid: str, name=None, badge=None) -> Session:
        session = self.connect(sid)
        session.name = safe_name(name)
        session.badge = safe_badge(badge)
        return session

    def get(self, sid) -> Optional[Session]:
        return self._sessions.get(sid)

    def disconnect(self, sid: str) -> Optional[Session]:
        return self._sessions.pop(sid, None)

    def resolve(self, sids: Iterable[str]) -> List[Session]:
        return [self._sessions[sid] for sid in sids if sid in self._sessions]

    def __contains__(self, sid) -> bool:
        return sid in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
