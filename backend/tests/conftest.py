import os
import sys
import pytest

# Ensure the backend root (containing the `sanctuary` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from sanctuary import create_app, socketio
from sanctuary.services.hub import Sanctuary


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = '*'
    MESSAGE_LOG_CAP = 300
    ROOM_STATE_MESSAGES = 50
    TYPING_LIST_LIMIT = 4
    WALK_CHAT_RADIUS = 180


class RecordingEmitter:
    """Stands in for the Socket.IO emitter; remembers (sid, event, data)."""

    def __init__(self):
        self.sent = []

    def to_session(self, sid, event, data):
        self.sent.append((sid, event, data))

    def to_sessions(self, sids, event, data, skip_sid=None):
        for sid in list(sids):
            if sid != skip_sid:
                self.to_session(sid, event, data)

    def to_all(self, event, data):
        self.sent.append((None, event, data))

    def events(self, event, sid=...):
        """Payloads of ``event``; filtered to one recipient when ``sid`` is given."""
        return [d for s, e, d in self.sent if e == event and (sid is ... or s == sid)]

    def recipients(self, event):
        return [s for s, e, _ in self.sent if e == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def emitter():
    return RecordingEmitter()


@pytest.fixture()
def state(emitter):
    return Sanctuary(emitter)


@pytest.fixture()
def hello(state):
    def _hello(sid, name=None, badge=None):
        return state.sessions.hello(sid, name if name is not None else sid, badge)
    return _hello


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _connect(namespace='/'):
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace=namespace,
        )
        clients.append((test_client, namespace))
        return test_client

    yield _connect
    for test_client, namespace in clients:
        try:
            if test_client.is_connected(namespace):
                test_client.disconnect(namespace=namespace)
        except RuntimeError:
            pass


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory('/')
