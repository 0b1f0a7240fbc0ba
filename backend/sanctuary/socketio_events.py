from flask import current_app, request
from flask_socketio import emit
from typing import Any, Dict

from sanctuary import socketio, get_sanctuary

MAIN_NAMESPACE = '/'
WALK_NAMESPACE = '/walk'


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return '' if value is None else str(value)


def _session():
    # Only handle_connect creates sessions; late events after disconnect find none
    return get_sanctuary().sessions.get(_get_sid())


def _dropped(event: str, data: Dict[str, Any]) -> None:
    current_app.logger.debug(f"[drop] sid={_get_sid()} event={event} payload_keys={sorted(data)}")


# ---- session / lobby ----

def handle_connect():
    get_sanctuary().sessions.connect(_get_sid())


def handle_disconnect(*args):
    sid = _get_sid()
    if get_sanctuary().disconnect(sid):
        current_app.logger.info(f"[disconnect] sid={sid}")


def handle_hello(data=None):
    data = _payload(data)
    state = get_sanctuary()
    if _session() is None:
        return
    session = state.sessions.hello(_get_sid(), data.get('name'), data.get('badge'))
    current_app.logger.info(f"[hello] sid={session.id} name={session.name!r}")
    emit('lobby:rooms', state.presence.lobby_summary())


def handle_lobby_get(data=None):
    if _session() is None:
        return
    emit('lobby:rooms', get_sanctuary().presence.lobby_summary())


# ---- rooms and chat ----

def handle_room_create(data=None):
    data = _payload(data)
    if _session() is None:
        return
    room = get_sanctuary().room_store.create_room(data.get('name'), data.get('id'))
    if room is None:
        _dropped('room:create', data)
        return
    current_app.logger.info(f"[room-create] sid={_get_sid()} room={room.id}")


def handle_room_join(data=None):
    data = _payload(data)
    room_id = _text(data, 'roomId')
    session = _session()
    if session is None:
        return
    if not get_sanctuary().room_store.join(session, room_id):
        _dropped('room:join', data)
        return
    current_app.logger.info(f"[room-join] sid={_get_sid()} room={room_id}")


def handle_room_leave(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    if not get_sanctuary().room_store.leave(session, _text(data, 'roomId')):
        _dropped('room:leave', data)


def handle_typing_set(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    get_sanctuary().room_store.set_typing(session, _text(data, 'roomId'), bool(data.get('isTyping')))


def handle_message_send(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    msg = get_sanctuary().room_store.send_message(session, _text(data, 'roomId'), data.get('text'))
    if msg is None:
        _dropped('message:send', data)


def handle_message_react(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    ok = get_sanctuary().room_store.react(
        session, _text(data, 'roomId'), _text(data, 'msgId'), data.get('emoji'),
    )
    if not ok:
        _dropped('message:react', data)


# ---- voice ----

def handle_voice_join(data=None):
    data = _payload(data)
    room_id, channel_id = _text(data, 'roomId'), _text(data, 'channelId')
    session = _session()
    if session is None:
        return
    if not get_sanctuary().voice.join_voice(session, room_id, channel_id):
        _dropped('voice:join', data)
        return
    current_app.logger.info(f"[voice-join] sid={_get_sid()} room={room_id} channel={channel_id}")


def handle_voice_leave(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    if get_sanctuary().voice.leave_voice(session, _text(data, 'roomId')):
        current_app.logger.info(f"[voice-leave] sid={_get_sid()} room={_text(data, 'roomId')}")


def handle_voice_state(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    # Older clients omit roomId; the session's current room is implied
    room_id = _text(data, 'roomId') or (session.room_id or '')
    get_sanctuary().voice.set_state(
        session, room_id, _text(data, 'channelId'),
        bool(data.get('muted')), bool(data.get('deafened')),
    )


def handle_voice_speaking(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    room_id = _text(data, 'roomId') or (session.room_id or '')
    get_sanctuary().voice.set_speaking(session, room_id, _text(data, 'channelId'), bool(data.get('speaking')))


def handle_voice_signal(data=None):
    data = _payload(data)
    session = _session()
    if session is None:
        return
    room_id = _text(data, 'roomId') or (session.room_id or '')
    ok = get_sanctuary().voice.relay_signal(
        session, _text(data, 'to'), room_id, _text(data, 'channelId'),
        _text(data, 'type'), data.get('data'),
    )
    if not ok:
        _dropped('voice:signal', data)


# ---- walk namespace ----

def handle_walk_join(data=None):
    data = _payload(data)
    player = get_sanctuary().walk.join(_get_sid(), data.get('name'))
    current_app.logger.info(f"[walk-join] sid={player.id} name={player.name!r}")


def handle_walk_pos(data=None):
    data = _payload(data)
    get_sanctuary().walk.move(_get_sid(), data.get('x'), data.get('y'))


def handle_walk_chat(data=None):
    data = _payload(data)
    get_sanctuary().walk.chat(_get_sid(), data.get('text'))


def handle_walk_disconnect(*args):
    get_sanctuary().walk.leave(_get_sid())


MAIN_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'session:hello': handle_hello,
    'lobby:get': handle_lobby_get,
    'room:create': handle_room_create,
    'room:join': handle_room_join,
    'room:leave': handle_room_leave,
    'typing:set': handle_typing_set,
    'message:send': handle_message_send,
    'message:react': handle_message_react,
    'voice:join': handle_voice_join,
    'voice:leave': handle_voice_leave,
    'voice:state': handle_voice_state,
    'voice:speaking': handle_voice_speaking,
    'voice:signal': handle_voice_signal,
}

WALK_HANDLERS = {
    'disconnect': handle_walk_disconnect,
    'walk:join': handle_walk_join,
    'walk:pos': handle_walk_pos,
    'walk:chat': handle_walk_chat,
}


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers.

    The chat/voice protocol lives on the default namespace '/'; the movement
    and proximity-chat protocol lives on '/walk'.
    """
    for event, handler in MAIN_HANDLERS.items():
        socketio.on_event(event, handler, namespace=MAIN_NAMESPACE)
    for event, handler in WALK_HANDLERS.items():
        socketio.on_event(event, handler, namespace=WALK_NAMESPACE)
