from flask import Blueprint, jsonify, request, current_app

from sanctuary import get_sanctuary
from sanctuary.services.rooms import slugify

rooms = Blueprint('rooms', __name__)


@rooms.route('', methods=['GET'])
def list_rooms():
    """
    Lobby summary: every room with its online count and voice channel counts.
    """
    return jsonify(get_sanctuary().presence.lobby_summary())


@rooms.route('', methods=['POST'])
def create_room():
    """
    Creates a room. Mirrors the room:create socket event but reports why a
    request was refused.
    """
    data = request.get_json(silent=True) or {}
    name = str(data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Room name is required'}), 400

    state = get_sanctuary()
    requested_id = slugify(data.get('id'))
    if requested_id and requested_id in state.rooms:
        return jsonify({'error': 'Room already exists'}), 409

    room = state.room_store.create_room(name, requested_id or None)
    if room is None:
        return jsonify({'error': 'Room could not be created'}), 409

    current_app.logger.info(f"[room-create] http room={room.id}")
    summary = next(r for r in state.presence.lobby_summary() if r['id'] == room.id)
    return jsonify(summary), 201


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    state = get_sanctuary()
    room = state.room_store.get(room_id)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify({
        'room': room.to_dict(),
        'roster': state.presence.roster(room),
        'voiceChannels': state.presence.voice_summaries(room),
    })
