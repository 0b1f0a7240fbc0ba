from flask import Blueprint, jsonify

from sanctuary import get_sanctuary

main = Blueprint('main', __name__)


@main.route('/')
def index():
    state = get_sanctuary()
    return jsonify({
        'message': 'Welcome to the Selah Sanctuary presence server!',
        'rooms': len(state.rooms),
        'online': len(state.sessions),
    })
