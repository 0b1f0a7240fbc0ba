from flask import Flask, current_app
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

# Handlers run one at a time in receive order; in-memory state has no locks
socketio = SocketIO(async_mode=None, async_handlers=False)


def get_sanctuary(flask_app=None):
    """Return the coordination state attached to ``flask_app`` (or current_app)."""
    if flask_app is None:
        flask_app = current_app
    return flask_app.extensions['sanctuary']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # In-memory state lives as long as the process; restart clears everything
    from sanctuary.services.emitter import SocketIOEmitter
    from sanctuary.services.hub import Sanctuary
    flask_app.extensions['sanctuary'] = Sanctuary.from_config(
        flask_app.config,
        SocketIOEmitter(socketio, namespace='/'),
        walk_emitter=SocketIOEmitter(socketio, namespace='/walk'),
    )

    from sanctuary.main import main
    flask_app.register_blueprint(main)

    from sanctuary.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Register Socket.IO event handlers against the shared socketio instance
    from sanctuary.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('rooms')
    def rooms_command():
        """Lists rooms and their voice channels."""
        state = get_sanctuary(flask_app)
        for room in state.rooms.values():
            channels = ', '.join(c.name for c in room.voice_channels)
            click.echo(f"{room.id:<12} {room.name:<28} online={len(room.members)} voice=[{channels}]")

    flask_app.cli.add_command(rooms_command)

    flask_app.logger.info(f"[startup] rooms={len(flask_app.extensions['sanctuary'].rooms)}")
    return flask_app
