from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Room services read capacity, time limits and retry budget from config
    from cyberguard.services.rooms import room_sync
    room_sync.init_app(flask_app)

    from cyberguard.main import main
    flask_app.register_blueprint(main)

    from cyberguard.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Register Socket.IO event handlers
    # Importing here ensures the handlers bind to the initialized socketio instance
    from cyberguard.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the document tables."""
        import cyberguard.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('delete-room')
    @click.argument('room_id')
    def delete_room_command(room_id):
        """Deletes a room document. Watching clients are sent back to the lobby."""
        from cyberguard.errors import RoomNotFound
        from cyberguard.services.rooms import round_controllers
        with flask_app.app_context():
            try:
                round_controllers.delete_room(room_id)
            except RoomNotFound:
                raise click.ClickException(f'Room {room_id} not found')
            print(f'Room {room_id} deleted.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(delete_room_command)

    return flask_app
