from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from matchroom.main import main
    flask_app.register_blueprint(main)

    from matchroom.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    # Live match state: one registry and router per app
    from matchroom.services.matches.rules import ChessRules
    from matchroom.services.matches.store import MatchStore
    from matchroom.services.matches.registry import SessionRegistry
    from matchroom.services.matches.router import EventRouter
    from matchroom.services.matches.transport import SocketIOTransport
    store = MatchStore()
    registry = SessionRegistry(store, ChessRules(), flask_app.config, flask_app.logger)
    transport = SocketIOTransport(socketio, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'))
    flask_app.extensions['matches'] = EventRouter(flask_app, registry, store, transport)

    from matchroom.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the match tables."""
        import matchroom.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
