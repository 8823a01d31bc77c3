import os
import sys
import pytest

# Ensure the backend root (containing the `matchroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from matchroom import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    SOCKETIO_NAMESPACE = '/ws'
    GAME_TIME_SECONDS = 60
    INCREMENT_SECONDS = 3
    TICK_INTERVAL_SEC = 1
    CHAT_MAX_LENGTH = 20


class RecordingTransport:
    """Collects everything the router would send over Socket.IO."""

    def __init__(self):
        self.sent = []
        self.rooms = {}
        self.spawned = []

    def send(self, sid, event, payload):
        self.sent.append(('direct', sid, event, payload))

    def broadcast(self, room, event, payload, skip_sid=None):
        self.sent.append(('room', room, event, payload, skip_sid))

    def enter_room(self, sid, room):
        self.rooms.setdefault(room, set()).add(sid)

    def spawn(self, target, *args):
        self.spawned.append((target, args))

    def sleep(self, seconds):
        pass

    def events(self):
        return [entry[2] for entry in self.sent]

    def to(self, sid):
        """Events a given sid would receive, honouring rooms and skips."""
        received = []
        for entry in self.sent:
            if entry[0] == 'direct' and entry[1] == sid:
                received.append((entry[2], entry[3]))
            elif entry[0] == 'room' and sid in self.rooms.get(entry[1], set()) and entry[4] != sid:
                received.append((entry[2], entry[3]))
        return received

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import matchroom.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def router(flask_app):
    match_router = flask_app.extensions['matches']
    match_router.transport = RecordingTransport()
    return match_router


@pytest.fixture()
def transport(router):
    return router.transport


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
