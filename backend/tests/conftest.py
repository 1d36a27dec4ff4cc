import os
import sys
import pytest

# Ensure the backend root (containing the `cyberguard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from cyberguard import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_PLAYERS = 8
    MIN_PLAYERS = 2
    ROUND_END_DELAY_SEC = 0
    STORE_MAX_RETRIES = 5


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import cyberguard.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sync(flask_app, clock):
    """A room service on the app's store with a controllable clock."""
    from cyberguard.services.games import build_mini_games
    from cyberguard.services.rooms import RoomSync
    from cyberguard.store import document_store
    return RoomSync(document_store, build_mini_games(flask_app.config), clock=clock)


@pytest.fixture()
def controllers(sync, clock):
    from cyberguard.services.games import RoundControllers
    return RoundControllers(sync, clock=clock)


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
