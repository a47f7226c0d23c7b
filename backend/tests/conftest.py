import json
import os
import sys
import pytest

# Ensure the backend root (containing the `hallserver` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from hallserver import create_app, db, socketio
from hallserver.services.hall.errors import NotFound
from hallserver.services.hall.profile_cache import CachedProfile


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    USER_SERVICE_URL = 'http://user-service.test'
    USER_SERVICE_SHARED_SECRET = 'test-shared-secret'
    REDIS_URL = 'redis://localhost:6379/15'


def envelope(code, data=None, message=''):
    """Encode a user service reply envelope."""
    return json.dumps({'code': code, 'message': message, 'data': data}).encode('utf-8')


class FakeContext:
    """Stand-in for the per-request reply channel."""

    def __init__(self, conn_id='conn-1', data=None):
        self.id = conn_id
        self.data = data
        self.replies = []
        self.binary_replies = []
        self.errors = []

    @property
    def raw_data(self):
        if isinstance(self.data, bytes):
            return self.data
        return json.dumps(self.data).encode('utf-8')

    def extra(self, key, default=None):
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default

    def success(self, data):
        self.replies.append(data)

    def binary_reply(self, data):
        self.binary_replies.append(data)

    def server_error(self, err):
        self.errors.append(err)


class FakeUserService:
    def __init__(self, login_reply=b'', user_info_reply=b'', login_error=None, user_info_error=None):
        self.login_reply = login_reply
        self.user_info_reply = user_info_reply
        self.login_error = login_error
        self.user_info_error = user_info_error
        self.calls = []

    def login(self, raw_payload):
        self.calls.append(('login', raw_payload))
        if self.login_error:
            raise self.login_error
        return self.login_reply

    def get_user_info(self, token, session, secret_key):
        self.calls.append(('getUserInfo', token, session, secret_key))
        if self.user_info_error:
            raise self.user_info_error
        return self.user_info_reply


class FakeProfileCache:
    def __init__(self, names=None):
        self.names = dict(names or {})
        self.lookups = []

    def get(self, token):
        self.lookups.append(token)
        if token not in self.names:
            raise NotFound(f"no cached profile for {token}")
        return CachedProfile(token=token, name=self.names[token])


class FakeSource:
    def __init__(self, pending=None, error=None):
        self.pending = list(pending or [])
        self.published = []
        self.error = error

    def publish(self, text, sender='service'):
        if self.error:
            raise self.error
        self.published.append((text, sender))
        return len(self.published)

    def poll_next(self):
        if self.error:
            raise self.error
        return self.pending.pop(0) if self.pending else None


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import hallserver.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def hall(flask_app):
    return flask_app.extensions['hall']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
