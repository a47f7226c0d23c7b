from flask_socketio import emit
from flask import current_app, request
from hallserver.services.hall.context import SocketContext


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _hall():
    return current_app.extensions['hall']


def handle_connect():
    _hall().observe_connect(_get_sid())
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    _hall().observe_disconnect(_get_sid())


def _route_handler(route: str):
    def handler(data=None):
        hall = _hall()
        hall.routes()[route](SocketContext(route, _get_sid(), data))
    handler.__name__ = f"handle_{route}"
    return handler


handle_login = _route_handler('login')
handle_rank = _route_handler('rank')


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(socketio, testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('login', handle_login, namespace=namespace)
        socketio.on_event('rank', handle_rank, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
