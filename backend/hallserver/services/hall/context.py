import json
from typing import Any

from flask_socketio import emit


class SocketContext:
    """Per-request reply channel for a Socket.IO event handled by the hall.

    Replies are emitted back to the calling socket on ``<route>_reply``;
    server errors go out on ``error`` the same way the other socket
    handlers report bad requests.
    """

    def __init__(self, route: str, conn_id: str, data: Any = None):
        self.route = route
        self.id = conn_id
        self.data = data

    @property
    def reply_event(self) -> str:
        return f"{self.route}_reply"

    @property
    def raw_data(self) -> bytes:
        data = self.data
        if data is None:
            return b''
        if isinstance(data, bytes):
            return data
        if isinstance(data, str):
            return data.encode('utf-8')
        return json.dumps(data).encode('utf-8')

    def extra(self, key: str, default: Any = None) -> Any:
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default

    def success(self, data: Any) -> None:
        emit(self.reply_event, data)

    def binary_reply(self, data: bytes) -> None:
        emit(self.reply_event, data)

    def server_error(self, err: Exception) -> None:
        emit('error', {'route': self.route, 'message': str(err)})
