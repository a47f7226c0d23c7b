import logging
import threading
from typing import Dict, List, Optional

from .errors import AlreadyExists, InvalidArgument, NotFound


class SessionRegistry:
    """Connection id -> auth token map for every live connection.

    A single lock covers the whole map; every operation is a short dict
    lookup and nothing blocks on I/O while holding it.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._lock = threading.Lock()
        self._tokens: Dict[str, str] = {}
        self.logger = logger or logging.getLogger(__name__)

    def add_connection(self, conn_id: str) -> None:
        with self._lock:
            if conn_id in self._tokens:
                raise AlreadyExists(f"{conn_id} exists")
            self._tokens[conn_id] = ''
            size = len(self._tokens)
        self.logger.info(f"[registry-add] conn={conn_id} connections={size}")

    def remove_connection(self, conn_id: str) -> None:
        with self._lock:
            if conn_id not in self._tokens:
                raise NotFound(f"{conn_id} doesn't exist")
            del self._tokens[conn_id]
            size = len(self._tokens)
        self.logger.info(f"[registry-remove] conn={conn_id} connections={size}")

    def set_token(self, conn_id: str, token: str) -> None:
        if not conn_id or not token:
            raise InvalidArgument("connection id and token can't be empty")
        with self._lock:
            if conn_id not in self._tokens:
                raise NotFound(f"{conn_id} doesn't exist")
            self._tokens[conn_id] = token
        self.logger.info(f"[registry-token] conn={conn_id}")

    def get_token(self, conn_id: str) -> str:
        with self._lock:
            try:
                return self._tokens[conn_id]
            except KeyError:
                raise NotFound(f"{conn_id} doesn't exist") from None

    def verify_token(self, conn_id: str, token: str) -> bool:
        """True when ``token`` is the one stored for ``conn_id``."""
        if not conn_id or not token:
            raise InvalidArgument("connection id and token can't be empty")
        return self.get_token(conn_id) == token

    def list_connection_ids(self) -> List[str]:
        with self._lock:
            return list(self._tokens)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
