"""Request/reply client for the remote user service.

Every call is a synchronous HTTP POST to ``{base_url}/{module}/{route}``
carrying the request payload unchanged and a fresh reply-correlation id.
The response body is the service's reply envelope
``{"code": int, "message": str, "data": ...}`` and is returned as raw bytes
so callers can forward it verbatim.
"""
import hashlib
import hmac
import json
import logging
import random
import string
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .errors import DecodeError, UpstreamUnavailable

USER_MODULE = 'User'
USER_LOGIN = 'login'
USER_GET_USER_INFO = 'getUserInfo'

SUCCESS_CODE = 200


def random_reply_id(length: int = 8) -> str:
    return ''.join(random.choices(string.ascii_letters + string.digits, k=length))


def derive_secret_key(token: str, session: str, shared_secret: str) -> str:
    """Deterministic per-session key the user service recomputes on its side."""
    message = f"{token}:{session}".encode('utf-8')
    return hmac.new(shared_secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


@dataclass
class ReplyEnvelope:
    code: int
    message: str = ''
    data: Any = None

    @classmethod
    def decode(cls, raw: bytes) -> 'ReplyEnvelope':
        try:
            body = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"reply envelope is not JSON: {exc}") from exc
        if not isinstance(body, dict) or 'code' not in body:
            raise DecodeError("reply envelope has no code")
        try:
            code = int(body['code'])
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"reply code {body['code']!r} is not an integer") from exc
        return cls(code=code, message=str(body.get('message') or ''), data=body.get('data'))

    @property
    def ok(self) -> bool:
        return self.code == SUCCESS_CODE

    def payload(self) -> dict:
        """The ``data`` member as a dict; a JSON-encoded string is decoded first."""
        data = self.data
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as exc:
                raise DecodeError(f"reply data is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise DecodeError("reply data is not an object")
        return data


class UserServiceClient:
    def __init__(self, base_url: str, timeout: float = 5.0,
                 session: Optional[requests.Session] = None,
                 logger: Optional[logging.Logger] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def request_sync(self, route: str, data: bytes, module: str = USER_MODULE) -> bytes:
        reply_id = random_reply_id()
        url = f"{self.base_url}/{module}/{route}"
        try:
            resp = self.http.post(
                url,
                data=data,
                headers={'Content-Type': 'application/json', 'X-Reply-Id': reply_id},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"{module}.{route} reply={reply_id}: {exc}") from exc
        self.logger.debug(f"[rpc] {module}.{route} reply={reply_id} status={resp.status_code} bytes={len(resp.content)}")
        return resp.content

    def login(self, raw_payload: bytes) -> bytes:
        return self.request_sync(USER_LOGIN, raw_payload)

    def get_user_info(self, token: str, session: str, secret_key: str) -> bytes:
        body = json.dumps({'token': token, 'session': session, 'secret_key': secret_key})
        return self.request_sync(USER_GET_USER_INFO, body.encode('utf-8'))
