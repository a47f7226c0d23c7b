import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import DecodeError, HallError, UpstreamUnavailable
from .rpc import ReplyEnvelope


def welcome_message(name: str) -> str:
    return f"user {name} has logged in"


def _call_inline(fn, *args):
    return fn(*args)


@dataclass
class LoginResult:
    token: str
    session: str

    @classmethod
    def from_payload(cls, payload: dict) -> 'LoginResult':
        token = payload.get('token')
        session = payload.get('session')
        if not isinstance(token, str) or not isinstance(session, str):
            raise DecodeError("login reply needs string token and session")
        return cls(token=token, session=session)


class LoginRelay:
    """Relay a client login to the user service and act on the outcome.

    The caller gets the user service's reply bytes untouched as soon as they
    arrive. Everything after that (registry update, profile fetch, welcome
    announcement) is best effort and only logs its failures.
    """

    def __init__(self, client, registry, source, derive_key: Callable[[str, str], str],
                 spawn: Callable[..., object] = _call_inline,
                 logger: Optional[logging.Logger] = None):
        self.client = client
        self.registry = registry
        self.source = source
        self.derive_key = derive_key
        self._spawn = spawn
        self.logger = logger or logging.getLogger(__name__)

    def login(self, ctx) -> Optional[LoginResult]:
        try:
            raw_reply = self.client.login(ctx.raw_data)
        except UpstreamUnavailable as exc:
            self.logger.warning(f"[login] conn={ctx.id} user service unavailable: {exc}")
            ctx.server_error(exc)
            return None

        ctx.binary_reply(raw_reply)

        try:
            reply = ReplyEnvelope.decode(raw_reply)
        except DecodeError as exc:
            self.logger.warning(f"[login] conn={ctx.id} undecodable reply {raw_reply!r}: {exc}")
            return None
        if not reply.ok:
            self.logger.info(f"[login] conn={ctx.id} rejected code={reply.code} message={reply.message}")
            return None

        try:
            result = LoginResult.from_payload(reply.payload())
        except DecodeError as exc:
            self.logger.warning(f"[login] conn={ctx.id} bad login payload: {exc}")
            return None

        try:
            self.registry.set_token(ctx.id, result.token)
        except HallError as exc:
            self.logger.warning(f"[login] conn={ctx.id} registry update failed: {exc}")

        self._spawn(self.announce_login, result.token, result.session)
        return result

    def announce_login(self, token: str, session: str) -> None:
        """Fetch the user's profile and publish a welcome announcement."""
        secret_key = self.derive_key(token, session)
        try:
            reply = ReplyEnvelope.decode(self.client.get_user_info(token, session, secret_key))
        except HallError as exc:
            self.logger.warning(f"[login-profile] get user info failed: {exc}")
            return
        if not reply.ok:
            self.logger.warning(f"[login-profile] code={reply.code} {reply.message}: {reply.data}")
            return

        try:
            profile = reply.payload()
        except DecodeError as exc:
            self.logger.warning(f"[login-profile] bad profile payload: {exc}")
            return
        name = profile.get('name')
        if not isinstance(name, str) or not name:
            self.logger.warning(f"[login-profile] profile has no name: {profile}")
            return

        self.logger.info(f"[login-profile] name={name} vip={profile.get('vip')} balance={profile.get('account_balance')}")

        try:
            self.source.publish(welcome_message(name), sender='service')
        except HallError as exc:
            self.logger.warning(f"[login-profile] publish welcome failed: {exc}")
