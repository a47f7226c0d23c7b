import json
from dataclasses import dataclass

import redis

from .errors import DecodeError, NotFound, UpstreamUnavailable

# Profiles are cached by the user service in one hash keyed "User:<token>"
USERS_INFO_KEY = 'UsersInfo'


@dataclass
class CachedProfile:
    token: str
    name: str


class ProfileCache:
    def __init__(self, client: 'redis.Redis'):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> 'ProfileCache':
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, token: str) -> CachedProfile:
        try:
            raw = self.client.hget(USERS_INFO_KEY, f"User:{token}")
        except redis.RedisError as exc:
            raise UpstreamUnavailable(f"profile cache: {exc}") from exc
        if raw is None:
            raise NotFound(f"no cached profile for {token}")
        try:
            user = json.loads(raw)
            name = user['info']['name']
        except (TypeError, ValueError, KeyError) as exc:
            raise DecodeError(f"cached profile for {token} is malformed: {exc}") from exc
        if not isinstance(name, str):
            raise DecodeError(f"cached profile for {token} has no name")
        return CachedProfile(token=token, name=name)
