import functools
import logging
from typing import Callable, Dict, Optional

from .announce import AnnouncementPipeline, AnnouncementSource
from .errors import HallError
from .login import LoginRelay
from .profile_cache import ProfileCache
from .rank import RankAggregator
from .registry import SessionRegistry
from .rpc import UserServiceClient, derive_secret_key

MODULE_NAME = 'Hall'


def _call_inline(fn, *args):
    return fn(*args)


class HallModule:
    """The hall service, built once per application.

    Owns the session registry and the user service client and wires them
    into the announcement pipeline, login relay and rank aggregator.
    """

    name = MODULE_NAME

    def __init__(self, registry: SessionRegistry, pipeline: AnnouncementPipeline,
                 login_relay: LoginRelay, rank_aggregator: RankAggregator,
                 start_task: Callable[..., object] = _call_inline,
                 logger: Optional[logging.Logger] = None):
        self.registry = registry
        self.pipeline = pipeline
        self.login_relay = login_relay
        self.rank_aggregator = rank_aggregator
        self.logger = logger or logging.getLogger(__name__)
        self._start_task = start_task
        self._started = False

    @classmethod
    def from_app(cls, app, socketio) -> 'HallModule':
        logger = app.logger
        # Background work runs inline under TESTING so handlers stay deterministic
        spawn = _call_inline if app.config.get('TESTING') else socketio.start_background_task

        def send(conn_id: str, route: str, payload: bytes) -> None:
            socketio.emit(route, payload.decode('utf-8'), to=conn_id, namespace='/ws')

        registry = SessionRegistry(logger)
        source = AnnouncementSource(app)
        client = UserServiceClient(
            app.config['USER_SERVICE_URL'],
            timeout=app.config.get('USER_SERVICE_TIMEOUT_SEC', 5.0),
            logger=logger,
        )
        pipeline = AnnouncementPipeline(
            source,
            registry,
            send,
            spawn=spawn,
            sleep=socketio.sleep,
            interval=app.config.get('ANNOUNCE_INTERVAL_SEC', 1.0),
            maxsize=app.config.get('ANNOUNCE_QUEUE_SIZE', 10),
            logger=logger,
        )
        login_relay = LoginRelay(
            client,
            registry,
            source,
            functools.partial(derive_secret_key, shared_secret=app.config['USER_SERVICE_SHARED_SECRET']),
            spawn=spawn,
            logger=logger,
        )
        rank_aggregator = RankAggregator(
            ProfileCache.from_url(app.config['REDIS_URL']),
            default_page_size=app.config.get('RANK_DEFAULT_PAGE_SIZE', 10),
            logger=logger,
        )
        return cls(registry, pipeline, login_relay, rank_aggregator,
                   start_task=socketio.start_background_task, logger=logger)

    def routes(self) -> Dict[str, Callable]:
        return {
            'login': self.login_relay.login,
            'rank': self.rank_aggregator.rank,
        }

    def observe_connect(self, conn_id: str) -> None:
        try:
            self.registry.add_connection(conn_id)
        except HallError as exc:
            self.logger.warning(f"[connect] {exc}")

    def observe_disconnect(self, conn_id: str) -> None:
        try:
            self.registry.remove_connection(conn_id)
        except HallError as exc:
            self.logger.warning(f"[disconnect] {exc}")

    def start(self) -> None:
        """Start the fanout consumer and the announcement ticker."""
        if self._started:
            return
        self._started = True
        self._start_task(self.pipeline.run_fanout)
        self._start_task(self.pipeline.run_ticker)
        self.logger.info(f"[{self.name}] started")

    def stop(self) -> None:
        self.pipeline.close()
        self.logger.info(f"[{self.name}] stopped")
