import json
import logging
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from hallserver import db
from hallserver.models import BALANCE_EARN, BalanceUpdateRecord, UserInfo
from .errors import HallError, InvalidArgument, UpstreamUnavailable

DEFAULT_PAGE_SIZE = 10


class RankType(IntEnum):
    ALL = 0
    ONLINE_TIME = 1
    OWNED_MONEY = 2
    EARNED_MONEY = 3


@dataclass
class OnlineTimeItem:
    name: str
    online_time: int  # minutes


@dataclass
class MoneyItem:
    name: str
    money: int  # cents


@dataclass
class RankRequest:
    rank_type: RankType = RankType.ALL
    number_per_page: int = DEFAULT_PAGE_SIZE
    current_page: int = 1
    session: str = ''

    @classmethod
    def parse(cls, data: Any, default_page_size: int = DEFAULT_PAGE_SIZE) -> 'RankRequest':
        """Build a request from a decoded or raw JSON body, applying page defaults."""
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data) if data else {}
            except ValueError as exc:
                raise InvalidArgument(f"rank request is not JSON: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidArgument("rank request must be an object")

        try:
            rank_type = int(data.get('rank_type') or 0)
            size = int(data.get('number_per_page') or 0)
            page = int(data.get('current_page') or 0)
        except (TypeError, ValueError) as exc:
            raise InvalidArgument(f"rank request fields must be integers: {exc}") from exc

        try:
            rank_type = RankType(rank_type)
        except ValueError:
            raise InvalidArgument(f"wrong rank type {rank_type}") from None
        if size < 0:
            raise InvalidArgument(f"number_per_page must be positive, got {size}")

        return cls(
            rank_type=rank_type,
            number_per_page=size or default_page_size,
            current_page=page if page > 0 else 1,
            session=str(data.get('session') or ''),
        )

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.number_per_page


@dataclass
class RankResponse:
    online_time_list: List[OnlineTimeItem] = field(default_factory=list)
    own_money_list: List[MoneyItem] = field(default_factory=list)
    earn_money_list: List[MoneyItem] = field(default_factory=list)
    number_per_page: int = 0
    current_page: int = 0
    total_page: int = 0  # not computed yet
    session: str = ''

    def to_dict(self):
        return asdict(self)


class RankAggregator:
    """Paginated leaderboards merged from the balance table and the ledger.

    A request for ``ALL`` runs every sub-ranking in order and fails as a
    whole on the first error; only single-type requests echo page metadata.
    """

    def __init__(self, profile_cache, default_page_size: int = DEFAULT_PAGE_SIZE,
                 logger: Optional[logging.Logger] = None):
        self.profile_cache = profile_cache
        self.default_page_size = default_page_size
        self.logger = logger or logging.getLogger(__name__)

    def rank(self, ctx) -> Optional[RankResponse]:
        try:
            request = RankRequest.parse(ctx.data, self.default_page_size)
            response = self.get_rank_list(request)
        except HallError as exc:
            self.logger.warning(f"[rank] conn={ctx.id} failed: {exc}")
            ctx.server_error(exc)
            return None

        # Session renewed upstream of this handler, echoed back to the caller
        response.session = ctx.extra('session', '') or ''
        ctx.success(response.to_dict())
        return response

    def get_rank_list(self, request: RankRequest) -> RankResponse:
        response = RankResponse()
        if request.rank_type == RankType.ALL:
            for ranker in (self.online_rank, self.own_money_rank, self.earn_money_rank):
                ranker(request, response)
            return response

        rankers = {
            RankType.ONLINE_TIME: self.online_rank,
            RankType.OWNED_MONEY: self.own_money_rank,
            RankType.EARNED_MONEY: self.earn_money_rank,
        }
        rankers[request.rank_type](request, response)
        response.current_page = request.current_page
        response.number_per_page = request.number_per_page
        return response

    def online_rank(self, request: RankRequest, response: RankResponse) -> None:
        # Online time is not tracked anywhere yet; the list stays empty.
        response.online_time_list = []

    def own_money_rank(self, request: RankRequest, response: RankResponse) -> None:
        try:
            rows = (
                db.session.query(UserInfo.name, UserInfo.account_balance)
                .order_by(UserInfo.account_balance.desc(), UserInfo.account_token.asc())
                .offset(request.offset)
                .limit(request.number_per_page)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable(f"own money rank query: {exc}") from exc
        response.own_money_list = [MoneyItem(name=name, money=int(balance or 0)) for name, balance in rows]

    def earn_money_rank(self, request: RankRequest, response: RankResponse) -> None:
        """Sum of every non-deposit (earning) ledger entry per user."""
        total = func.sum(BalanceUpdateRecord.amount).label('total')
        try:
            rows = (
                db.session.query(BalanceUpdateRecord.user, total)
                .filter(BalanceUpdateRecord.type == BALANCE_EARN)
                .group_by(BalanceUpdateRecord.user)
                .order_by(total.desc(), BalanceUpdateRecord.user.asc())
                .offset(request.offset)
                .limit(request.number_per_page)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable(f"earn money rank query: {exc}") from exc

        earn_money_list = []
        for user, earned in rows:
            profile = self.profile_cache.get(user)
            earn_money_list.append(MoneyItem(name=profile.name, money=int(earned)))
        response.earn_money_list = earn_money_list
