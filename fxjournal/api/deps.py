"""Request-scoped dependencies: store, services and the acting user.

Authentication happens upstream; the gateway forwards the user id in the
X-User-Id header. Tests override ``get_store`` with an in-memory store.
"""

from functools import lru_cache
from zoneinfo import ZoneInfo

from fastapi import Depends, Header

from fxjournal.config import settings
from fxjournal.services.analytics import AnalyticsService
from fxjournal.services.datetime_utils import TimezonePolicy
from fxjournal.services.metrics import PerformanceAggregator
from fxjournal.services.store import SqlStore, TradeStore
from fxjournal.services.trade_service import TradeService


@lru_cache
def get_store() -> TradeStore:
    return SqlStore()


@lru_cache
def get_calendar_tz() -> ZoneInfo:
    return ZoneInfo(settings.calendar_timezone)


def get_import_policy() -> TimezonePolicy:
    return TimezonePolicy(settings.import_timezone_policy)


def get_aggregator(store: TradeStore = Depends(get_store)) -> PerformanceAggregator:
    return PerformanceAggregator(store, get_calendar_tz())


def get_trade_service(
    store: TradeStore = Depends(get_store),
    aggregator: PerformanceAggregator = Depends(get_aggregator),
) -> TradeService:
    return TradeService(store, aggregator)


def get_analytics(store: TradeStore = Depends(get_store)) -> AnalyticsService:
    return AnalyticsService(store, get_calendar_tz())


async def current_user(
    x_user_id: str = Header(..., alias="X-User-Id", min_length=1, max_length=64),
) -> str:
    return x_user_id
