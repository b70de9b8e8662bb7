"""SQLAlchemy models for the FX journal."""

from fxjournal.models.labels import Emotion, Symbol, TradeEmotionLink, TradeTag, TradeTagLink
from fxjournal.models.metric import PerformanceMetric
from fxjournal.models.trade import Trade

__all__ = [
    "Emotion",
    "PerformanceMetric",
    "Symbol",
    "Trade",
    "TradeEmotionLink",
    "TradeTag",
    "TradeTagLink",
]
