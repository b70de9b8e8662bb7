"""Symbols, tags, emotions and their link tables."""

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fxjournal.database import Base


class Symbol(Base):
    """Normalized instrument name. Shared across users, created lazily."""

    __tablename__ = "symbols"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)


class TradeTag(Base):
    __tablename__ = "trade_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tag_name: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "tag_name", name="uq_trade_tags_user_name"),)


class Emotion(Base):
    __tablename__ = "emotions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    emotion: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "emotion", name="uq_emotions_user_name"),)


class TradeTagLink(Base):
    """Many-to-many link. Cleanup on trade delete is done by the caller."""

    __tablename__ = "trade_tag_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trade_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    tag_id: Mapped[int] = mapped_column(ForeignKey("trade_tags.id"), nullable=False)


class TradeEmotionLink(Base):
    __tablename__ = "trade_emotion_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trade_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    emotion_id: Mapped[int] = mapped_column(ForeignKey("emotions.id"), nullable=False)
