"""Create journal tables: symbols, trades, tags, emotions, links, performance rollups.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "symbols",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("symbol", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("symbol"),
    )

    op.create_table(
        "trades",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("symbol", sa.Integer(), sa.ForeignKey("symbols.id"), nullable=True),
        sa.Column("entry_date", sa.String(10), nullable=True),
        sa.Column("entry_time", sa.String(8), nullable=True),
        sa.Column("exit_date", sa.String(10), nullable=True),
        sa.Column("exit_time", sa.String(8), nullable=True),
        sa.Column("hold_time", sa.Integer(), nullable=True),
        sa.Column("entry_price", sa.Float(), nullable=True),
        sa.Column("exit_price", sa.Float(), nullable=True),
        sa.Column("lot_size", sa.Float(), nullable=True),
        sa.Column("pips", sa.Float(), nullable=True),
        sa.Column("profit_loss", sa.Float(), nullable=True),
        sa.Column("trade_type", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.Column("trade_memo", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trades_user_entry_date", "trades", ["user_id", "entry_date"])
    op.create_index("ix_trades_user_exit_date", "trades", ["user_id", "exit_date"])

    op.create_table(
        "trade_tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("tag_name", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "tag_name", name="uq_trade_tags_user_name"),
    )

    op.create_table(
        "emotions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("emotion", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "emotion", name="uq_emotions_user_name"),
    )

    op.create_table(
        "trade_tag_links",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("trade_id", sa.Integer(), nullable=False),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("trade_tags.id"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trade_tag_links_trade_id", "trade_tag_links", ["trade_id"])

    op.create_table(
        "trade_emotion_links",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("trade_id", sa.Integer(), nullable=False),
        sa.Column("emotion_id", sa.Integer(), sa.ForeignKey("emotions.id"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trade_emotion_links_trade_id", "trade_emotion_links", ["trade_id"])

    op.create_table(
        "user_performance_metrics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("period_type", sa.String(10), nullable=False),
        sa.Column("period_value", sa.String(16), nullable=False),
        sa.Column("win_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("loss_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("win_profit", sa.Float(), nullable=False, server_default="0"),
        sa.Column("loss_loss", sa.Float(), nullable=False, server_default="0"),
        sa.Column("win_pips", sa.Float(), nullable=False, server_default="0"),
        sa.Column("loss_pips", sa.Float(), nullable=False, server_default="0"),
        sa.Column("avg_win_holding_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("avg_loss_holding_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("current_win_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_loss_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_win_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_loss_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "period_type", "period_value", name="uq_performance_metric_period"
        ),
    )


def downgrade() -> None:
    op.drop_table("user_performance_metrics")
    op.drop_index("ix_trade_emotion_links_trade_id", table_name="trade_emotion_links")
    op.drop_table("trade_emotion_links")
    op.drop_index("ix_trade_tag_links_trade_id", table_name="trade_tag_links")
    op.drop_table("trade_tag_links")
    op.drop_table("emotions")
    op.drop_table("trade_tags")
    op.drop_index("ix_trades_user_exit_date", table_name="trades")
    op.drop_index("ix_trades_user_entry_date", table_name="trades")
    op.drop_table("trades")
    op.drop_table("symbols")
