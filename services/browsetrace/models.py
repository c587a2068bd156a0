from typing import Optional

from sqlalchemy import CheckConstraint, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class EventRecord(Base):
    """
    Одно взаимодействие пользователя со страницей.

    Строки input и visible_text дедуплицируются частичными уникальными
    индексами; остальные типы всегда пишутся новой строкой.
    """
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(
            "type IN ('navigate','visible_text','click','input','focus')",
            name="ck_events_type",
        ),
        CheckConstraint("json_valid(data_json)", name="ck_events_data_json"),
        Index("idx_events_ts", "ts_utc"),
        Index("idx_events_type", "type"),
        Index("idx_events_url", "url"),
        # NULL в field_id/session_id никогда не конфликтует
        Index(
            "idx_input_field_session",
            "url", "field_id", "session_id",
            unique=True,
            sqlite_where=text("type = 'input'"),
        ),
        Index(
            "idx_input_lookup",
            "session_id", "field_id",
            sqlite_where=text("type = 'input'"),
        ),
        Index(
            "idx_visible_text_session",
            "url", "session_id",
            unique=True,
            sqlite_where=text("type = 'visible_text'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[int] = mapped_column(Integer, nullable=False)      # мс с эпохи
    ts_iso: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    data_json: Mapped[str] = mapped_column(Text, nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    field_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # только для input
