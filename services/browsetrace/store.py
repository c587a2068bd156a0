# services/browsetrace/store.py

"""
Хранилище событий: валидация, дедупликация (upsert), выборка и очистка.

Все записи пачки идут в одной транзакции. Решение "upsert или insert"
принимается в classify_write() и исполняется одним атомарным
INSERT ... ON CONFLICT DO UPDATE, без предварительного SELECT.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy import delete, func, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from models import EventRecord
from schemas import EventIn, EventOut, EventType, VALID_EVENT_TYPES


class EventStoreError(Exception):
    """Сбой хранилища: ошибка БД, сериализации или повреждённая строка."""

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index  # номер события в пачке, только для логов


class EventValidationError(EventStoreError):
    """Событие или фильтр не прошли семантическую проверку."""


class WriteStrategy(str, Enum):
    INPUT_UPSERT = "input_upsert"
    VISIBLE_TEXT_UPSERT = "visible_text_upsert"
    PLAIN_INSERT = "plain_insert"


@dataclass
class EventFilter:
    event_type: Optional[str] = None
    since_utc: Optional[int] = None   # включительно
    until_utc: Optional[int] = None   # включительно
    limit: int = 0                    # <= 0 -> DEFAULT_QUERY_LIMIT


# Поля, которые перезаписываются при конфликте по ключу дедупликации
_OVERWRITE_COLUMNS = ("ts_utc", "ts_iso", "title", "data_json")


def validate_event(event: EventIn) -> None:
    """Проверяет событие; первая неудачная проверка определяет ошибку."""
    if event.url == "":
        raise EventValidationError("URL cannot be empty")
    if event.type == "":
        raise EventValidationError("Type cannot be empty")
    if event.type not in VALID_EVENT_TYPES:
        raise EventValidationError(f"invalid event type: {event.type}")
    if event.ts_utc <= 0:
        raise EventValidationError("timestamp must be positive")


def classify_write(event: EventIn) -> WriteStrategy:
    if (
        event.type == EventType.INPUT.value
        and event.field_id is not None
        and event.session_id is not None
    ):
        return WriteStrategy.INPUT_UPSERT
    if event.type == EventType.VISIBLE_TEXT.value and event.session_id is not None:
        return WriteStrategy.VISIBLE_TEXT_UPSERT
    return WriteStrategy.PLAIN_INSERT


def canonical_json(data: dict) -> str:
    """Каноническая JSON-форма data: отсортированные ключи, без пробелов, без NaN."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _write_statement(event: EventIn, data_json: str):
    stmt = sqlite_insert(EventRecord).values(
        ts_utc=event.ts_utc,
        ts_iso=event.ts_iso,
        url=event.url,
        title=event.title,
        type=event.type,
        data_json=func.json(data_json),
        session_id=event.session_id,
        field_id=event.field_id,
    )
    overwrite = {name: getattr(stmt.excluded, name) for name in _OVERWRITE_COLUMNS}

    strategy = classify_write(event)
    if strategy is WriteStrategy.INPUT_UPSERT:
        return stmt.on_conflict_do_update(
            index_elements=["url", "field_id", "session_id"],
            index_where=text("type = 'input'"),
            set_=overwrite,
        )
    if strategy is WriteStrategy.VISIBLE_TEXT_UPSERT:
        return stmt.on_conflict_do_update(
            index_elements=["url", "session_id"],
            index_where=text("type = 'visible_text'"),
            set_=overwrite,
        )
    return stmt


def insert_events(db: Session, events: Sequence[EventIn]) -> None:
    """
    Сохраняет пачку событий по принципу "всё или ничего".

    Любая ошибка (валидация, сериализация, БД) откатывает всю пачку,
    включая уже записанные в этом вызове события.
    """
    index = 0
    try:
        for index, event in enumerate(events):
            validate_event(event)
            try:
                data_json = canonical_json(event.data)
            except (TypeError, ValueError) as e:
                raise EventStoreError(f"failed to serialize event data: {e}", index=index) from e
            db.execute(_write_statement(event, data_json))
        db.commit()
    except EventValidationError as e:
        db.rollback()
        e.index = index
        raise
    except EventStoreError:
        db.rollback()
        raise
    except (SQLAlchemyError, OverflowError) as e:
        # OverflowError: sqlite3 не может привязать int вне 64 бит
        db.rollback()
        raise EventStoreError(f"failed to store events: {e}", index=index) from e

    logger.debug(f"💾 Stored batch of {len(events)} events")


def _to_event_out(record: EventRecord) -> EventOut:
    try:
        data = json.loads(record.data_json)
    except ValueError as e:
        raise EventStoreError(f"failed to decode data of event id={record.id}: {e}") from e

    return EventOut(
        id=record.id,
        ts_utc=record.ts_utc,
        ts_iso=record.ts_iso,
        url=record.url,
        title=record.title,
        type=record.type,
        data=data,
        session_id=record.session_id,
        field_id=record.field_id,
    )


def get_events(db: Session, filters: EventFilter) -> List[EventOut]:
    """Возвращает события по фильтрам, от самых свежих к старым."""
    query = select(EventRecord)

    if filters.event_type is not None:
        if filters.event_type not in VALID_EVENT_TYPES:
            raise EventValidationError(f"invalid event type: {filters.event_type}")
        query = query.where(EventRecord.type == filters.event_type)

    if filters.since_utc is not None:
        query = query.where(EventRecord.ts_utc >= filters.since_utc)

    if filters.until_utc is not None:
        query = query.where(EventRecord.ts_utc <= filters.until_utc)

    limit = filters.limit if filters.limit > 0 else settings.DEFAULT_QUERY_LIMIT
    query = query.order_by(EventRecord.ts_utc.desc(), EventRecord.id.desc()).limit(limit)

    try:
        records = db.execute(query).scalars().all()
    except (SQLAlchemyError, OverflowError) as e:
        raise EventStoreError(f"failed to query events: {e}") from e

    return [_to_event_out(record) for record in records]


def delete_all_events(db: Session) -> int:
    """Административная очистка: удаляет все строки и возвращает их количество."""
    try:
        result = db.execute(delete(EventRecord))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise EventStoreError(f"failed to delete events: {e}") from e

    return result.rowcount


def ping(db: Session) -> None:
    """Проверка доступности хранилища для /ready."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise EventStoreError(f"store is unavailable: {e}") from e
