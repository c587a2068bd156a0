import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import get_db
from schemas import INT64_MAX, INT64_MIN, DeleteResult, EventBatchIn, EventBatchOut
from store import EventFilter, EventStoreError, delete_all_events, get_events, insert_events
from utils.logging import setup_logging

logger = setup_logging()

router = APIRouter(tags=["events"])

_INT_RE = re.compile(r"^[+-]?\d+$")


#   Вспомогательные функции

async def read_batch(request: Request) -> EventBatchIn:
    """
    Читает тело POST /events как JSON независимо от Content-Type.

    Расширение шлёт запросы в режиме no-cors, поэтому заголовок там
    text/plain, а не application/json.
    """
    body = await request.body()
    try:
        return EventBatchIn.model_validate_json(body)
    except ValidationError as e:
        logger.debug(f"🚫 Rejected malformed batch: {e.error_count()} errors")
        raise HTTPException(status_code=400, detail="Invalid JSON format")


def _parse_int(raw: Optional[str], message: str) -> Optional[int]:
    """Пустой параметр считается отсутствующим."""
    if raw is None or raw == "":
        return None
    if not _INT_RE.match(raw):
        raise HTTPException(status_code=400, detail=message)
    value = int(raw)
    if not INT64_MIN <= value <= INT64_MAX:
        raise HTTPException(status_code=400, detail=message)
    return value


@router.post("/events", status_code=204)
def ingest_events(batch: EventBatchIn = Depends(read_batch), db: Session = Depends(get_db)):
    """
    Приём пачки событий от расширения браузера.
    Пустая пачка не ошибка, а no-op. Пачка сохраняется целиком или не сохраняется вовсе.
    """
    if not batch.events:
        return Response(status_code=204)

    try:
        insert_events(db, batch.events)
    except EventStoreError as e:
        logger.error(f"❌ Database error (event index={e.index}): {e}")
        raise HTTPException(status_code=500, detail="Failed to store events")

    logger.info(f"📥 Ingested {len(batch.events)} events")
    return Response(status_code=204)


@router.get("/events", response_model=EventBatchOut)
def list_events(
    event_type: Optional[str] = Query(None, alias="type", description="navigate|visible_text|click|input|focus"),
    since: Optional[str] = Query(None, description="Нижняя граница ts_utc, мс (включительно)"),
    until: Optional[str] = Query(None, description="Верхняя граница ts_utc, мс (включительно)"),
    limit: Optional[str] = Query(None, description="Положительное целое, по умолчанию 100"),
    db: Session = Depends(get_db),
):
    """
    Возвращает события, от самых свежих к старым.
    Тип не перепроверяется здесь: его валидирует хранилище.
    """
    filters = EventFilter(
        event_type=event_type or None,
        since_utc=_parse_int(since, "Invalid 'since' parameter: must be Unix timestamp in milliseconds"),
        until_utc=_parse_int(until, "Invalid 'until' parameter: must be Unix timestamp in milliseconds"),
    )

    parsed_limit = _parse_int(limit, "Invalid 'limit' parameter: must be positive integer")
    if parsed_limit is not None:
        if parsed_limit <= 0:
            raise HTTPException(status_code=400, detail="Invalid 'limit' parameter: must be positive integer")
        filters.limit = parsed_limit

    try:
        events = get_events(db, filters)
    except EventStoreError as e:
        logger.error(f"❌ Database error: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve events")

    return EventBatchOut(events=events)


@router.delete("/events", response_model=DeleteResult)
def clear_events(db: Session = Depends(get_db)):
    """Административное удаление всех событий."""
    try:
        deleted = delete_all_events(db)
    except EventStoreError as e:
        logger.error(f"❌ Database error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete events")

    logger.warning(f"🗑️ Deleted all events: {deleted} rows")
    return DeleteResult(deleted_count=deleted, message=f"Successfully deleted {deleted} events")
