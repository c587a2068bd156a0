import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class EventType(str, Enum):
    """Фиксированный набор типов событий; не меняется за время жизни процесса."""
    NAVIGATE = "navigate"
    VISIBLE_TEXT = "visible_text"
    CLICK = "click"
    INPUT = "input"
    FOCUS = "focus"


VALID_EVENT_TYPES = frozenset(t.value for t in EventType)

# Диапазон INTEGER в SQLite (64 бита)
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1


def _has_non_finite(value: Any) -> bool:
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, dict):
        return any(_has_non_finite(v) for v in value.values())
    if isinstance(value, list):
        return any(_has_non_finite(v) for v in value)
    return False


# ---------- DTO для приёма событий (POST /events) ----------

class EventIn(BaseModel):
    """
    Событие в том виде, в котором его шлёт расширение браузера.

    Семантика (пустой url, неизвестный type, ts_utc <= 0) здесь не проверяется:
    это делает хранилище. Тут только форма JSON.
    """
    ts_utc: int = Field(
        default=0,
        strict=True,
        ge=INT64_MIN,
        le=INT64_MAX,
        description="Миллисекунды с эпохи (UTC)",
    )
    ts_iso: str = Field(default="", description="ISO-8601 представление ts_utc")
    url: str = ""
    title: Optional[str] = None
    type: str = Field(default="", description="navigate|visible_text|click|input|focus")
    data: Dict[str, Any] = Field(default_factory=dict, description="Произвольный JSON-пейлоад")
    session_id: Optional[str] = None
    field_id: Optional[str] = Field(default=None, description="Только для input-событий")

    @field_validator("data", mode="before")
    @classmethod
    def _null_data_as_empty(cls, value):
        return {} if value is None else value

    @field_validator("data")
    @classmethod
    def _reject_non_finite(cls, value):
        # NaN, Infinity и 1e400 не являются валидным JSON для хранилища
        if _has_non_finite(value):
            raise ValueError("data must not contain NaN or Infinity")
        return value


class EventBatchIn(BaseModel):
    """Конверт пачки событий; отсутствующий или null events равен пустой пачке."""
    events: Optional[List[EventIn]] = None


# ---------- DTO для отдачи событий (GET /events) ----------

class EventOut(BaseModel):
    id: int
    ts_utc: int
    ts_iso: str
    url: str
    title: Optional[str] = None
    type: str
    data: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None
    field_id: Optional[str] = None


class EventBatchOut(BaseModel):
    events: List[EventOut] = Field(default_factory=list)


class DeleteResult(BaseModel):
    """Ответ административного DELETE /events."""
    deleted_count: int
    message: str
