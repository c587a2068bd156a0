#services/browsetrace/main.py

import ipaddress

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import Session

from utils.logging import setup_logging
from utils.timeouts import RequestReadTimeout, RequestTimeoutMiddleware
from database import engine, ensure_schema, get_db
from config import settings
from routers import events as events_router
from store import EventStoreError, ping


# Логирование
logger = setup_logging()

# Приложение FastAPI
app = FastAPI(
    title=settings.SERVICE_NAME,
    version=settings.VERSION,
    description="Local browsing-activity event ingestion and query service"
)

# Таймауты чтения/записи для каждого запроса
app.add_middleware(
    RequestTimeoutMiddleware,
    read_timeout=settings.READ_TIMEOUT_SEC,
    write_timeout=settings.WRITE_TIMEOUT_SEC,
)

# Метрики Prometheus
Instrumentator().instrument(app).expose(app, include_in_schema=False)


@app.on_event("startup")
def startup_event():
    """Создаёт таблицу events и индексы при запуске."""
    ensure_schema()
    logger.info(f"🧭 browsetrace started, store at {settings.DATABASE_URL}")


@app.on_event("shutdown")
def shutdown_event():
    engine.dispose()
    logger.info("👋 browsetrace stopped, connections closed.")


@app.exception_handler(RequestReadTimeout)
async def read_timeout_handler(request: Request, exc: RequestReadTimeout):
    return PlainTextResponse("Request body read timed out", status_code=408)


# Health-check endpoints
@app.get("/healthz", tags=["system"], response_class=PlainTextResponse)
def healthz():
    # Хранилище здесь намеренно не проверяется, для этого есть /ready
    return "ok"


@app.get("/ready", tags=["system"])
def ready(db: Session = Depends(get_db)):
    try:
        ping(db)
    except EventStoreError as e:
        logger.error(f"❌ Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail="Event store unavailable")
    return {"status": "ready"}


@app.get("/", include_in_schema=False)
def root():
    return {"message": "BrowseTrace Event Service is operational"}


# Подключаем маршруты событий
app.include_router(events_router.router)


def _is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def run():
    """Запуск сервиса: bind на HOST:PORT, мягкая остановка с ограниченным ожиданием."""
    if not _is_loopback(settings.HOST):
        logger.warning(f"⚠️ Binding to non-loopback address {settings.HOST}, events will be reachable from the network")

    logger.info(f"🚀 BrowseTrace listening on {settings.HOST}:{settings.PORT}")
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        timeout_keep_alive=settings.KEEP_ALIVE_TIMEOUT_SEC,
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_SEC,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
