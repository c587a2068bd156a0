import asyncio

from loguru import logger
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestReadTimeout(Exception):
    """Клиент не прислал тело запроса за READ_TIMEOUT_SEC."""


class RequestTimeoutMiddleware:
    """
    Ограничивает время чтения тела запроса и отправки ответа.

    Медленный или зависший клиент не должен держать соединение и поток
    бесконечно: каждый receive() и send() обёрнут в asyncio.wait_for.
    """

    def __init__(self, app: ASGIApp, read_timeout: float, write_timeout: float):
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def timed_receive() -> Message:
            try:
                return await asyncio.wait_for(receive(), timeout=self.read_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"⏱️ Read timeout on {scope.get('method')} {scope.get('path')}")
                raise RequestReadTimeout()

        async def timed_send(message: Message) -> None:
            try:
                await asyncio.wait_for(send(message), timeout=self.write_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"⏱️ Write timeout on {scope.get('method')} {scope.get('path')}")
                raise

        await self.app(scope, timed_receive, timed_send)
