import logging
from collections.abc import AsyncIterator

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake, InvalidURI
from websockets.protocol import State

from stt_bridge.domain.errors import ConnectionFailedError

logger = logging.getLogger(__name__)

OPEN_TIMEOUT_SECONDS = 10.0
CLOSE_TIMEOUT_SECONDS = 2.0


class WebSocketTransport:
    def __init__(self, connection: ClientConnection) -> None:
        self._ws = connection

    @property
    def is_open(self) -> bool:
        return self._ws.state is State.OPEN

    @property
    def close_code(self) -> int | None:
        return self._ws.close_code

    async def send(self, data: str | bytes) -> None:
        try:
            await self._ws.send(data)
        except ConnectionClosed:
            logger.warning("Send failed, WebSocket already closed (code=%s)", self._ws.close_code)

    async def messages(self) -> AsyncIterator[str | bytes]:
        try:
            async for message in self._ws:
                yield message
        except ConnectionClosedError as exc:
            code = exc.rcvd.code if exc.rcvd else None
            reason = exc.rcvd.reason if exc.rcvd else ""
            logger.warning("WebSocket closed abnormally, code: %s reason: %s", code, reason)
            return
        logger.info("WebSocket CLOSED, code: %s reason: %s", self._ws.close_code, self._ws.close_reason)

    async def close(self) -> None:
        if self._ws.state is not State.CLOSED:
            await self._ws.close()


async def connect_websocket(
    url: str,
    headers: dict[str, str] | None = None,
    open_timeout: float = OPEN_TIMEOUT_SECONDS,
) -> WebSocketTransport:
    try:
        connection = await websockets.connect(
            url,
            additional_headers=headers or None,
            open_timeout=open_timeout,
            close_timeout=CLOSE_TIMEOUT_SECONDS,
        )
    except (OSError, InvalidHandshake, InvalidURI, TimeoutError) as exc:
        raise ConnectionFailedError(f"WebSocket connection to {url} failed: {exc}") from exc
    logger.info("WebSocket CONNECTED (%s)", url.split("?")[0])
    return WebSocketTransport(connection)
