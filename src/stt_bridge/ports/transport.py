from typing import AsyncIterator, Awaitable, Callable, Protocol


class TransportPort(Protocol):
    @property
    def is_open(self) -> bool: ...
    async def send(self, data: str | bytes) -> None: ...
    def messages(self) -> AsyncIterator[str | bytes]: ...
    async def close(self) -> None: ...


Connector = Callable[[str, dict[str, str]], Awaitable[TransportPort]]
