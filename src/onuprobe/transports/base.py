from typing import Protocol, Pattern, Union

class LineTransport(Protocol):
    """What the prompt driver needs from a line; TelnetTransport and test fakes provide it."""
    async def connect(self, host: str, port: int = 23, timeout: float = 10.0) -> bool: ...
    async def send(self, command: str, delay: float = 0.2) -> None: ...
    async def send_and_wait(self, command: str, wait: float = 1.0) -> bytes: ...
    async def wait_for_prompt(self, pattern: Union[str, bytes, Pattern], timeout: float = 3.0) -> bytes: ...
    def clear(self) -> bytes: ...
    async def disconnect(self) -> None: ...
