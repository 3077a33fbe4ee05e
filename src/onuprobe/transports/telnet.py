# src/onuprobe/transports/telnet.py
from __future__ import annotations
import asyncio
import re
from typing import Optional, Pattern, Union

from ..logging import get_logger

__all__ = ["TelnetTransport", "POLL_INTERVAL"]

try:
    import telnetlib3
except ImportError as e:
    raise RuntimeError("telnetlib3 is required (pip install telnetlib3).") from e

log = get_logger(__name__)

POLL_INTERVAL = 0.1
CRLF = b"\r\n"

PatternLike = Union[str, bytes, Pattern]


def _to_bytes(x: Union[str, bytes], encoding: str = "utf-8") -> bytes:
    return x if isinstance(x, (bytes, bytearray)) else bytes(str(x), encoding)


def _to_str(x: Union[str, bytes], encoding: str = "utf-8") -> str:
    return x.decode(encoding, "ignore") if isinstance(x, (bytes, bytearray)) else str(x)


def _compile(pattern: PatternLike, encoding: str) -> Pattern:
    """Prompt patterns are matched against the raw byte buffer."""
    if isinstance(pattern, re.Pattern):
        if isinstance(pattern.pattern, bytes):
            return pattern
        return re.compile(_to_bytes(pattern.pattern, encoding), pattern.flags & ~re.UNICODE)
    return re.compile(_to_bytes(pattern, encoding))


class TelnetTransport:
    """
    Raw byte-stream telnet line to an OLT CLI.

      - Streams are bytes (encoding=None); a reader task appends everything
        the device sends to one buffer.
      - No framing: callers either sleep a fixed window (send_and_wait) or poll
        the buffer for a prompt regex (wait_for_prompt).
      - One command in flight. Not safe to share between concurrent callers.

    Usage:
        t = TelnetTransport()
        if await t.connect("10.0.0.2", 23):
            await t.wait_for_prompt(r"Login:", 5)
            ...
            await t.disconnect()
    """

    def __init__(self, *, encoding: str = "utf-8", poll_interval: float = POLL_INTERVAL):
        self.encoding = encoding
        self.poll_interval = float(poll_interval)
        self.host: Optional[str] = None
        self.port: Optional[int] = None

        self._reader = None
        self._writer = None
        self._pump_task: Optional[asyncio.Task] = None
        self._buffer = bytearray()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    @property
    def connected(self) -> bool:
        return self._writer is not None

    @property
    def pending(self) -> bytes:
        """What has arrived since the last clear (read-only peek)."""
        return bytes(self._buffer)

    # ------------ public ------------
    async def connect(self, host: str, port: int = 23, timeout: float = 10.0) -> bool:
        """Open the socket. False on timeout or socket error; never raises."""
        self.host, self.port = str(host), int(port)
        try:
            self._reader, self._writer = await asyncio.wait_for(
                telnetlib3.open_connection(host=self.host, port=self.port, encoding=None),
                timeout=float(timeout),
            )
        except asyncio.TimeoutError:
            log.warning("telnet connect to %s:%s timed out after %.1fs", self.host, self.port, timeout)
            self._reset()
            return False
        except (OSError, EOFError) as e:
            log.warning("telnet connect to %s:%s failed: %s", self.host, self.port, e)
            self._reset()
            return False

        self._buffer.clear()
        self._pump_task = asyncio.ensure_future(self._pump())
        log.debug("connected to %s:%s", self.host, self.port)
        return True

    async def send(self, command: str, delay: float = 0.2) -> None:
        """Write command + CRLF after a short settle delay. Buffer is left alone."""
        if not self._writer:
            raise ConnectionError("Not connected")
        if delay:
            await asyncio.sleep(delay)
        self._writer.write(_to_bytes(command, self.encoding) + CRLF)
        drain = getattr(self._writer, "drain", None)
        if drain is not None:
            await drain()

    async def send_and_wait(self, command: str, wait: float = 1.0) -> bytes:
        """Clear buffer, write, sleep a fixed window, return whatever accumulated."""
        self._buffer.clear()
        await self.send(command, delay=0)
        await asyncio.sleep(wait)
        return self._take()

    async def wait_for_prompt(self, pattern: PatternLike, timeout: float = 3.0) -> bytes:
        """
        Poll the buffer until `pattern` matches or `timeout` passes. Either way the
        buffer is returned and cleared; a timeout gives partial content, so the
        caller has to check it.
        """
        rx = _compile(pattern, self.encoding)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + float(timeout)
        while True:
            if rx.search(self._buffer):
                break
            if loop.time() >= deadline:
                log.debug("prompt %r not seen within %.1fs (%d bytes buffered)",
                          rx.pattern, timeout, len(self._buffer))
                break
            await asyncio.sleep(self.poll_interval)
        return self._take()

    def clear(self) -> bytes:
        """Drop whatever is buffered; returns it."""
        return self._take()

    async def disconnect(self) -> None:
        """Best-effort 'quit' and close. Never raises."""
        writer, task = self._writer, self._pump_task
        self._reset()
        if writer is not None:
            try:
                writer.write(b"quit" + CRLF)
            except Exception:
                pass
            try:
                writer.close()
            except Exception:
                pass
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, Exception):
                pass
        self._buffer.clear()

    # ------------ internals ------------
    def _take(self) -> bytes:
        out = bytes(self._buffer)
        self._buffer.clear()
        return out

    def _reset(self) -> None:
        self._reader = None
        self._writer = None
        self._pump_task = None

    async def _pump(self) -> None:
        reader = self._reader
        try:
            while reader is not None:
                chunk = await reader.read(4096)
                if not chunk:
                    log.debug("%s:%s closed the connection", self.host, self.port)
                    break
                self._buffer.extend(_to_bytes(chunk, self.encoding))
        except (ConnectionError, OSError) as e:
            log.debug("telnet read from %s:%s stopped: %s", self.host, self.port, e)
        if reader is not None and self._reader is reader:
            # far end closed; send() raises from here on
            writer, self._reader, self._writer = self._writer, None, None
            if writer is not None:
                try:
                    writer.close()
                except Exception:
                    pass
