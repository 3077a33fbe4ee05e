import asyncio
import socket
import time

import pytest

from onuprobe.transports.telnet import TelnetTransport


def closed_port() -> int:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


class TestConnect:
    @pytest.mark.asyncio
    async def test_refused_returns_false(self):
        t = TelnetTransport()
        assert await t.connect("127.0.0.1", closed_port(), timeout=2.0) is False
        assert not t.connected

    @pytest.mark.asyncio
    async def test_unroutable_returns_false_within_timeout(self):
        t = TelnetTransport()
        started = time.monotonic()
        assert await t.connect("10.255.255.1", 23, timeout=0.5) is False
        assert time.monotonic() - started < 3.0

    @pytest.mark.asyncio
    async def test_send_requires_connection(self):
        with pytest.raises(ConnectionError):
            await TelnetTransport().send("show onu status", delay=0)

    @pytest.mark.asyncio
    async def test_disconnect_when_never_connected(self):
        await TelnetTransport().disconnect()


class TestBuffer:
    @pytest.mark.asyncio
    async def test_prompt_found_clears_buffer(self):
        t = TelnetTransport(poll_interval=0.01)
        t._buffer.extend(b"configure terminal\r\nOLT(config)# ")
        out = await t.wait_for_prompt(r"\(config\)#", timeout=1.0)
        assert out.endswith(b"OLT(config)# ")
        assert t.pending == b""

    @pytest.mark.asyncio
    async def test_timeout_returns_partial(self):
        t = TelnetTransport(poll_interval=0.01)
        t._buffer.extend(b"EPON0/1:1  online")
        started = time.monotonic()
        out = await t.wait_for_prompt("#", timeout=0.2)
        assert out == b"EPON0/1:1  online"
        assert time.monotonic() - started >= 0.2

    @pytest.mark.asyncio
    async def test_late_data_is_seen(self):
        t = TelnetTransport(poll_interval=0.01)

        async def arrive():
            await asyncio.sleep(0.1)
            t._buffer.extend(b"\r\nOLT# ")

        task = asyncio.ensure_future(arrive())
        out = await t.wait_for_prompt(b"#", timeout=2.0)
        await task
        assert out == b"\r\nOLT# "

    def test_clear_returns_and_drops(self):
        t = TelnetTransport()
        t._buffer.extend(b"description : alice\r\nOLT(config-pon-0/1)# ")
        assert t.clear() == b"description : alice\r\nOLT(config-pon-0/1)# "
        assert t.pending == b""
        assert t.clear() == b""


class TestLiveSocket:
    @pytest.mark.asyncio
    async def test_round_trip(self):
        async def handle(reader, writer):
            writer.write(b"\r\nLogin: ")
            await writer.drain()
            while True:
                data = await reader.readline()
                if not data:
                    break
                writer.write(b"echo:" + data.rstrip() + b"\r\nOLT# ")
                await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        t = TelnetTransport(poll_interval=0.02)
        try:
            assert await t.connect("127.0.0.1", port, timeout=10.0)
            banner = await t.wait_for_prompt("Login:", timeout=5.0)
            assert b"Login:" in banner

            await t.send("admin", delay=0)
            out = await t.wait_for_prompt("#", timeout=5.0)
            assert b"admin" in out

            out = await t.send_and_wait("show onu status", wait=0.5)
            assert b"show onu status" in out
        finally:
            await t.disconnect()
            server.close()
            await server.wait_closed()
        assert not t.connected

    @pytest.mark.asyncio
    async def test_remote_close_disconnects(self):
        async def handle(reader, writer):
            writer.write(b"\r\nLogin: ")
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        t = TelnetTransport(poll_interval=0.02)
        try:
            assert await t.connect("127.0.0.1", port, timeout=10.0)
            assert b"Login:" in await t.wait_for_prompt("Login:", timeout=5.0)
            for _ in range(100):
                if not t.connected:
                    break
                await asyncio.sleep(0.05)
            assert not t.connected
            with pytest.raises(ConnectionError):
                await t.send("admin", delay=0)
        finally:
            await t.disconnect()
            server.close()
            await server.wait_closed()
