from __future__ import annotations

import asyncio

import pytest

from gateway.errors import ChannelClosedError, ChannelFailureError, SuspensionFailureError
from gateway.protocol import AgiProtocol


def _run(coro):
    return asyncio.run(coro)


async def _until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def test_each_session_gets_its_own_replies(socket_transport) -> None:
    sessions = 5
    results: dict[str, list[int]] = {}

    async def handler(session) -> None:
        first = await session.send("NOOP")
        second = await session.send("WAIT FOR DIGIT", 1000)
        results[session["channel"]] = [first.result, second.result]

    async def scenario():
        conns = []
        for _ in range(sessions):
            protocol = AgiProtocol(handler)
            transport = socket_transport(protocol)
            protocol.connection_made(transport)
            conns.append((protocol, transport))

        for i, (protocol, _) in enumerate(conns):
            protocol.data_received(f"agi_channel: SIP/{i}\nagi_callerid: 55{i}\n\n".encode())
        await _until(lambda: all(len(t.written) == 1 for _, t in conns))

        # Replies arrive in reverse session order and split across reads.
        for i, (protocol, _) in reversed(list(enumerate(conns))):
            protocol.data_received(b"200 res")
            protocol.data_received(f"ult={i * 10 + 1}\r\n".encode())
        await _until(lambda: all(len(t.written) == 2 for _, t in conns))

        for i, (protocol, _) in enumerate(conns):
            protocol.data_received(f"200 result={i * 10 + 2}\n".encode())
        await asyncio.gather(*(p.task for p, _ in conns))
        return conns

    conns = _run(scenario())
    assert results == {f"SIP/{i}": [i * 10 + 1, i * 10 + 2] for i in range(sessions)}
    for _, transport in conns:
        assert transport.lines() == ["NOOP", "WAIT FOR DIGIT 1000"]
        assert transport.is_closing()


def test_disconnect_resumes_parked_session_with_error(socket_transport) -> None:
    errors: list[BaseException] = []

    async def handler(session) -> None:
        try:
            await session.send("STREAM FILE", "hello", None)
        except ChannelClosedError as exc:
            errors.append(exc)
            raise

    async def scenario():
        protocol = AgiProtocol(handler)
        transport = socket_transport(protocol)
        protocol.connection_made(transport)
        protocol.data_received(b"agi_channel: SIP/1\n\n")
        await _until(lambda: protocol.bridge.awaiting)

        protocol.connection_lost(None)
        await protocol.task

    _run(scenario())
    assert len(errors) == 1


def test_transport_error_surfaces_as_suspension_failure(socket_transport) -> None:
    async def scenario():
        protocol = AgiProtocol()
        transport = socket_transport(protocol)
        protocol.connection_made(transport)

        reader = asyncio.ensure_future(protocol.read_line())
        await asyncio.sleep(0)
        protocol.connection_lost(ConnectionResetError("reset by peer"))
        with pytest.raises(SuspensionFailureError) as excinfo:
            await reader
        return excinfo.value

    error = _run(scenario())
    assert isinstance(error.__cause__, ConnectionResetError)


def test_header_cut_short_ends_session_without_running_handler(socket_transport) -> None:
    calls: list[object] = []

    async def handler(session) -> None:
        calls.append(session)

    async def scenario():
        protocol = AgiProtocol(handler)
        transport = socket_transport(protocol)
        protocol.connection_made(transport)
        protocol.data_received(b"agi_channel: SIP/1\n")
        protocol.connection_lost(None)
        await protocol.task
        return protocol

    protocol = _run(scenario())
    assert calls == []
    assert protocol.task.done()


def test_write_after_close_raises(socket_transport) -> None:
    async def scenario():
        protocol = AgiProtocol()
        transport = socket_transport(protocol)
        protocol.connection_made(transport)
        protocol.close()
        with pytest.raises(ChannelClosedError):
            await protocol.write_line("NOOP")

    _run(scenario())


def test_shutdown_hooks_run_when_session_ends(socket_transport) -> None:
    closed: list[str] = []

    async def handler(session) -> None:
        session.add_shutdown_hook(lambda s: closed.append(s["channel"]))
        await session.send("HANGUP")

    async def scenario():
        protocol = AgiProtocol(handler)
        transport = socket_transport(protocol)
        protocol.connection_made(transport)
        protocol.data_received(b"agi_channel: SIP/9\n\n")
        await _until(lambda: protocol.bridge.awaiting)
        protocol.data_received(b"200 result=1\n")
        await protocol.task

    _run(scenario())
    assert closed == ["SIP/9"]


def test_caller_timeout_keeps_late_reply_from_next_command(socket_transport) -> None:
    outcome: list[str] = []
    timed_out = asyncio.Event()
    late_reply = asyncio.Event()

    async def handler(session) -> None:
        try:
            await asyncio.wait_for(session.send("WAIT FOR DIGIT", 5000), 0.01)
        except asyncio.TimeoutError:
            outcome.append("timed out")
            timed_out.set()

        await late_reply.wait()
        try:
            resp = await session.send("GET VARIABLE", "FOO")
        except ChannelFailureError:
            outcome.append("refused")
        else:
            outcome.append(resp.raw)

    async def scenario():
        protocol = AgiProtocol(handler)
        transport = socket_transport(protocol)
        protocol.connection_made(transport)
        protocol.data_received(b"agi_channel: SIP/3\n\n")
        await asyncio.wait_for(timed_out.wait(), 1)

        protocol.data_received(b"200 result=53\n")
        late_reply.set()
        await _until(lambda: len(outcome) == 2)
        protocol.data_received(b"200 result=1 (bar)\n")
        await protocol.task
        return transport

    transport = _run(scenario())
    assert outcome == ["timed out", "refused"]
    assert transport.lines() == ["WAIT FOR DIGIT 5000"]


@pytest.mark.parametrize(
    "chunks",
    [[b"x" * 40], [b"x" * 20, b"y" * 20], [b"200 result=0 (" + b"z" * 40 + b")\n"]],
)
def test_oversized_line_drops_connection(socket_transport, chunks: list[bytes]) -> None:
    async def scenario():
        protocol = AgiProtocol(max_line_length=32)
        transport = socket_transport(protocol)
        protocol.connection_made(transport)

        reader = asyncio.ensure_future(protocol.read_line())
        await asyncio.sleep(0)
        for chunk in chunks:
            protocol.data_received(chunk)
        with pytest.raises(ChannelFailureError, match="exceeds 32 bytes"):
            await reader

        protocol.data_received(b"200 result=1\n")
        with pytest.raises(ChannelFailureError):
            await protocol.read_line()
        return transport

    transport = _run(scenario())
    assert transport.is_closing()


def test_lines_within_limit_are_delivered(socket_transport) -> None:
    async def scenario():
        protocol = AgiProtocol(max_line_length=16)
        protocol.connection_made(socket_transport(protocol))
        protocol.data_received(b"200 result=1\n200 result=2\n")
        return [await protocol.read_line(), await protocol.read_line()]

    assert _run(scenario()) == ["200 result=1", "200 result=2"]
