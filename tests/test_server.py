"""
Tests for writing responses to the transport and the per-connection runner.
"""

from typing import List

import pytest

from staticcache import CaseInsensitiveDict, Request, Response
from staticcache.server.aiohttpserver import (
    AsyncioServerProtocol, send_response, PRE_RENDERED_BAD_REQUEST
)
from tests.helpers import make_request

DEFAULT_HEADERS = CaseInsensitiveDict(server='staticcache')


class FakeTransport:
    def __init__(self, close_after_writes: int = -1):
        self.writes: List[bytes] = []
        self.closed = False
        self.close_after_writes = close_after_writes

    def write(self, data: bytes) -> None:
        self.writes.append(data)

        if len(self.writes) == self.close_after_writes:
            self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True

    @property
    def data(self) -> bytes:
        return b''.join(self.writes)


async def no_drain() -> None:
    pass


def make_stream(chunks: List[bytes], closed: list):
    async def stream():
        try:
            for chunk in chunks:
                yield chunk
        finally:
            closed.append(True)

    return stream()


def split_response(data: bytes):
    head, _, body = data.partition(b'\r\n\r\n')
    status_line, *header_lines = head.decode().split('\r\n')
    headers = dict(line.split(': ', 1) for line in header_lines)

    return status_line, headers, body


class TestSendResponse:
    @pytest.mark.asyncio
    async def test_buffered(self) -> None:
        transport = FakeTransport()
        response = Response(headers={'content-type': 'text/plain'}, body=b'hello')

        assert await send_response(transport, no_drain, make_request('/'), response, DEFAULT_HEADERS)

        status_line, headers, body = split_response(transport.data)
        assert len(transport.writes) == 1
        assert status_line == 'HTTP/1.1 200 OK'
        assert headers['server'] == 'staticcache'
        assert headers['content-length'] == '5'
        assert body == b'hello'

    @pytest.mark.asyncio
    async def test_not_keep_alive(self) -> None:
        transport = FakeTransport()
        await send_response(transport, no_drain, make_request('/'), Response(body=b'x'),
                            DEFAULT_HEADERS, keep_alive=False)

        assert split_response(transport.data)[1]['connection'] == 'close'

    @pytest.mark.asyncio
    async def test_stream_with_length(self) -> None:
        transport = FakeTransport()
        closed = []
        response = Response(headers={'content-length': '6'}, body=make_stream([b'abc', b'def'], closed))

        assert await send_response(transport, no_drain, make_request('/'), response, DEFAULT_HEADERS)

        _, headers, body = split_response(transport.data)
        assert 'transfer-encoding' not in headers
        assert body == b'abcdef'
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_chunked_stream(self) -> None:
        transport = FakeTransport()
        closed = []
        response = Response(body=make_stream([b'abc', b'', b'defgh'], closed))

        assert await send_response(transport, no_drain, make_request('/'), response, DEFAULT_HEADERS)

        _, headers, body = split_response(transport.data)
        assert headers['transfer-encoding'] == 'chunked'
        assert body == b'3\r\nabc\r\n5\r\ndefgh\r\n0\r\n\r\n'
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_head_skips_stream(self) -> None:
        transport = FakeTransport()
        closed = []
        response = Response(headers={'content-length': '6'}, body=make_stream([b'abcdef'], closed))

        await send_response(transport, no_drain, make_request('/', 'HEAD'), response, DEFAULT_HEADERS)

        _, headers, body = split_response(transport.data)
        assert headers['content-length'] == '6'
        assert body == b''
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_not_modified_has_no_body(self) -> None:
        transport = FakeTransport()
        response = Response(code=304, headers={'etag': '"abc"'})

        await send_response(transport, no_drain, make_request('/'), response, DEFAULT_HEADERS)

        status_line, headers, body = split_response(transport.data)
        assert status_line == 'HTTP/1.1 304 Not Modified'
        assert 'content-length' not in headers
        assert body == b''

    @pytest.mark.asyncio
    async def test_client_gone_mid_stream(self) -> None:
        """Stream is released even when the body wasn't sent completely."""
        transport = FakeTransport(close_after_writes=2)
        closed = []
        response = Response(
            headers={'content-length': '9'},
            body=make_stream([b'abc', b'def', b'ghi'], closed)
        )

        assert not await send_response(transport, no_drain, make_request('/'), response, DEFAULT_HEADERS)
        assert closed == [True]
        assert b'ghi' not in transport.data


class TestConnection:
    @staticmethod
    def make_protocol(callback):
        protocol = AsyncioServerProtocol(callback, DEFAULT_HEADERS)
        transport = FakeTransport()
        protocol.connection_made(transport)

        return protocol, transport

    @pytest.mark.asyncio
    async def test_request_is_dispatched(self) -> None:
        seen = []

        async def callback(request: Request) -> Response:
            seen.append((request.method, request.path, request.raw_parameters,
                         request.headers['accept-encoding']))
            return Response(body=b'hello')

        protocol, transport = self.make_protocol(callback)
        protocol.data_received(b'GET /index.js?v=1 HTTP/1.1\r\n'
                               b'Host: localhost\r\nAccept-Encoding: gzip\r\n\r\n')
        protocol.connection_lost(None)
        await protocol.runner

        assert seen == [('GET', '/index.js', 'v=1', 'gzip')]
        assert transport.data.startswith(b'HTTP/1.1 200 OK\r\n')
        assert transport.data.endswith(b'\r\n\r\nhello')
        assert not transport.closed

    @pytest.mark.asyncio
    async def test_requests_in_separate_chunks(self) -> None:
        paths = []

        async def callback(request: Request) -> Response:
            paths.append(request.path)
            return Response(body=b'ok')

        protocol, transport = self.make_protocol(callback)
        protocol.data_received(b'GET /a.js HTTP/1.1\r\nHost: localhost\r\n\r\n')
        protocol.data_received(b'GET /b.js HTTP/1.1\r\nHost: localhost\r\n\r\n')
        protocol.connection_lost(None)
        await protocol.runner

        assert paths == ['/a.js', '/b.js']

    @pytest.mark.asyncio
    async def test_pipelined_requests_in_one_chunk(self) -> None:
        """Every request of a chunk is answered, in order, with its own headers."""
        seen = []

        async def callback(request: Request) -> Response:
            seen.append((request.path, request.headers.get('x-id')))
            return Response(body=request.path.encode())

        protocol, transport = self.make_protocol(callback)
        protocol.data_received(b'GET /a.js HTTP/1.1\r\nHost: localhost\r\nX-Id: 1\r\n\r\n'
                               b'GET /b.js HTTP/1.1\r\nHost: localhost\r\n\r\n'
                               b'GET /c.js HTTP/1.1\r\nHost: local')
        protocol.data_received(b'host\r\nX-Id: 3\r\n\r\n')
        protocol.connection_lost(None)
        await protocol.runner

        assert seen == [('/a.js', '1'), ('/b.js', None), ('/c.js', '3')]
        assert transport.data.count(b'HTTP/1.1 200 OK') == 3
        assert transport.data.index(b'/a.js') < transport.data.index(b'/b.js') \
            < transport.data.index(b'/c.js')
        assert not transport.closed

    @pytest.mark.asyncio
    async def test_pipelined_after_connection_close_ignored(self) -> None:
        paths = []

        async def callback(request: Request) -> Response:
            paths.append(request.path)
            return Response(body=b'ok')

        protocol, transport = self.make_protocol(callback)
        protocol.data_received(b'GET /a.js HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n'
                               b'GET /b.js HTTP/1.1\r\nHost: localhost\r\n\r\n')
        await protocol.runner

        assert paths == ['/a.js']
        assert transport.closed

    @pytest.mark.asyncio
    async def test_connection_close(self) -> None:
        async def callback(request: Request) -> Response:
            return Response(body=b'bye')

        protocol, transport = self.make_protocol(callback)
        protocol.data_received(b'GET / HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n')
        await protocol.runner

        assert transport.closed
        assert split_response(transport.data)[1]['connection'] == 'close'

    @pytest.mark.asyncio
    async def test_bad_request(self) -> None:
        async def callback(request: Request) -> Response:
            raise AssertionError('must not be called')

        protocol, transport = self.make_protocol(callback)
        protocol.data_received(b'\x00\x01 not http at all\r\n\r\n')
        await protocol.runner

        assert transport.data == PRE_RENDERED_BAD_REQUEST
        assert transport.closed

    @pytest.mark.asyncio
    async def test_bad_request_after_valid_one(self) -> None:
        paths = []

        async def callback(request: Request) -> Response:
            paths.append(request.path)
            return Response(body=b'ok')

        protocol, transport = self.make_protocol(callback)
        protocol.data_received(b'GET /a.js HTTP/1.1\r\nHost: localhost\r\n\r\n'
                               b'\x00\x01 not http at all\r\n\r\n')
        await protocol.runner

        assert paths == ['/a.js']
        assert transport.data.startswith(b'HTTP/1.1 200 OK\r\n')
        assert transport.data.endswith(PRE_RENDERED_BAD_REQUEST)
        assert transport.closed
