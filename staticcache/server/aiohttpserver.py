import socket
import asyncio
import logging
from typing import Optional, Callable, Awaitable

from httptools import HttpRequestParser, HttpParserError

from . import base
from ..typehints import AsyncFunction
from ..entities import Request, Response, CaseInsensitiveDict
from ..parser.httptools_protocol import Protocol as LLHttpProtocol
from ..utils.httputils import render_http_response, render_chunk, LAST_CHUNK

logger = logging.getLogger(__name__)

CLIENT_DISCONNECTED = 'constant for client runners tasks to stop themselves silently'
PRE_RENDERED_BAD_REQUEST = render_http_response(
    protocol=b'1.1',
    code=400,
    status_code='Bad Request',
    headers={
        'content-type': 'text/html',
        'content-length': '24',
        'connection': 'close'
    },
    body=b'<h1>400 Bad Request</h1>'
)


class AsyncioServerProtocol(asyncio.Protocol):
    def __init__(self,
                 process_request: AsyncFunction,
                 default_headers: CaseInsensitiveDict):
        self.process_request = process_request
        self.default_headers = default_headers
        self.transport: Optional[asyncio.Transport] = None

        self.protocol = LLHttpProtocol()
        self.parser = HttpRequestParser(self.protocol)
        self.protocol.parser = self.parser

        self.requests_queue = asyncio.Queue()
        self.runner: Optional[asyncio.Task] = None
        # cleared while transport's write buffer is over the high-water mark
        self.writable = asyncio.Event()
        self.writable.set()

    def connection_made(self, transport: asyncio.Transport) -> None:
        self.transport = transport
        self.runner = asyncio.create_task(client_runner(
            requests_queue=self.requests_queue,
            callback=self.process_request,
            server_protocol=self,
        ))

    def data_received(self, data: bytes) -> None:
        self.requests_queue.put_nowait(data)

    def connection_lost(self, _) -> None:
        # connection_lost callback receives one positional argument - Exception
        # object. But we actually don't need it, as we anyway doesn't care,
        # it's client's problem
        self.requests_queue.put_nowait(CLIENT_DISCONNECTED)
        # let the blocked writer notice the closed transport
        self.writable.set()

    def pause_writing(self) -> None:
        self.writable.clear()

    def resume_writing(self) -> None:
        self.writable.set()

    async def drain(self) -> None:
        await self.writable.wait()


class AioHTTPServer(base.HTTPServer):
    def __init__(self,
                 sock: socket.socket,
                 backlog: int,
                 on_begin_serving: Callable,
                 process_request: AsyncFunction,
                 default_headers: CaseInsensitiveDict):
        super(AioHTTPServer, self).__init__(
            sock=sock,
            backlog=backlog,
            on_begin_serving=on_begin_serving,
            process_request=process_request,
            default_headers=default_headers
        )

        self.server: Optional[asyncio.AbstractServer] = None
        sock.listen(backlog)

    async def poll(self):
        loop = asyncio.get_running_loop()
        server = await loop.create_server(
            lambda: AsyncioServerProtocol(
                self.process_request,
                self.default_headers
            ),
            sock=self.sock,
            start_serving=False
        )
        self.server = server
        self.on_begin_serving()

        await server.serve_forever()

    def stop(self):
        if self.server is not None:
            self.server.close()


async def send_response(transport: asyncio.Transport,
                        drain: Callable[[], Awaitable[None]],
                        request: Request,
                        response: Response,
                        default_headers: CaseInsensitiveDict,
                        keep_alive: bool = True) -> bool:
    """
    Writes the response to transport. Buffered bodies are sent in one write,
    streams are sent as is if their length is known, or with chunked transfer
    encoding otherwise. Stream is always closed in the end, even if client
    has gone in the middle of it

    Returns False if the transport was closed before the whole body was sent
    """

    headers = default_headers.copy()
    headers.update(response.headers)

    if not keep_alive:
        headers['connection'] = 'close'

    protocol = (request.protocol or '1.1').encode()
    no_body = request.method == 'HEAD' or response.code == 304

    if not response.streamed or no_body:
        body = b'' if no_body else (response.body or b'')

        if not no_body and 'content-length' not in headers:
            headers['content-length'] = str(len(body))

        await response.close()
        transport.write(render_http_response(
            protocol=protocol,
            code=response.code,
            status_code=response.status,
            headers=headers,
            body=body
        ))

        return True

    chunked = 'content-length' not in headers

    if chunked:
        headers['transfer-encoding'] = 'chunked'

    try:
        transport.write(render_http_response(
            protocol=protocol,
            code=response.code,
            status_code=response.status,
            headers=headers
        ))

        async for chunk in response.body:
            if transport.is_closing():
                logger.debug(f'{request.path}: client disconnected while streaming')
                return False

            transport.write(render_chunk(chunk) if chunked else chunk)
            await drain()

        if chunked:
            transport.write(LAST_CHUNK)
    finally:
        await response.close()

    return True


async def client_runner(requests_queue: asyncio.Queue,
                        callback: Callable[[Request], Awaitable[Response]],
                        server_protocol: AsyncioServerProtocol) -> None:
    transport = server_protocol.transport

    while True:
        data = await requests_queue.get()

        if data == CLIENT_DISCONNECTED:
            return

        try:
            server_protocol.parser.feed_data(data)
            parse_error = None
        except HttpParserError as exc:
            parse_error = exc

        # a single chunk may carry several pipelined requests
        for request, keep_alive in server_protocol.protocol.pop_completed():
            response = await callback(request)

            try:
                completed = await send_response(
                    transport=transport,
                    drain=server_protocol.drain,
                    request=request,
                    response=response,
                    default_headers=server_protocol.default_headers,
                    keep_alive=keep_alive
                )
            except Exception as exc:
                logger.exception(f'{request.method} {request.path}: failed to send response: {exc}')
                completed = False

            if not completed or not keep_alive:
                transport.close()
                return

        if parse_error is not None:
            logger.debug(f'bad request: {parse_error}')
            transport.write(PRE_RENDERED_BAD_REQUEST)
            transport.close()
            return
