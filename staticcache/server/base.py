import abc
import socket
from typing import Callable, Awaitable

from ..entities import Request, Response, CaseInsensitiveDict


class HTTPServer(abc.ABC):
    """
    Transport side of the web server: accepts connections on an already
    bound socket, parses requests and writes back whatever the dispatcher
    returned. Default headers are merged into every response
    """

    def __init__(self,
                 sock: socket.socket,
                 backlog: int,
                 on_begin_serving: Callable[[], None],
                 process_request: Callable[[Request], Awaitable[Response]],
                 default_headers: CaseInsensitiveDict):
        self.sock = sock
        self.backlog = backlog
        self.on_begin_serving = on_begin_serving
        self.process_request = process_request
        self.default_headers = default_headers

    @abc.abstractmethod
    async def poll(self) -> None:
        """
        Serves until the loop is stopped. on_begin_serving() is called
        once the listening server is created
        """

    @abc.abstractmethod
    def stop(self):
        """
        Stops accepting new connections
        """
