from typing import Optional, List, Tuple

from httptools import HttpRequestParser

from ..entities import Request


class Protocol:
    """
    Callbacks for httptools parser. Fills a fresh request object per message;
    path is left percent-encoded, query string and fragment are cut off.

    Completed messages are collected together with their keep-alive flag,
    so several pipelined requests fed in one chunk are all kept in order
    """

    def __init__(self):
        self.request_obj = Request()
        self.completed: List[Tuple[Request, bool]] = []
        self.keep_alive: bool = True

        self.parser: Optional[HttpRequestParser] = None

    def on_url(self, url: bytes):
        url = url.decode('utf-8', 'replace')
        parameters = fragment = None

        if '?' in url:
            url, parameters = url.split('?', 1)

            if '#' in parameters:
                parameters, fragment = parameters.split('#', 1)
        elif '#' in url:
            url, fragment = url.split('#', 1)

        self.request_obj.path = url
        self.request_obj.raw_parameters = parameters
        self.request_obj.fragment = fragment
        self.request_obj.method = self.parser.get_method().decode()

    def on_header(self, header: bytes, value: bytes):
        self.request_obj.headers[header.decode('latin-1')] = value.decode('latin-1')

    def on_headers_complete(self):
        self.request_obj.protocol = self.parser.get_http_version()
        self.keep_alive = self.parser.should_keep_alive()

    def on_message_complete(self):
        # request body is ignored: files are served only for GET and HEAD
        self.completed.append((self.request_obj, self.keep_alive))
        self.request_obj = Request()

    def pop_completed(self) -> List[Tuple[Request, bool]]:
        completed, self.completed = self.completed, []

        return completed
