from dataclasses import dataclass
from typing import Union, Any, Dict, Optional

from .typehints import Body


class CaseInsensitiveDict(dict):
    """
    A class that works absolutely like usual dict, but keys are case-insensitive
    Do not try to make him work with anything that is not bytes or a string!
    """

    def __init__(self, *args, **kwargs):
        # it's really faster to call super() once
        # and get it from self, than call it every time
        self.__parent = super()
        super().__init__()
        self.update(dict(*args, **kwargs))

    def __getitem__(self, item: Union[str, bytes]) -> Any:
        return self.__parent.__getitem__(item.lower())

    def __setitem__(self, key: Union[str, bytes], value: Any) -> None:
        self.__parent.__setitem__(key.lower(), value)

    def __delitem__(self, key: Union[str, bytes]) -> None:
        self.__parent.__delitem__(key.lower())

    def __contains__(self, item: Union[str, bytes]) -> bool:
        return self.__parent.__contains__(item.lower())

    def get(self, item: Union[str, bytes], instead: Any = None) -> Any:
        return self.__parent.get(item.lower(), instead)

    def pop(self, key: Union[str, bytes], *default: Any) -> Any:
        return self.__parent.pop(key.lower(), *default)

    def setdefault(self, key: Union[str, bytes], default: Any = None) -> Any:
        return self.__parent.setdefault(key.lower(), default)

    def update(self, other=(), **kwargs):
        self.__parent.update(
            {key.lower(): value for key, value in dict(other, **kwargs).items()}
        )

    def copy(self) -> 'CaseInsensitiveDict':
        return CaseInsensitiveDict(self.items())


class Request:
    """
    Request descriptor, one per parsed message. Path is kept raw (still
    percent-encoded) without query string and fragment, decoding is a
    business of the handler
    """

    def __init__(self,
                 method: Optional[str] = None,
                 path: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None):
        self.method = method
        self.path = path
        self.raw_parameters: Optional[str] = None
        self.fragment: Optional[str] = None
        self.protocol: Optional[str] = None
        self.headers = CaseInsensitiveDict(headers or {})

    def __repr__(self):
        return f'<Request {self.method} {self.path}>'


class Response:
    """
    Response class is just a storage
    The actual response will happen after it will be returned to the server.
    Body is either bytes, or an async iterator of bytes (streamed from disk)
    """

    def __init__(self,
                 code: int = 200,
                 headers: Optional[Dict[str, str]] = None,
                 body: Body = b'',
                 status: Optional[str] = None):
        self.code = code
        self.status = status
        self.headers = CaseInsensitiveDict(headers or {})
        self.body = body

    @property
    def streamed(self) -> bool:
        return self.body is not None and not isinstance(self.body, (bytes, bytearray))

    async def read(self) -> bytes:
        """
        Collects the whole body. Mostly for tests and for the cases when
        stream must be materialized
        """

        if not self.streamed:
            return self.body or b''

        chunks = [chunk async for chunk in self.body]
        self.body = b''.join(chunks)

        return self.body

    async def close(self) -> None:
        """
        Releases the stream (and the file handle behind it) if it wasn't
        exhausted, e.g. client disconnected in the middle of transmission
        """

        if self.streamed:
            await self.body.aclose()

    def __repr__(self):
        return f'<Response {self.code}>'


@dataclass(frozen=True)
class Handled:
    response: Response


@dataclass(frozen=True)
class NotHandled:
    """
    Handler refused the request, the next one in the chain should try
    """


@dataclass(frozen=True)
class Failed:
    error: Exception


NOT_HANDLED = NotHandled()
Result = Union[Handled, NotHandled, Failed]
