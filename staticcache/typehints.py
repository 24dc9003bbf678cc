from typing import (Callable, Awaitable, AsyncIterator, Iterable,
                    Union, Dict, Optional, Protocol)

AsyncFunction = Callable[..., Awaitable]
Path = str
PublicPath = str
Body = Union[bytes, AsyncIterator[bytes], None]
FileFilter = Union[Callable[[str], bool], Iterable[str], None]
FileOverrides = Dict[PublicPath, Dict[str, Union[str, int, None]]]
Digest = Optional[str]


class Logger(Protocol):
    def debug(self, text: str) -> None:
        ...

    def info(self, text: str) -> None:
        ...

    def warning(self, text: str) -> None:
        ...

    def error(self, text: str) -> None:
        ...

    def critical(self, text: str) -> None:
        ...

    def exception(self, text: str) -> None:
        ...
