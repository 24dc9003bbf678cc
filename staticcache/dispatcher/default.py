import logging
from asyncio import iscoroutinefunction
from typing import Callable, Awaitable, Dict, List, Type, Optional, Union

from .. import exceptions
from .base import BaseDispatcher
from ..typehints import Logger
from ..entities import Request, Response, Result, Handled, Failed, NotHandled

ErrorHandler = Callable[[Request, Exception], Awaitable[Response]]
RequestHandler = Callable[[Request], Awaitable[Result]]


def error_page(code: int, description: str) -> Response:
    body = f'<h1>{code} {description}</h1>'.encode()

    return Response(
        code=code,
        status=description,
        headers={
            'content-type': 'text/html; charset=utf-8',
            'content-length': str(len(body))
        },
        body=body
    )


class ChainDispatcher(BaseDispatcher):
    """
    Runs handlers one by one until one of them handles the request. Handlers
    are objects with async handle(request) method (like StaticCache), or just
    coroutine functions with the same signature.

    NotHandled means "try the next one", exhausted chain is 404, Failed goes
    to the error handlers registered for the error type (500 page by default)
    """

    def __init__(self,
                 handlers: Optional[List[Union[RequestHandler, object]]] = None,
                 logger: Optional[Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.handlers: List[RequestHandler] = []
        # a dict with exceptions and handlers of the exceptions
        self.error_handlers: Dict[Type[Exception], ErrorHandler] = {}

        for handler in handlers or ():
            self.add_handler(handler)

    def add_handler(self, handler: Union[RequestHandler, object]) -> None:
        if hasattr(handler, 'handle'):
            handler = handler.handle

        if not iscoroutinefunction(handler):
            raise exceptions.HandlerMustBeCoroutineError(str(handler))

        self.handlers.append(handler)

    def handler(self, coro: RequestHandler) -> RequestHandler:
        """
        Decorator version of add_handler()
        """

        self.add_handler(coro)

        return coro

    def handle_error(self, error: Type[Exception]):
        def deco(coro: ErrorHandler):
            self.error_handlers[error] = coro

            return coro

        return deco

    async def process_request(self, request: Request) -> Response:
        for handler in self.handlers:
            try:
                result = await handler(request)
            except Exception as exc:
                result = Failed(exc)

            if isinstance(result, Handled):
                return result.response
            if isinstance(result, Failed):
                return await self._handle_exception(request, result.error)
            if not isinstance(result, NotHandled):
                return await self._handle_exception(
                    request, TypeError(f'{handler} returned {result!r} instead of a result')
                )

        return await self._handle_exception(
            request,
            exceptions.HTTPNotFound(request, msg='no handlers attached for the request')
        )

    async def _handle_exception(self, request: Request, exc: Exception) -> Response:
        err_handler = self._get_error_handler(exc.__class__)

        if err_handler is None:
            if isinstance(exc, exceptions.HTTPError):
                # if no handlers attached, but as we have HTTPError,
                # we can show the default error page to user
                return error_page(exc.code, exc.description)

            self.logger.error(f'{request.method} {request.path}: no error handlers '
                              f'registered for {exc.__class__.__name__}: {exc}')

            return error_page(500, 'Internal Server Error')

        try:
            return await err_handler(request, exc)
        except exceptions.HTTPError as http_exc:
            return error_page(http_exc.code, http_exc.description)
        except Exception:
            self.logger.exception('uncaught exception in error handler:')

            return error_page(500, 'Internal Server Error')

    def _get_error_handler(self, exc_class: Type[Exception]) -> Optional[ErrorHandler]:
        for exception_class in exc_class.mro():
            if exception_class in self.error_handlers:
                return self.error_handlers[exception_class]

        return None
