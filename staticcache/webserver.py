import os
import socket
import signal
import logging
import multiprocessing
from dataclasses import dataclass, field
from typing import List, Type, Optional

import uvloop

from .utils import sockutils
from .server.base import HTTPServer
from .utils.osdetector import is_windows
from .entities import CaseInsensitiveDict
from .dispatcher.base import BaseDispatcher
from .server.aiohttpserver import AioHTTPServer

logging.basicConfig(
    format='[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'
)


@dataclass
class Settings:
    host: str = field(default='127.0.0.1')
    port: int = field(default=9090)
    # None means one worker per logical core
    processes: Optional[int] = field(default=1)
    backlog: int = field(default=1024)
    bind_attempts: int = field(default=5)
    bind_retry_delay: float = field(default=1.0)

    default_headers: CaseInsensitiveDict = field(
        default_factory=lambda: CaseInsensitiveDict(
            server='staticcache',
            connection='keep-alive'
        )
    )

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger('staticcache'))

    httpserver: Type[HTTPServer] = field(default=AioHTTPServer)


class WebServer:
    """
    Pre-fork server: the parent binds nothing until workers are forked, then
    every process (parent included) binds its own SO_REUSEPORT socket and
    serves the same dispatcher. Whatever the dispatcher loaded before run()
    (e.g. a preloaded static cache) is shared with the workers by fork
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.logger = self.settings.logger

        # pids of forked workers; None inside a worker itself
        self.workers: Optional[List[int]] = []

    def run(self, dp: BaseDispatcher):
        if not isinstance(dp, BaseDispatcher):
            raise TypeError(f'{dp} object must be inherited from '
                            'staticcache.dispatcher.base.BaseDispatcher object!')

        to_fork = self.workers_to_fork(self.settings.processes)

        if to_fork:
            self.workers = self._fork_workers(to_fork)

            if self.workers is not None:
                self.logger.info(f'forked {to_fork} workers')

        self._serve(dp)

    def workers_to_fork(self, processes: Optional[int]) -> int:
        """
        The current process serves too, so it's one less than requested.
        None or a negative number means a process per logical core.
        Nothing is forked under windows, as there is no SO_REUSEPORT
        """

        if is_windows():
            if processes not in (0, 1):
                self.logger.info('SO_REUSEPORT is not available under windows, '
                                 'serving in a single process')
            return 0

        if processes is None or processes < 0:
            processes = multiprocessing.cpu_count()

        return max(processes - 1, 0)

    def _fork_workers(self, count: int) -> Optional[List[int]]:
        pids = []

        for _ in range(count):
            pid = os.fork()

            if pid == 0:
                return None

            pids.append(pid)
            self.logger.debug(f'forked worker pid={pid}')

        return pids

    def _bind(self) -> socket.socket:
        address = (self.settings.host, self.settings.port)
        sock = socket.socket()
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, True)

        if not is_windows():
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, True)

        bound, attempts = sockutils.bind_sock(
            sock=sock,
            addr=address,
            max_retries=self.settings.bind_attempts,
            retries_timeout=self.settings.bind_retry_delay
        )

        if not bound:
            sock.close()
            self.logger.error(f'could not bind {address[0]}:{address[1]} '
                              f'after {attempts} attempts')

            if self._is_parent():
                self._terminate_workers()

            raise SystemExit(1)

        return sock

    def _serve(self, dp: BaseDispatcher):
        # workers stay quiet, the parent speaks for all of them
        self.logger.disabled = not self._is_parent()
        sock = self._bind()
        self.logger.info(f'serving on http://{self.settings.host}:{self.settings.port}, '
                         'press CTRL-C to stop')

        http_server = self.settings.httpserver(
            sock,
            self.settings.backlog,
            dp.on_begin_serving,
            dp.process_request,
            self.settings.default_headers
        )
        loop = uvloop.new_event_loop()

        try:
            loop.run_until_complete(http_server.poll())
        except (KeyboardInterrupt, SystemExit):
            self.logger.info('shutting down')
        finally:
            http_server.stop()
            self._terminate_workers()
            loop.close()
            sock.close()

    def _is_parent(self) -> bool:
        return self.workers is not None

    def _terminate_workers(self):
        if not self._is_parent() or not self.workers:
            return

        for pid in self.workers:
            try:
                os.kill(pid, signal.SIGTERM)
            except OSError as exc:
                self.logger.warning(f'failed to terminate worker pid={pid}: {exc}')

        self.logger.debug(f'terminated {len(self.workers)} workers')
        self.workers.clear()

    def stop(self):
        self._terminate_workers()
