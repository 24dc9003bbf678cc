import os
import stat
import base64
import asyncio
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, AsyncIterator

from . import exceptions
from .loader import Loader
from .record import FileRecord, RecordView
from .storage.base import Storage
from .storage.memory import InMemoryStorage
from .compressor import Compressor, gzip_stream, GZIP_THRESHOLD
from .entities import Request, Response, Result, Handled, Failed, NOT_HANDLED
from .typehints import FileFilter, FileOverrides
from .utils.mimeutils import content_type
from .utils.pathutils import PathResolver, is_hidden, normalize_path
from .utils.httputils import http_date, is_fresh, accepts_encoding

logger = logging.getLogger(__name__)

HANDLED_METHODS = {'GET', 'HEAD'}
DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class CacheSettings:
    root: str = field(default_factory=os.getcwd)
    prefix: str = field(default='/')
    gzip: bool = field(default=False)
    preload: bool = field(default=True)
    buffer: bool = field(default=False)
    dynamic: bool = field(default=False)
    # predicate over relative paths, or an explicit list of allowed ones
    filter: FileFilter = field(default=None)
    alias: Dict[str, str] = field(default_factory=dict)
    use_precompiled_gzip: bool = field(default=False)
    # per public path overrides: {'/index.html': {'cache_control': 'no-cache'}}
    files: FileOverrides = field(default_factory=dict)
    cache_control: Optional[str] = field(default=None)
    max_age: int = field(default=0)
    gzip_threshold: int = field(default=GZIP_THRESHOLD)
    chunk_size: int = field(default=DEFAULT_CHUNK_SIZE)


def make_file_filter(file_filter: FileFilter):
    if file_filter is None:
        return lambda name: True

    if callable(file_filter):
        return file_filter

    allowed = set(file_filter)

    return lambda name: name in allowed


class StaticCache:
    """
    Serves files of a directory from memory (or streams them from disk), with
    conditional requests, gzip and md5-based entity tags.

    Doesn't talk HTTP itself: handle() receives a request descriptor and returns
    Handled(response), NOT_HANDLED (let the next handler try) or Failed(error)
    """

    def __init__(self,
                 settings: Optional[CacheSettings] = None,
                 storage: Optional[Storage] = None):
        self.settings = settings or CacheSettings()
        self.storage = storage if storage is not None else InMemoryStorage()
        self.resolver = PathResolver(self.settings.root, self.settings.prefix)
        self.loader = Loader(
            resolver=self.resolver,
            storage=self.storage,
            buffer=self.settings.buffer,
            cache_control=self.settings.cache_control,
            max_age=self.settings.max_age,
            overrides={
                normalize_path(path): override
                for path, override in self.settings.files.items()
            }
        )
        self.compressor = Compressor(
            storage=self.storage,
            enabled=self.settings.gzip,
            threshold=self.settings.gzip_threshold,
            use_precompiled=self.settings.use_precompiled_gzip
        )

        if self.settings.preload:
            self._preload()

        self._apply_aliases()

        logger.debug(f'file list in dir: {self.resolver.root}, prefix: {self.resolver.prefix}')

        for public_path, record in self.storage.items():
            logger.debug(f'{public_path} -> {record.source_path}')

    @property
    def prefix(self) -> str:
        return self.resolver.prefix

    def _preload(self):
        """
        Raises FileNotFound if any of the files can't be loaded: served set
        must be fully valid before accepting requests
        """

        file_filter = make_file_filter(self.settings.filter)

        for name in self.loader.walk():
            if file_filter(name):
                self.loader.load(name)

    def _apply_aliases(self):
        for alias, target in self.settings.alias.items():
            if self.storage.alias(alias, target):
                logger.debug(f'alias from {alias} to {target}')
            else:
                logger.debug(f'alias from {alias} to {target} skipped: target is not registered')

    async def handle(self, request: Request) -> Result:
        try:
            return await self._handle(request)
        except Exception as exc:
            logger.exception(f'failed to handle {request.method} {request.path}: {exc}')

            return Failed(exc)

    async def _handle(self, request: Request) -> Result:
        if request.method not in HANDLED_METHODS:
            return NOT_HANDLED

        if request.path is None or not self.resolver.matches_prefix(request.path):
            return NOT_HANDLED

        public_path = self.resolver.public_path(request.path)
        record = self.storage.get(public_path)

        if record is None:
            record = await self._load_dynamic(public_path)

            if record is None:
                return NOT_HANDLED
        elif not await self._revalidate(record):
            return NOT_HANDLED

        return Handled(await self._respond(request, record))

    async def _load_dynamic(self, public_path: str) -> Optional[FileRecord]:
        if not self.settings.dynamic or is_hidden(public_path):
            return None

        try:
            full_path = self.resolver.resolve_filesystem(public_path)
        except exceptions.PathTraversal as exc:
            logger.warning(f'rejected: {exc}')
            return None

        loop = asyncio.get_running_loop()

        try:
            stats = await loop.run_in_executor(None, os.stat, full_path)
        except OSError:
            return None

        if not stat.S_ISREG(stats.st_mode):
            return None

        name = self.resolver.relative_name(public_path)

        try:
            record = await loop.run_in_executor(None, self.loader.load, name)
        except exceptions.FileNotFound as exc:
            logger.debug(f'dynamic load failed: {exc}')
            return None

        logger.debug(f'dynamically loaded {public_path}')

        return record

    async def _revalidate(self, record: FileRecord) -> bool:
        """
        Unbuffered records are checked against the file on disk. Buffered ones
        never refresh themselves after being loaded

        Returns False if file has gone
        """

        if record.content is not None:
            return True

        loop = asyncio.get_running_loop()

        try:
            stats = await loop.run_in_executor(None, os.stat, record.source_path)
        except OSError as exc:
            logger.warning(f'{record.source_path}: failed to stat cached file: {exc}')
            return False

        if record.mark_stale(stats.st_size, stats.st_mtime):
            logger.info(f'{record.public_path}: file has been modified, cached digest dropped')

        return True

    async def _respond(self, request: Request, record: FileRecord) -> Response:
        view = record.snapshot()
        response = Response(code=200)
        headers = response.headers

        if self.settings.gzip:
            headers['vary'] = 'Accept-Encoding'

        headers['last-modified'] = http_date(view.modified_time)

        if view.etag:
            headers['etag'] = view.etag

        if is_fresh(request.headers, headers):
            response.code = 304
            response.body = b''

            return response

        headers['content-type'] = content_type(view.mime_type)
        headers['content-length'] = str(view.size)
        headers['cache-control'] = view.cache_control_header

        if view.digest:
            headers['content-md5'] = view.digest

        if request.method == 'HEAD':
            response.body = b''

            return response

        should_gzip = self.compressor.is_eligible(view) and \
            accepts_encoding(request.headers.get('accept-encoding'), 'gzip')

        if view.content is not None:
            response.body = view.content

            if should_gzip:
                try:
                    compressed = await self.compressor.compress(record)
                except exceptions.CompressionFailure as exc:
                    logger.warning(f'{view.public_path}: gzip failed, sending as is: {exc}')
                    compressed = None

                if compressed is not None:
                    headers['content-encoding'] = 'gzip'
                    headers['content-length'] = str(len(compressed))
                    response.body = compressed

            return response

        stream = self._stream_file(record, view)

        if should_gzip:
            # length of compressed stream is unknown in advance
            del headers['content-length']
            headers['content-encoding'] = 'gzip'
            stream = gzip_stream(stream)

        response.body = stream

        return response

    async def _stream_file(self, record: FileRecord, view: RecordView) -> AsyncIterator[bytes]:
        """
        Reads file by chunks. If digest is unknown, computes it on the fly
        and stores once the whole file was read, so next requests get an etag.
        File is opened only when iteration begins and is closed on any exit
        """

        loop = asyncio.get_running_loop()
        md5 = hashlib.md5() if view.digest is None else None
        fd = await loop.run_in_executor(None, open, view.source_path, 'rb')

        try:
            while True:
                chunk = await loop.run_in_executor(None, fd.read, self.settings.chunk_size)

                if not chunk:
                    break

                if md5 is not None:
                    md5.update(chunk)

                yield chunk
        finally:
            await loop.run_in_executor(None, fd.close)

        if md5 is not None:
            digest = base64.b64encode(md5.digest()).decode()

            if record.set_digest(digest, view.modified_time):
                logger.debug(f'{view.public_path}: digest computed while streaming')
