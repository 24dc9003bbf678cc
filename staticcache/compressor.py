import gzip
import zlib
import asyncio
import logging
from typing import Optional, Callable, AsyncIterator

from .storage.base import Storage
from .record import FileRecord, RecordView
from .exceptions import CompressionFailure
from .utils.mimeutils import is_compressible

logger = logging.getLogger(__name__)

GZIP_THRESHOLD = 1024
# wbits for zlib to write gzip header and trailer instead of zlib ones
GZIP_WBITS = 16 + zlib.MAX_WBITS


def gzip_bytes(data: bytes) -> bytes:
    """
    Deterministic: zeroed mtime in the header, so the same input always
    gives the same output
    """

    try:
        return gzip.compress(data, mtime=0)
    except (zlib.error, OverflowError) as exc:
        raise CompressionFailure(str(exc)) from exc


async def gzip_stream(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """
    Compresses a stream on the fly. Nothing is cached, so it's done for
    every request again. Closing this generator closes the source one
    """

    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, GZIP_WBITS)

    try:
        async for chunk in chunks:
            compressed = compressor.compress(chunk)

            if compressed:
                yield compressed

        yield compressor.flush()
    except zlib.error as exc:
        raise CompressionFailure(str(exc)) from exc
    finally:
        await chunks.aclose()


class Compressor:
    def __init__(self,
                 storage: Storage,
                 enabled: bool = False,
                 threshold: int = GZIP_THRESHOLD,
                 use_precompiled: bool = False):
        self.storage = storage
        self.enabled = enabled
        self.threshold = threshold
        self.use_precompiled = use_precompiled

    def is_eligible(self, view: RecordView) -> bool:
        return self.enabled and \
            view.size > self.threshold and \
            is_compressible(view.mime_type)

    async def compress(self, record: FileRecord) -> Optional[bytes]:
        """
        Returns gzipped buffered content of the record, compressing it only
        if there's no cached copy yet. None if record isn't buffered

        May raise CompressionFailure
        """

        loop = asyncio.get_running_loop()

        return await loop.run_in_executor(None, record.compressed, self._compress_function(record))

    def _compress_function(self, record: FileRecord) -> Callable[[bytes], bytes]:
        if not self.use_precompiled:
            return gzip_bytes

        sibling = self.storage.get(record.public_path + '.gz')
        precompiled = sibling.snapshot().content if sibling is not None else None

        if precompiled is None:
            return gzip_bytes

        def reuse_precompiled(_: bytes) -> bytes:
            logger.debug(f'{record.public_path}: using precompiled {sibling.public_path}')

            return precompiled

        return reuse_precompiled
