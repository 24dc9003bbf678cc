from threading import RLock, Lock
from typing import Optional, Callable, NamedTuple

from .typehints import Path, PublicPath, Digest


class RecordView(NamedTuple):
    """
    Consistent snapshot of a FileRecord, taken under its lock
    """

    source_path: Path
    public_path: PublicPath
    mime_type: str
    size: int
    modified_time: float
    digest: Digest
    content: Optional[bytes]
    compressed_content: Optional[bytes]
    cache_control: Optional[str]
    max_age: int

    @property
    def etag(self) -> Optional[str]:
        return f'"{self.digest}"' if self.digest else None

    @property
    def cache_control_header(self) -> str:
        return self.cache_control or f'public, max-age={self.max_age}'


class FileRecord:
    """
    Metadata (and optionally content) of a single served file. One record may
    be registered under several public paths (aliases), so it's never copied,
    only refreshed in place.

    Derived fields (digest, compressed content) are memoized: None means
    "unknown, must be recomputed". Anything that invalidates content or digest
    also drops the compressed copy
    """

    def __init__(self,
                 public_path: PublicPath,
                 source_path: Path,
                 cache_control: Optional[str] = None,
                 max_age: int = 0):
        self.public_path = public_path
        self.source_path = source_path
        self.cache_control = cache_control
        self.max_age = max_age

        self.mime_type: str = 'application/octet-stream'
        self.size: int = 0
        self.modified_time: float = 0.0
        self.digest: Digest = None
        self.content: Optional[bytes] = None
        self.compressed_content: Optional[bytes] = None

        self._lock = RLock()
        # separate lock, so compression doesn't block readers of metadata
        self._compress_lock = Lock()

    def snapshot(self) -> RecordView:
        with self._lock:
            return RecordView(
                source_path=self.source_path,
                public_path=self.public_path,
                mime_type=self.mime_type,
                size=self.size,
                modified_time=self.modified_time,
                digest=self.digest,
                content=self.content,
                compressed_content=self.compressed_content,
                cache_control=self.cache_control,
                max_age=self.max_age,
            )

    def refresh(self,
                mime_type: str,
                size: int,
                modified_time: float,
                digest: Digest,
                content: Optional[bytes]) -> None:
        with self._lock:
            self.mime_type = mime_type
            self.size = size
            self.modified_time = modified_time
            self.digest = digest
            self.content = content
            self.compressed_content = None

    def mark_stale(self, size: int, modified_time: float) -> bool:
        """
        Updates stat-derived fields if file on disk is newer than the cached
        one. Returns whether record became stale
        """

        with self._lock:
            if modified_time <= self.modified_time:
                return False

            self.size = size
            self.modified_time = modified_time
            self.digest = None
            self.compressed_content = None

            return True

    def set_digest(self, digest: str, modified_time: float) -> bool:
        """
        Stores digest computed from a full read. Ignored if the record was
        refreshed since the read has started
        """

        with self._lock:
            if self.modified_time != modified_time:
                return False

            self.digest = digest

            return True

    def compressed(self, compress: Callable[[bytes], bytes]) -> Optional[bytes]:
        """
        Compute-if-absent for compressed content. At most one compression per
        record is running at a time, others wait and reuse its result.
        Returns None if there is no buffered content to compress.

        Blocking, should be run in executor
        """

        with self._compress_lock:
            with self._lock:
                source = self.content
                cached = self.compressed_content

            if source is None:
                return None

            if cached is not None:
                return cached

            compressed = compress(source)
            self.store_compressed(source, compressed)

            return compressed

    def store_compressed(self, source: bytes, compressed: bytes) -> bool:
        """
        Caches compressed payload only if it was derived from the current content
        """

        with self._lock:
            if self.content is not source:
                return False

            self.compressed_content = compressed

            return True

    def __repr__(self):
        return f'<FileRecord {self.public_path} -> {self.source_path}>'
