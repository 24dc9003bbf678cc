import os
import stat
import base64
import hashlib
import logging
from typing import List, Optional

from .record import FileRecord
from .storage.base import Storage
from .exceptions import FileNotFound, NotARegularFile
from .utils.mimeutils import mime_type
from .utils.pathutils import PathResolver
from .typehints import FileOverrides, Path

logger = logging.getLogger(__name__)


def md5_digest(content: bytes) -> str:
    return base64.b64encode(hashlib.md5(content).digest()).decode()


class Loader:
    """
    Reads files from the served root and registers (or refreshes) their
    records in the storage. Used as for preloading, as for lazy loads
    while handling requests
    """

    def __init__(self,
                 resolver: PathResolver,
                 storage: Storage,
                 buffer: bool = False,
                 cache_control: Optional[str] = None,
                 max_age: int = 0,
                 overrides: Optional[FileOverrides] = None):
        self.resolver = resolver
        self.storage = storage
        self.buffer = buffer
        self.cache_control = cache_control
        self.max_age = max_age
        self.overrides = overrides or {}

    @property
    def root(self) -> Path:
        return self.resolver.root

    def walk(self) -> List[str]:
        """
        Relative paths (always `/`-separated) of all the files under the root.
        Hidden files and directories are skipped
        """

        names = []

        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [name for name in dirnames if not name.startswith('.')]
            relative_dir = os.path.relpath(dirpath, self.root)

            for filename in filenames:
                if filename.startswith('.'):
                    continue

                name = filename if relative_dir == os.curdir else os.path.join(relative_dir, filename)
                names.append(name.replace(os.sep, '/'))

        return sorted(names)

    def load(self, name: str) -> FileRecord:
        """
        Loads file by its path relative to the root. Reloading the same name
        refreshes the already registered record, so aliases keep pointing to it

        Raises FileNotFound if file can't be stat'ed or read
        """

        public_path = self.resolver.public_path_for(name)
        source_path = os.path.normpath(os.path.join(self.root, name))

        try:
            stats = os.stat(source_path)

            if not stat.S_ISREG(stats.st_mode):
                raise NotARegularFile(source_path, 'not a regular file')

            content = None

            if self.buffer:
                with open(source_path, 'rb') as fd:
                    content = fd.read()
        except OSError as exc:
            raise FileNotFound(source_path, exc.strerror or str(exc)) from exc

        record = self.storage.get(public_path)

        if record is None:
            record = self.storage.insert(public_path, self._new_record(public_path, source_path))

        record.refresh(
            mime_type=mime_type(public_path),
            # length of actually read content wins over stat, file may
            # have been modified in between
            size=len(content) if content is not None else stats.st_size,
            modified_time=stats.st_mtime,
            digest=md5_digest(content) if content is not None else None,
            content=content
        )
        logger.debug(f'loaded {source_path} as {public_path} '
                     f'({record.size} bytes, buffered={content is not None})')

        return record

    def _new_record(self, public_path: str, source_path: str) -> FileRecord:
        override = self.overrides.get(public_path) or {}

        return FileRecord(
            public_path=public_path,
            source_path=source_path,
            cache_control=override.get('cache_control') or self.cache_control,
            max_age=override.get('max_age') or self.max_age or 0
        )
