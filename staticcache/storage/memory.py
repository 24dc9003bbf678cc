from typing import Dict, Optional, Iterator, Tuple

from .base import Storage
from ..record import FileRecord
from ..typehints import PublicPath


class InMemoryStorage(Storage):
    """
    Plain dict under the hood. dict.setdefault() is atomic, so inserting
    new records doesn't need a lock over the whole storage
    """

    def __init__(self):
        self.files: Dict[PublicPath, FileRecord] = {}

    def get(self, path: PublicPath) -> Optional[FileRecord]:
        return self.files.get(path)

    def insert(self, path: PublicPath, record: FileRecord) -> FileRecord:
        return self.files.setdefault(path, record)

    def alias(self, alias_path: PublicPath, target_path: PublicPath) -> bool:
        target = self.files.get(target_path)

        if target is None:
            return False

        self.files[alias_path] = target

        return True

    def items(self) -> Iterator[Tuple[PublicPath, FileRecord]]:
        return iter(list(self.files.items()))

    def __contains__(self, path: PublicPath) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)
