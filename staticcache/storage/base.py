"""
Storage is a registry of served files: public path -> FileRecord.
Append-only: records are added at preload or lazily on dynamic loads,
refreshed in place, but never removed during the process lifetime
"""

import abc
from typing import Optional, Iterator, Tuple

from ..record import FileRecord
from ..typehints import PublicPath


class Storage(abc.ABC):
    @abc.abstractmethod
    def get(self, path: PublicPath) -> Optional[FileRecord]:
        """
        Returns a record by exact public path, or None
        """

    @abc.abstractmethod
    def insert(self, path: PublicPath, record: FileRecord) -> FileRecord:
        """
        Inserts the record if the path is not registered yet. Returns the
        record that is registered under the path after the call, which is
        the already existing one in case of concurrent insert
        """

    @abc.abstractmethod
    def alias(self, alias_path: PublicPath, target_path: PublicPath) -> bool:
        """
        Registers the same record under one more path. Returns False and
        does nothing if target is not registered
        """

    @abc.abstractmethod
    def items(self) -> Iterator[Tuple[PublicPath, FileRecord]]:
        ...

    @abc.abstractmethod
    def __contains__(self, path: PublicPath) -> bool:
        ...

    @abc.abstractmethod
    def __len__(self) -> int:
        ...

    def __getitem__(self, path: PublicPath) -> FileRecord:
        record = self.get(path)

        if record is None:
            raise KeyError(path)

        return record
