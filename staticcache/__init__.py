from .cache import StaticCache, CacheSettings
from .record import FileRecord, RecordView
from .storage import Storage, InMemoryStorage
from .entities import (Request, Response, Handled, NotHandled, Failed,
                       NOT_HANDLED, CaseInsensitiveDict)

__all__ = [
    'StaticCache', 'CacheSettings', 'FileRecord', 'RecordView',
    'Storage', 'InMemoryStorage', 'Request', 'Response',
    'Handled', 'NotHandled', 'Failed', 'NOT_HANDLED', 'CaseInsensitiveDict',
]
