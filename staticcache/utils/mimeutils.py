import mimetypes
from typing import Optional

DEFAULT_MIME = 'application/octet-stream'
# mimetypes module reports these as encodings of the inner type,
# but they're served as archives, not as transparently-encoded content
ARCHIVE_ENCODINGS = {
    'gzip': 'application/gzip',
    'bzip2': 'application/x-bzip2',
    'xz': 'application/x-xz',
    'br': 'application/x-brotli',
    'compress': 'application/x-compress',
}
COMPRESSIBLE_APPLICATION_TYPES = {
    'application/javascript',
    'application/x-javascript',
    'application/ecmascript',
    'application/json',
    'application/manifest+json',
    'application/xml',
    'application/xhtml+xml',
    'application/rss+xml',
    'application/atom+xml',
    'application/wasm',
    'application/x-font-ttf',
    'application/vnd.ms-fontobject',
    'font/ttf',
    'font/otf',
    'image/svg+xml',
    'image/x-icon',
    'image/vnd.microsoft.icon',
    'image/bmp',
}
CHARSET_TYPES = {
    'application/javascript',
    'application/json',
    'application/manifest+json',
    'application/xml',
}


def mime_type(path: str) -> str:
    mime, encoding = mimetypes.guess_type(path)

    if encoding is not None:
        return ARCHIVE_ENCODINGS.get(encoding, DEFAULT_MIME)

    return mime or DEFAULT_MIME


def is_compressible(mime: Optional[str]) -> bool:
    """
    Text-like content worth gzipping. Images, video, audio and archives are
    already compressed
    """

    if not mime:
        return False

    mime = mime.split(';', 1)[0].strip().lower()

    return mime.startswith('text/') or \
        mime.endswith(('+json', '+xml', '+text')) or \
        mime in COMPRESSIBLE_APPLICATION_TYPES


def content_type(mime: str) -> str:
    """
    Appends utf-8 charset for textual types
    """

    if mime.startswith('text/') or mime in CHARSET_TYPES:
        return f'{mime}; charset=utf-8'

    return mime
