import os
from pathlib import Path
from typing import Dict, Optional

from staticcache import Request

INDEX_JS = b'console.log("hello from the bundle");\n' * 150
SITE_CSS = b'body { color: #333; margin: 0 auto; }\n' * 60
LOGO_PNG = (bytes(range(256)) * 200)[:50000]


def make_request(path: str,
                 method: str = 'GET',
                 headers: Optional[Dict[str, str]] = None) -> Request:
    return Request(method=method, path=path, headers=headers or {})


def touch_later(path: Path, content: Optional[bytes] = None, seconds: int = 10) -> None:
    """Rewrite the file (optionally) and move its mtime forward."""
    if content is not None:
        path.write_bytes(content)

    mtime = os.stat(path).st_mtime + seconds
    os.utime(path, (mtime, mtime))
