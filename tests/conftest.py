"""
Pytest fixtures: a temporary static root with a small web bundle.
"""

from pathlib import Path

import pytest

from staticcache import StaticCache, CacheSettings
from tests.helpers import INDEX_JS, SITE_CSS, LOGO_PNG


@pytest.fixture
def static_root(tmp_path: Path) -> Path:
    """Directory with index.js, logo.png, css/site.css and a hidden file."""
    root = tmp_path / 'public'
    root.mkdir()
    (root / 'index.js').write_bytes(INDEX_JS)
    (root / 'logo.png').write_bytes(LOGO_PNG)
    (root / 'css').mkdir()
    (root / 'css' / 'site.css').write_bytes(SITE_CSS)
    (root / '.secret').write_bytes(b'hidden')

    return root


@pytest.fixture
def make_cache(static_root: Path):
    """Factory for a cache over static_root, options are CacheSettings fields."""
    def factory(**options) -> StaticCache:
        options.setdefault('root', str(static_root))

        return StaticCache(CacheSettings(**options))

    return factory
