"""
Tests for request path decoding, normalization and traversal guard.
"""

import os
from pathlib import Path

import pytest

from staticcache.exceptions import InvalidPath, PathTraversal
from staticcache.utils.pathutils import (PathResolver, decode_url, safe_decode,
                                         normalize_path, normalize_prefix, is_hidden)


class TestDecoding:
    def test_decodes_utf8_escapes(self) -> None:
        """Percent-encoded utf-8 is decoded."""
        assert safe_decode('/%E4%B8%AD%E6%96%87') == '/中文'

    def test_plain_text_untouched(self) -> None:
        assert safe_decode('/index.js') == '/index.js'

    @pytest.mark.parametrize('raw', ['/100%', '/%zz.js', '/%C3%28'])
    def test_falls_back_to_raw_text(self, raw: str) -> None:
        """Malformed escapes and invalid utf-8 degrade to the raw path."""
        assert safe_decode(raw) == raw

    def test_strict_decoding_raises(self) -> None:
        with pytest.raises(InvalidPath):
            decode_url('/%zz')


class TestNormalization:
    @pytest.mark.parametrize('path, expected', [
        ('//index.js', '/index.js'),
        ('/a/./b/../c.js', '/a/c.js'),
        ('/../../etc/passwd', '/etc/passwd'),
        ('/js/', '/js/'),
        ('/', '/'),
        ('', '/'),
        ('index.js', '/index.js'),
    ])
    def test_normalize_path(self, path: str, expected: str) -> None:
        assert normalize_path(path) == expected

    @pytest.mark.parametrize('prefix, expected', [
        ('', '/'),
        (None, '/'),
        ('/', '/'),
        ('static', '/static/'),
        ('/static', '/static/'),
        ('/static//', '/static/'),
    ])
    def test_normalize_prefix(self, prefix: str, expected: str) -> None:
        assert normalize_prefix(prefix) == expected

    @pytest.mark.parametrize('path, hidden', [
        ('/.env', True),
        ('/dir/.git/', True),
        ('/.well-known/x.json', False),
        ('/app.js', False),
    ])
    def test_is_hidden(self, path: str, hidden: bool) -> None:
        assert is_hidden(path) is hidden


class TestPathResolver:
    def test_prefix_check_uses_raw_path(self, tmp_path: Path) -> None:
        resolver = PathResolver(str(tmp_path), '/static')

        assert resolver.matches_prefix('/static/app.js')
        assert not resolver.matches_prefix('/app.js')
        assert not resolver.matches_prefix('/static')

    def test_public_path_for_relative_name(self, tmp_path: Path) -> None:
        resolver = PathResolver(str(tmp_path), '/static')

        assert resolver.public_path_for('js/app.js') == '/static/js/app.js'
        assert resolver.relative_name('/static/js/app.js') == 'js/app.js'

    def test_relative_name_outside_prefix(self, tmp_path: Path) -> None:
        resolver = PathResolver(str(tmp_path), '/static')

        with pytest.raises(PathTraversal):
            resolver.relative_name('/other/app.js')

    def test_resolves_under_root(self, tmp_path: Path) -> None:
        resolver = PathResolver(str(tmp_path), '/')

        assert resolver.resolve_filesystem('/css/site.css') == \
            os.path.join(str(tmp_path), 'css', 'site.css')

    def test_symlink_outside_root_rejected(self, tmp_path: Path) -> None:
        """A symlink leading out of the root counts as traversal."""
        root = tmp_path / 'public'
        root.mkdir()
        secret = tmp_path / 'secret.txt'
        secret.write_text('top secret')
        (root / 'link.txt').symlink_to(secret)
        resolver = PathResolver(str(root), '/')

        with pytest.raises(PathTraversal):
            resolver.resolve_filesystem('/link.txt')

    def test_sibling_directory_with_same_prefix_rejected(self, tmp_path: Path) -> None:
        """`/srv/public2` is not inside `/srv/public`."""
        root = tmp_path / 'public'
        root.mkdir()
        sibling = tmp_path / 'public2'
        sibling.mkdir()
        (sibling / 'x.js').write_text('x')
        (root / 'x.js').symlink_to(sibling / 'x.js')
        resolver = PathResolver(str(root), '/')

        with pytest.raises(PathTraversal):
            resolver.resolve_filesystem('/x.js')

    def test_nul_byte_rejected(self, tmp_path: Path) -> None:
        resolver = PathResolver(str(tmp_path), '/')

        with pytest.raises(PathTraversal):
            resolver.resolve_filesystem(resolver.public_path('/index%00.js'))
