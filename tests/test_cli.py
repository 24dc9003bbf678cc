"""
Tests for command-line parsing into cache and server settings.
"""

import argparse

import pytest

from staticcache.cli import get_arguments_parser, build_settings, parse_aliases, main


class TestCli:
    def test_build_settings(self) -> None:
        namespace = get_arguments_parser().parse_args([
            'serve', 'public', '--prefix', '/static', '--gzip', '--no-preload',
            '--buffer', '--dynamic', '--alias', '/=/index.html', '--max-age', '60',
            '--port', '3003', '--processes', '4', '--exclude', r'\.map$'
        ])
        cache_settings, server_settings = build_settings(namespace)

        assert cache_settings.root == 'public'
        assert cache_settings.prefix == '/static'
        assert cache_settings.gzip and cache_settings.buffer and cache_settings.dynamic
        assert not cache_settings.preload
        assert cache_settings.alias == {'/': '/index.html'}
        assert cache_settings.max_age == 60
        assert cache_settings.filter('app.js')
        assert not cache_settings.filter('app.js.map')
        assert server_settings.port == 3003
        assert server_settings.processes == 4

    def test_defaults(self) -> None:
        cache_settings, server_settings = build_settings(
            get_arguments_parser().parse_args(['serve'])
        )

        assert cache_settings.root == '.'
        assert cache_settings.preload
        assert not cache_settings.gzip
        assert cache_settings.filter is None
        assert cache_settings.gzip_threshold == 1024
        assert server_settings.host == '127.0.0.1'

    def test_bad_alias(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_aliases(['/index.html'])

    def test_no_command(self, capsys) -> None:
        assert main([]) == 1
        assert 'serve' in capsys.readouterr().out
