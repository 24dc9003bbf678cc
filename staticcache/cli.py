import re
import sys
import logging
import argparse
from typing import List, Optional, Tuple, Dict

from .cache import StaticCache, CacheSettings, DEFAULT_CHUNK_SIZE
from .compressor import GZIP_THRESHOLD
from .dispatcher.default import ChainDispatcher
from .webserver import WebServer, Settings

logger = logging.getLogger('staticcache')


def parse_aliases(raw_aliases: List[str]) -> Dict[str, str]:
    aliases = {}

    for raw_alias in raw_aliases:
        alias, sep, target = raw_alias.partition('=')

        if not sep or not alias or not target:
            raise argparse.ArgumentTypeError(f'alias must look like /from=/to, got {raw_alias}')

        aliases[alias] = target

    return aliases


def make_exclude_filter(pattern: Optional[str]):
    if pattern is None:
        return None

    regex = re.compile(pattern)

    return lambda name: not regex.search(name)


def get_arguments_parser() -> argparse.ArgumentParser:
    arguments_parser = argparse.ArgumentParser(
        prog='staticcache',
        description='Serve a directory of static files from memory'
    )
    subparsers = arguments_parser.add_subparsers(dest='cmd', metavar='command')
    serve = subparsers.add_parser('serve', help='serve a directory')
    serve.add_argument('root', nargs='?', default='.')
    serve.add_argument('--prefix', default='/')
    serve.add_argument('--gzip', action='store_true')
    serve.add_argument('--no-preload', dest='preload', action='store_false')
    serve.add_argument('--buffer', action='store_true')
    serve.add_argument('--dynamic', action='store_true')
    serve.add_argument('--exclude', metavar='REGEX',
                       help='do not preload files whose relative path matches')
    serve.add_argument('--alias', action='append', default=[], metavar='FROM=TO')
    serve.add_argument('--precompiled-gzip', dest='use_precompiled_gzip', action='store_true')
    serve.add_argument('--max-age', type=int, default=0)
    serve.add_argument('--cache-control')
    serve.add_argument('--gzip-threshold', type=int, default=GZIP_THRESHOLD)
    serve.add_argument('--chunk-size', type=int, default=DEFAULT_CHUNK_SIZE)
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=9090)
    serve.add_argument('--processes', type=int, default=1)
    serve.add_argument('--log-level', default='INFO',
                       choices=('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'))

    return arguments_parser


def build_settings(namespace: argparse.Namespace) -> Tuple[CacheSettings, Settings]:
    cache_settings = CacheSettings(
        root=namespace.root,
        prefix=namespace.prefix,
        gzip=namespace.gzip,
        preload=namespace.preload,
        buffer=namespace.buffer,
        dynamic=namespace.dynamic,
        filter=make_exclude_filter(namespace.exclude),
        alias=parse_aliases(namespace.alias),
        use_precompiled_gzip=namespace.use_precompiled_gzip,
        cache_control=namespace.cache_control,
        max_age=namespace.max_age,
        gzip_threshold=namespace.gzip_threshold,
        chunk_size=namespace.chunk_size
    )
    server_settings = Settings(
        host=namespace.host,
        port=namespace.port,
        processes=namespace.processes,
        logger=logger
    )

    return cache_settings, server_settings


def serve(namespace: argparse.Namespace) -> int:
    logging.getLogger().setLevel(namespace.log_level)
    cache_settings, server_settings = build_settings(namespace)
    cache = StaticCache(cache_settings)
    logger.info(f'serving {len(cache.storage)} files from {cache.resolver.root} '
                f'under {cache.prefix}')

    WebServer(server_settings).run(ChainDispatcher([cache]))

    return 0


aliases = {
    'serve': serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    arguments_parser = get_arguments_parser()
    parsed = arguments_parser.parse_args(argv)
    handler = aliases.get(parsed.cmd)

    if handler is None:
        arguments_parser.print_help()
        return 1

    try:
        return handler(parsed)
    except argparse.ArgumentTypeError as exc:
        arguments_parser.error(str(exc))


if __name__ == '__main__':
    sys.exit(main())
