import os
import logging

from staticcache import StaticCache, CacheSettings, Request, NOT_HANDLED
from staticcache.dispatcher.default import ChainDispatcher
from staticcache.webserver import WebServer, Settings

cache = StaticCache(CacheSettings(
    root=os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    gzip=True,
    preload=True,
    buffer=False,
    dynamic=True,
    filter=lambda name: not name.startswith(('build/', 'dist/')),
    alias={
        '/': '/README.md'
    }
))
dp = ChainDispatcher([cache])
logger = logging.getLogger(__name__)
logging.getLogger().setLevel(logging.INFO)


@dp.handler
async def after_static(request: Request):
    logger.info(f'not a static file: {request.path}')

    return NOT_HANDLED


WebServer(Settings(port=3003)).run(dp)
