class StaticCacheException(Exception):
    """
    Basic exception
    """

    status = 500


class InvalidPath(StaticCacheException):
    """
    Request path can not be percent-decoded. Never leaves the resolver:
    the raw text is used instead
    """

    status = 400


class PathTraversal(StaticCacheException):
    """
    Resolved path points outside of the served root
    """

    status = 403


class FileNotFound(StaticCacheException):
    """
    Raised by loader when file can't be stat'ed or read. Fatal while preloading,
    but turns into pass-through while handling requests
    """

    status = 400

    def __init__(self, path: str, reason: str = 'file not found'):
        self.path = path
        self.reason = reason

        super(FileNotFound, self).__init__(f'{path}: {reason}')


class NotARegularFile(FileNotFound):
    """
    Directories, sockets and other special files are never served
    """


class CompressionFailure(StaticCacheException):
    """
    Gzip failed. Buffered responses fall back to uncompressed body
    """

    status = 500


class WebServerError(Exception):
    pass


class HandlerMustBeCoroutineError(WebServerError):
    pass


class HTTPError(Exception):
    def __init__(self,
                 request,
                 **kwargs):
        self.request = request

        # an additional stash for dynamic values
        for key, value in kwargs.items():
            setattr(self, key, value)

        super(HTTPError, self).__init__(kwargs.get('msg', ''))


class HTTPNotFound(HTTPError):
    code = 404
    description = 'Not Found'
