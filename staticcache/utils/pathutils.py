import os
import re
import posixpath
from string import hexdigits

from ..exceptions import InvalidPath, PathTraversal
from ..typehints import Path, PublicPath

HEX_TO_BYTE = {(a + b).encode(): bytes.fromhex(a + b)
               for a in hexdigits for b in hexdigits}
REPEATED_SLASHES = re.compile(r'/{2,}')


def decode_url(text: str) -> str:
    """
    Percent-decodes the url. Raises InvalidPath if there is a malformed
    escape sequence or decoded bytes are not a valid utf-8
    """

    if '%' not in text:
        return text

    bits = text.encode().split(b'%')
    decoded: bytes = bits[0]

    for item in bits[1:]:
        try:
            decoded += HEX_TO_BYTE[item[:2]] + item[2:]
        except KeyError:
            raise InvalidPath(f'malformed escape sequence: %{item[:2].decode()}') from None

    try:
        return decoded.decode('utf-8')
    except UnicodeDecodeError as exc:
        raise InvalidPath(str(exc)) from None


def safe_decode(text: str) -> str:
    """
    Same as decode_url(), but falls back to the raw text instead of failing
    """

    try:
        return decode_url(text)
    except InvalidPath:
        return text


def normalize_path(path: str) -> PublicPath:
    """
    Collapses `.`, `..` and repeated slashes. Result always starts with a slash,
    trailing slash is kept, `..` can't climb above the root
    """

    path = REPEATED_SLASHES.sub('/', '/' + path)
    normalized = posixpath.normpath(path)

    # posixpath.normpath() keeps exactly two leading slashes
    normalized = '/' + normalized.lstrip('/')

    if path.endswith('/') and normalized != '/':
        normalized += '/'

    return normalized


def normalize_prefix(prefix: str) -> str:
    """
    Prefix always starts and ends with a slash: `static` -> `/static/`
    """

    stripped = (prefix or '').strip('/')

    return f'/{stripped}/' if stripped else '/'


def is_hidden(path: str) -> bool:
    return posixpath.basename(path.rstrip('/')).startswith('.')


class PathResolver:
    """
    Stateless except for configuration: maps request paths to public paths
    (registry keys) and public paths to the files under the served root
    """

    def __init__(self, root: Path, prefix: str):
        self.root = os.path.abspath(root)
        self.real_root = os.path.realpath(root)
        self.prefix = normalize_prefix(prefix)
        # a prefix as it looks in relative paths, `/static/` -> `static/`
        self.file_prefix = self.prefix.lstrip('/')

    def matches_prefix(self, raw_path: str) -> bool:
        return raw_path.startswith(self.prefix)

    def public_path(self, raw_path: str) -> PublicPath:
        return normalize_path(safe_decode(raw_path))

    def public_path_for(self, relative_name: str) -> PublicPath:
        return normalize_path(self.prefix + relative_name)

    def relative_name(self, public_path: PublicPath) -> str:
        """
        Strips the prefix. Raises PathTraversal if the path is not under it
        """

        name = public_path.lstrip('/')

        if self.file_prefix:
            if not name.startswith(self.file_prefix):
                raise PathTraversal(f'{public_path}: not under prefix {self.prefix}')

            name = name[len(self.file_prefix):]

        return name

    def resolve_filesystem(self, public_path: PublicPath) -> Path:
        """
        Returns absolute path of the file behind the public path. Raises
        PathTraversal if it points (also via symlinks) outside of the root,
        or can't name a file at all (decoded NUL byte)
        """

        if '\x00' in public_path:
            raise PathTraversal(f'{public_path!r}: contains a NUL byte')

        name = self.relative_name(public_path)
        full_path = os.path.normpath(os.path.join(self.root, name))
        real_path = os.path.realpath(full_path)

        if real_path != self.real_root and \
                not real_path.startswith(os.path.join(self.real_root, '')):
            raise PathTraversal(f'{public_path}: resolves outside of {self.root}')

        return full_path
