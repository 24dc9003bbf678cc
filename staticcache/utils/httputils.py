import re
from email.utils import formatdate, parsedate_to_datetime
from typing import Optional, Dict, List

from .status_codes import status_codes

NO_CACHE_REGEX = re.compile(r'(?:^|,)\s*?no-cache\s*?(?:,|$)')
LAST_CHUNK = b'0\r\n\r\n'


def render_http_response(protocol: bytes,
                         code: int,
                         status_code: Optional[str],
                         headers: Dict[str, str],
                         body: bytes = b'') -> bytes:
    """
    A function for rendering http responses. Uses C-formatting as the only way for
    formatting byte-strings

    Arguments:
             protocol - protocol version, string in format `major.minor`,
             code - response status code,
             status_code - may be None, than it'll be taken from the list of known.
                           If no known status codes relate to the status code, UNKNOWN
                           will be used
             headers - a dict (or CaseInsensitiveDict) with headers. Rendered as is,
                       content-length is not counted here
             body - only bytes are accepted. Empty for streamed responses, their
                    chunks are sent separately
    """

    rendered_headers = ''.join(
        f'{key}: {value}\r\n' for key, value in headers.items()
    ).encode()
    status_description = (status_code or status_codes.get(code, 'UNKNOWN')).encode()

    return b'HTTP/%s %d %s\r\n%s\r\n%s' % (protocol, code, status_description,
                                           rendered_headers, body)


def render_chunk(chunk: bytes) -> bytes:
    """
    Renders a single chunk for chunked transfer encoding. Empty chunks are
    not rendered as they mean the end of the body
    """

    if not chunk:
        return b''

    return b'%x\r\n%s\r\n' % (len(chunk), chunk)


def http_date(timestamp: float) -> str:
    return formatdate(timestamp, usegmt=True)


def parse_http_date(value: Optional[str]) -> Optional[float]:
    if not value:
        return None

    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError, IndexError):
        return None


def parse_token_list(value: str) -> List[str]:
    return [token.strip() for token in value.split(',') if token.strip()]


def is_fresh(request_headers: Dict[str, str], response_headers: Dict[str, str]) -> bool:
    """
    Standard conditional-GET freshness check. Returns True only if client has
    sent validators, all of them match the response, and client hasn't asked
    to bypass caches with `Cache-Control: no-cache`
    """

    modified_since = request_headers.get('if-modified-since')
    none_match = request_headers.get('if-none-match')

    if not modified_since and not none_match:
        return False

    cache_control = request_headers.get('cache-control')

    if cache_control and NO_CACHE_REGEX.search(cache_control):
        return False

    if none_match and none_match.strip() != '*':
        etag = response_headers.get('etag')

        if not etag:
            return False

        for candidate in parse_token_list(none_match):
            if candidate in (etag, 'W/' + etag) or 'W/' + candidate == etag:
                break
        else:
            return False

    if modified_since:
        last_modified = parse_http_date(response_headers.get('last-modified'))
        since = parse_http_date(modified_since)

        if last_modified is None or since is None or last_modified > since:
            return False

    return True


def accepts_encoding(accept_encoding: Optional[str], encoding: str) -> bool:
    """
    Whether client accepts the encoding. Explicit mentioning wins over `*`,
    zero quality means refusing. No header at all means identity only
    """

    if not accept_encoding:
        return encoding == 'identity'

    wildcard_quality = None

    for token in parse_token_list(accept_encoding):
        name, *params = (part.strip() for part in token.split(';'))
        quality = 1.0

        for param in params:
            key, _, value = param.partition('=')

            if key.strip().lower() == 'q':
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0

        name = name.lower()

        if name == encoding:
            return quality > 0
        if name == '*':
            wildcard_quality = quality

    if wildcard_quality is not None:
        return wildcard_quality > 0

    return encoding == 'identity'
