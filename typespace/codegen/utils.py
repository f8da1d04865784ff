import unicodedata
from urllib.parse import urlparse

__all__ = ['is_url', 'remove_accents', 'json_pointer_escape', 'json_pointer_unescape']


def is_url(text):
    try:
        result = urlparse(text)
        return result.scheme in ('http', 'https') and bool(result.netloc)
    except ValueError:
        return False


def remove_accents(input_str):
    nfkd_form = unicodedata.normalize('NFKD', input_str)
    return ''.join(c for c in nfkd_form if not unicodedata.combining(c))


def json_pointer_escape(token: str) -> str:
    return token.replace('~', '~0').replace('/', '~1')


def json_pointer_unescape(token: str) -> str:
    return token.replace('~1', '/').replace('~0', '~')
