"""Requests to and responses from the backend, as immutable values"""
import json
from functools import partial
from http import HTTPStatus
from operator import methodcaller
from types import MappingProxyType

__all__ = [
    "Request",
    "Response",
    "prefix_adder",
    "GET",
    "POST",
    "PUT",
    "DELETE",
]

_EMPTY = MappingProxyType({})


def _merged(base, extra):
    """read-only union of two mappings, ``extra`` taking precedence"""
    merged = dict(base)
    merged.update(extra)
    return MappingProxyType(merged)


class _Value(object):
    __slots__ = ()
    __hash__ = None

    def _fields(self):
        return tuple(getattr(self, name) for name in self.__slots__)

    def __eq__(self, other):
        if isinstance(other, type(self)):
            return self._fields() == other._fields()
        return NotImplemented

    def __ne__(self, other):
        if isinstance(other, type(self)):
            return self._fields() != other._fields()
        return NotImplemented

    def replace(self, **changes):
        """A copy with some fields changed"""
        fields = dict(zip(self.__slots__, self._fields()))
        fields.update(changes)
        return type(self)(**fields)


class Request(_Value):
    """A request to the backend.

    Parameters
    ----------
    method: str
        The HTTP method
    url: str
        The path, or the full URL once prefixed
    content: bytes or None
        The request body
    params: ~typing.Mapping[str, str]
        The query parameters, already encoded as strings
    headers: ~typing.Mapping[str, str]
        The request headers
    """

    __slots__ = "method", "url", "content", "params", "headers"

    def __init__(self, method, url, content=None, params=_EMPTY,
                 headers=_EMPTY):
        self.method = method
        self.url = url
        self.content = content
        self.params = params
        self.headers = headers

    def with_headers(self, headers):
        """A copy with the given headers added, or overridden"""
        return self.replace(headers=_merged(self.headers, headers))

    def with_prefix(self, prefix):
        """A copy with the URL prefixed, e.g. with the backend's base URL"""
        return self.replace(url=prefix + self.url)

    def with_json(self, data):
        """A copy carrying ``data`` as a JSON body"""
        return self.replace(
            content=json.dumps(data).encode("utf-8"),
            headers=_merged(self.headers,
                            {"Content-Type": "application/json"}),
        )

    def __repr__(self):
        return "<Request: {0.method} {0.url}>".format(self)


class Response(_Value):
    """A response from the backend.

    Parameters
    ----------
    status_code: int
        The HTTP status
    content: bytes or None
        The response body
    headers: ~typing.Mapping[str, str]
        The response headers
    """

    __slots__ = "status_code", "content", "headers"

    def __init__(self, status_code, content=None, headers=_EMPTY):
        self.status_code = status_code
        self.content = content
        self.headers = headers

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    @property
    def reason(self):
        """The standard reason phrase of the status, if there is one"""
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return ""

    def json(self):
        """The decoded JSON body, ``None`` if the body is empty

        Raises
        ------
        ValueError
            if the body is not valid JSON
        """
        if not self.content:
            return None
        return json.loads(self.content.decode("utf-8"))

    def __repr__(self):
        return "<Response: {0.status_code} {0.reason}>".format(self)


prefix_adder = partial(methodcaller, "with_prefix")
prefix_adder.__doc__ = """
Make a callable which prefixes request URLs

>>> add_base_url = prefix_adder('http://localhost:3000/api')
>>> add_base_url(GET('/Products')).url
'http://localhost:3000/api/Products'
"""

GET = partial(Request, "GET")
POST = partial(Request, "POST")
PUT = partial(Request, "PUT")
DELETE = partial(Request, "DELETE")
