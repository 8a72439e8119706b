"""Exceptions raised by generated resources"""
import json

__all__ = [
    "RestError",
    "HttpError",
    "TransportError",
    "ModelDefinitionError",
]


class RestError(Exception):
    """Base class for all errors raised by this package"""


class HttpError(RestError):
    """A request failed with an HTTP error status.

    Parameters
    ----------
    status: int
        The HTTP status code
    message: str
        A human readable message
    headers: ~typing.Mapping or None
        The response headers.
        ``None`` means the failure was synthesized locally
        and never reached the backend.
    """

    def __init__(self, status, message, headers=None):
        super().__init__(status, message)
        self.status = status
        self.message = message
        self.headers = headers

    @property
    def is_stub(self):
        """whether the failure was synthesized without a server round trip"""
        return self.headers is None

    @classmethod
    def from_response(cls, response):
        """Create an error from a non-2xx
        :class:`~restmodels.http.Response`.

        The message is taken from the ``error.message`` member of a JSON body
        if there is one, and is the reason phrase of the status otherwise.
        """
        return cls(
            response.status_code,
            _error_message(response),
            headers=response.headers,
        )

    def __str__(self):
        return "{0.status}: {0.message}".format(self)


def _error_message(response):
    try:
        return str(json.loads(response.content.decode("utf-8"))
                   ["error"]["message"])
    except (AttributeError, KeyError, TypeError, ValueError):
        return response.reason or "HTTP error"


class TransportError(RestError):
    """The backend could not be reached,
    or did not send a valid HTTP response.
    Has no HTTP status, unlike :class:`HttpError`."""

    status = None


class ModelDefinitionError(RestError):
    """Model metadata can not be turned into a consistent resource type"""
