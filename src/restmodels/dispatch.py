"""Turning actions into HTTP requests, and responses into resources"""
import asyncio
import json
import logging
import urllib.request
from collections.abc import Mapping
from functools import partial, singledispatch
from operator import attrgetter
from string import Formatter
from urllib.parse import quote

from .clients import send_async
from .errors import HttpError, TransportError
from .http import Request, prefix_adder

__all__ = ["Action", "Record", "ResourceList", "Dispatcher"]

logger = logging.getLogger(__name__)

_BODY_METHODS = frozenset(["POST", "PUT", "PATCH"])


class Record(object):
    """A placeholder for a single object returned by an action.

    Its attributes are the fields of the object.
    They are filled in place once the operation completes.
    Awaiting the record waits for the operation, returning the record itself.
    """

    __slots__ = "_promise", "__dict__", "__weakref__"
    __hash__ = None

    def __init__(self, data=None, **fields):
        self._promise = None
        self.__dict__.update(data or (), **fields)

    promise = property(attrgetter("_promise"))
    promise.__doc__ = "The task of the last operation on this object"

    @property
    def resolved(self):
        """whether the last operation has completed"""
        return self._promise is not None and self._promise.done()

    def to_dict(self):
        return dict(self.__dict__)

    def _update_from(self, data):
        self.__dict__.clear()
        self.__dict__.update(data)

    def __await__(self):
        if self._promise is None:
            raise RuntimeError("{!r} has no pending operation".format(self))
        return self._promise.__await__()

    def __eq__(self, other):
        if type(other) is type(self):
            return self.__dict__ == other.__dict__
        return NotImplemented

    def __ne__(self, other):
        if type(other) is type(self):
            return self.__dict__ != other.__dict__
        return NotImplemented

    def __repr__(self):
        return "<{} {!r}>".format(type(self).__name__, self.__dict__)


class ResourceList(list):
    """A placeholder for a collection returned by an action.
    Its items are replaced in place once the operation completes."""

    __slots__ = ("_promise",)

    def __init__(self, items=()):
        super().__init__(items)
        self._promise = None

    promise = property(attrgetter("_promise"))
    resolved = Record.resolved
    __await__ = Record.__await__


class Action(object):
    """A remote operation: an HTTP method and a path template.

    Parameters
    ----------
    name: str
        The name under which the action is registered
    method: str
        The HTTP method
    path: str
        Path template. ``{name}`` placeholders are filled from the
        call's parameters and are required.
    is_array: bool
        Whether the action returns a collection
    has_body: bool or None
        Whether call data is sent as a JSON body.
        By default, only for ``POST``, ``PUT`` and ``PATCH``.
    requires_current_user: bool
        Whether the action can only be performed when logged in.
        Such calls fail locally with a stub 401 when logged out.
    result: ~typing.Callable[[], type]
        Returns the type of the resulting object(s).
        Called when needed, so types may be resolved lazily.
    prepare_params: ~typing.Callable[[dict], dict] or None
        Transforms the call parameters before the request is built
    before_send: ~typing.Callable[[Request], None] or None
        Called with the final request, just before it is sent
    after_response: ~typing.Callable[[object, dict], None] or None
        Called with the filled placeholder and the call parameters
        after a successful response
    """

    __slots__ = (
        "name",
        "method",
        "path",
        "is_array",
        "has_body",
        "requires_current_user",
        "result",
        "prepare_params",
        "before_send",
        "after_response",
    )

    def __init__(
        self,
        name,
        method,
        path,
        is_array=False,
        has_body=None,
        requires_current_user=False,
        result=None,
        prepare_params=None,
        before_send=None,
        after_response=None,
    ):
        self.name = name
        self.method = method.upper()
        self.path = path
        self.is_array = is_array
        self.has_body = (
            self.method in _BODY_METHODS if has_body is None else has_body
        )
        self.requires_current_user = requires_current_user
        self.result = result or (lambda: Record)
        self.prepare_params = prepare_params
        self.before_send = before_send
        self.after_response = after_response

    @property
    def path_params(self):
        return [name for _, name, _, _ in Formatter().parse(self.path) if name]

    def split_args(self, args):
        """Split positional call arguments into ``(params, data)``.

        Without a body, the single argument is the parameters.
        With a body, a single argument is the data,
        and two arguments are parameters and data.
        """
        if len(args) > 2 or (len(args) == 2 and not self.has_body):
            raise TypeError("{}() takes at most {} positional arguments"
                            .format(self.name, 2 if self.has_body else 1))
        if len(args) == 2:
            return args[0], args[1]
        if len(args) == 1:
            return (None, args[0]) if self.has_body else (args[0], None)
        return None, None

    def __repr__(self):
        return "<Action {0.name}: {0.method} {0.path}>".format(self)


@singledispatch
def dump_param(value):
    """dump a query parameter value"""
    return str(value)


@dump_param.register(bool)
def _dump_bool(value):
    return "true" if value else "false"


@dump_param.register(Mapping)
@dump_param.register(list)
def _dump_json(value):
    return json.dumps(value)


def _payload(data):
    return data.to_dict() if isinstance(data, Record) else dict(data)


def _notify(success, error, task):
    """invoke the callbacks of an invocation, once its task settled"""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        if success is not None:
            success(task.result())
    elif error is not None:
        error(exc)


class Dispatcher(object):
    """Performs actions, attaching credentials from the session manager.

    Parameters
    ----------
    auth: ~restmodels.session.Auth
        The session manager
    client
        The HTTP client to use.
        Its type must have been registered with
        :func:`~restmodels.clients.send_async`
        or :func:`~restmodels.clients.send`.
        If not given, the built-in :mod:`urllib` module is used.
    base_url: str
        Prefix of all request paths, e.g. ``http://localhost:3000/api``
    headers: ~typing.Mapping or None
        Extra headers for every request
    """

    def __init__(self, auth, client=None, base_url="", headers=None):
        self.auth = auth
        self.client = (
            urllib.request.build_opener() if client is None else client
        )
        self.base_url = base_url
        self.headers = {"Accept": "application/json"}
        self.headers.update(headers or {})
        self._add_prefix = prefix_adder(base_url)

    def build_request(self, action, params=None, data=None):
        """Create the (undecorated) request for an action

        Raises
        ------
        ValueError
            if a path parameter is missing
        """
        params = dict(params or {})
        if action.prepare_params is not None:
            params = action.prepare_params(params)
        path_params = action.path_params
        missing = [name for name in path_params if params.get(name) is None]
        if missing:
            raise ValueError(
                "{}: missing path parameter(s): {}".format(
                    action.name, ", ".join(missing)
                )
            )
        url = action.path.format_map(
            {name: quote(str(params.pop(name)), safe="")
             for name in path_params}
        )
        request = Request(
            action.method,
            url,
            params={key: dump_param(value) for key, value in params.items()
                    if value is not None},
            headers=self.headers,
        )
        if action.has_body and data is not None:
            request = request.with_json(_payload(data))
        return self._add_prefix(request)

    def invoke(self, action, params=None, data=None, target=None,
               success=None, error=None):
        """Perform an action.

        Returns a placeholder immediately: ``target`` if given,
        otherwise a new :class:`ResourceList` or instance of the
        action's result type.
        Its ``promise`` is the task of the operation.

        Must be called with a running event loop.

        Parameters
        ----------
        action: Action
            The action to perform
        params: ~typing.Mapping or None
            Path and query parameters
        data: ~typing.Mapping or Record or None
            The request body, for actions which have one
        target: Record or ResourceList or None
            The placeholder to fill
        success: ~typing.Callable[[object], None] or None
            Called with the filled placeholder on success
        error: ~typing.Callable[[Exception], None] or None
            Called with the error on failure
        """
        loop = asyncio.get_running_loop()
        if target is None:
            target = ResourceList() if action.is_array else action.result()()
        if self.auth.should_stub(action):
            coro = self._fail(self.auth.stub_failure(action))
        else:
            request = self.auth.decorate_request(
                self.build_request(action, params, data)
            )
            if action.before_send is not None:
                action.before_send(request)
            coro = self._perform(action, request, dict(params or {}), target)
        task = loop.create_task(coro)
        target._promise = task
        if success is not None or error is not None:
            task.add_done_callback(partial(_notify, success, error))
        return target

    @staticmethod
    async def _fail(exc):
        raise exc

    async def _perform(self, action, request, params, target):
        logger.debug("%s: %s %s", action.name, request.method, request.url)
        response = await send_async(self.client, request)
        if not response.ok:
            exc = HttpError.from_response(response)
            logger.debug("%s failed: %s", action.name, exc)
            raise exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                "{}: malformed response body".format(action.name)
            ) from exc
        self._fill(action, target, payload)
        if action.after_response is not None:
            action.after_response(target, params)
        return target

    @staticmethod
    def _fill(action, target, payload):
        if action.is_array:
            if not isinstance(payload, list):
                raise TransportError(
                    "{}: expected a collection, got {}".format(
                        action.name, type(payload).__name__))
            for item in payload:
                if not isinstance(item, Mapping):
                    raise TransportError(
                        "{}: expected a collection of objects, got {}".format(
                            action.name, type(item).__name__))
            item_type = action.result()
            target[:] = [item_type(item) for item in payload]
        elif payload is not None:
            if not isinstance(payload, Mapping):
                raise TransportError(
                    "{}: expected an object, got {}".format(
                        action.name, type(payload).__name__))
            target._update_from(payload)

    def __repr__(self):
        return "<Dispatcher: {0.base_url!r} via {0.client!r}>".format(self)
