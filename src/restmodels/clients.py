"""Pluggable HTTP clients.

Any HTTP library can carry requests to the backend,
once its client type is registered with :func:`send` (blocking)
or :func:`send_async` (coroutine-based).
"""
import asyncio
import urllib.request
from functools import singledispatch
from http.client import HTTPException
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode

from .errors import TransportError
from .http import Response

__all__ = ["send", "send_async"]


@singledispatch
def send(client, request):
    """Send a :class:`~restmodels.http.Request` with a blocking client.

    Registered by default: :class:`urllib.request.OpenerDirector`,
    and :class:`requests.Session` if ``requests`` is installed.

    Register other clients with ``send.register``:

    >>> @send.register(MyClient)
    ... def _send(client, request):
    ...     raw = client.fetch(request.method, request.url, ...)
    ...     return Response(raw.status, raw.body, headers=raw.headers)

    Returns
    -------
    ~restmodels.http.Response
        the response, whatever its status

    Raises
    ------
    ~restmodels.errors.TransportError
        if the backend could not be reached
    """
    raise TypeError("client {!r} not registered".format(client))


@singledispatch
def send_async(client, request):
    """Send a :class:`~restmodels.http.Request`, returning an awaitable
    :class:`~restmodels.http.Response`. Needs a running event loop.

    :class:`aiohttp.ClientSession` is registered if ``aiohttp``
    is installed. Clients registered with :func:`send` work too:
    they are run in the loop's default executor.
    """
    blocking_send = send.dispatch(client.__class__)
    if blocking_send is send.dispatch(object):
        raise TypeError("client {!r} not registered".format(client))
    return asyncio.get_running_loop().run_in_executor(
        None, blocking_send, client, request)


@send.register(urllib.request.OpenerDirector)
def _send_with_urllib(opener, request):
    if request.content and "content-type" not in map(str.lower,
                                                     request.headers):
        request = request.with_headers(
            {"Content-Type": "application/octet-stream"})
    url = request.url
    if request.params:
        url += "?" + urlencode(request.params)
    raw = urllib.request.Request(url, request.content,
                                 headers=dict(request.headers),
                                 method=request.method)
    try:
        resp = opener.open(raw)
    except HTTPError as exc:
        # error statuses are responses too
        resp = exc
    except (URLError, OSError, HTTPException) as exc:
        raise TransportError(str(exc)) from exc
    try:
        return Response(resp.getcode(), resp.read(), headers=resp.headers)
    except (OSError, HTTPException) as exc:
        raise TransportError(str(exc)) from exc
    finally:
        resp.close()


try:
    import requests
except ImportError:  # pragma: no cover
    pass
else:

    @send.register(requests.Session)
    def _send_with_requests(session, request):
        try:
            resp = session.request(
                request.method,
                request.url,
                data=request.content,
                params=request.params,
                headers=request.headers,
            )
        except requests.RequestException as exc:
            raise TransportError(str(exc)) from exc
        return Response(resp.status_code, resp.content,
                        headers=resp.headers)


try:
    import aiohttp
except ImportError:  # pragma: no cover
    pass
else:

    @send_async.register(aiohttp.ClientSession)
    async def _send_with_aiohttp(session, request):
        try:
            async with session.request(
                request.method,
                request.url,
                data=request.content,
                params=request.params,
                headers=request.headers,
            ) as resp:
                content = await resp.read()
        except aiohttp.ClientError as exc:
            raise TransportError(str(exc)) from exc
        return Response(resp.status, content, headers=resp.headers)
