import asyncio
import itertools
import json
import uuid
from urllib.parse import urlsplit

import pytest

import restmodels

BASE_URL = "http://backend.test/api"


def _json_response(status, obj=None):
    return restmodels.Response(
        status,
        b"" if obj is None else json.dumps(obj).encode(),
        headers={"Content-Type": "application/json; charset=utf-8"},
    )


def _error(status, message):
    return _json_response(
        status, {"error": {"statusCode": status, "message": message}}
    )


class FakeBackend:
    """An in-memory backend with LoopBack-style REST routes:

    * ``GET|POST /<plural>``, ``GET|PUT /<plural>/<id>``
    * ``GET|POST|DELETE /<plural>/<id>/<relation>``
    * ``POST /<users>/login``, ``POST /<users>/logout``

    With auth enabled, user routes other than create and login
    need a valid access token.
    """

    def __init__(self, models, enable_auth=False, prefix="/api"):
        descriptors = restmodels.load_descriptors(models)
        self.by_plural = {d.plural: d for d in descriptors}
        self.by_name = {d.name: d for d in descriptors}
        self.records = {d.name: {} for d in descriptors}
        self.links = {}
        self.tokens = {}
        self.enable_auth = enable_auth
        self.prefix = prefix
        self.requests = []
        self._ids = itertools.count(1)

    async def send(self, req):
        await asyncio.sleep(0)
        self.requests.append(req)
        path = urlsplit(req.url).path[len(self.prefix):]
        plural, *rest = path.strip("/").split("/")
        try:
            model = self.by_plural[plural]
        except KeyError:
            return _error(404, "no model " + plural)
        body = json.loads(req.content.decode()) if req.content else None
        if model.is_user and self.enable_auth:
            if rest == ["login"] and req.method == "POST":
                return self._login(model, body, req.params)
            token = req.headers.get("Authorization")
            if token not in self.tokens:
                if not (req.method == "POST" and not rest):
                    return _error(401, "Authorization Required")
            elif rest == ["logout"] and req.method == "POST":
                del self.tokens[token]
                return _json_response(204)
        if not rest:
            return self._collection(model, req, body)
        key = int(rest[0])
        if len(rest) == 1:
            return self._item(model, key, req, body)
        return self._relation(model, key, rest[1], req, body)

    def create(self, model, **fields):
        record = dict(fields, id=next(self._ids))
        self.records[model][record["id"]] = record
        return record

    def _public(self, model, record):
        if self.by_name[model].is_user:
            return {k: v for k, v in record.items() if k != "password"}
        return dict(record)

    def _login(self, model, body, params):
        for user in self.records[model.name].values():
            if (user.get("email"), user.get("password")) == (
                body.get("email"),
                body.get("password"),
            ):
                token = uuid.uuid4().hex
                self.tokens[token] = user["id"]
                result = {"id": token, "ttl": 1209600, "userId": user["id"]}
                if params.get("include") == "user":
                    result["user"] = self._public(model.name, user)
                return _json_response(200, result)
        return _error(401, "login failed")

    def _collection(self, model, req, body):
        if req.method == "POST":
            record = self.create(model.name, **body)
            return _json_response(200, self._public(model.name, record))
        where = json.loads(req.params.get("filter", "{}")).get("where", {})
        return _json_response(200, [
            self._public(model.name, r)
            for r in self.records[model.name].values()
            if all(r.get(k) == v for k, v in where.items())
        ])

    def _item(self, model, key, req, body):
        record = self.records[model.name].get(key)
        if record is None:
            return _error(404, "Unknown {} id {}".format(model.name, key))
        if req.method == "PUT":
            record.update(body, id=key)
        return _json_response(200, self._public(model.name, record))

    def _relation(self, model, key, name, req, body):
        relation = model.relations[name]
        target = relation.model
        linked = self.links.setdefault((model.name, key, name), [])
        if relation.kind is restmodels.RelationKind.BELONGS_TO:
            owner = self.records[model.name][key]
            return _json_response(
                200, self.records[target][owner[relation.foreign_key]])
        if req.method == "POST":
            record = self.create(target, **body)
            linked.append(record["id"])
            return _json_response(200, self._public(target, record))
        if req.method == "DELETE":
            for related in linked:
                del self.records[target][related]
            del linked[:]
            return _json_response(204)
        return _json_response(200, [
            self._public(target, self.records[target][related])
            for related in linked
        ])


restmodels.send_async.register(FakeBackend, FakeBackend.send)


@pytest.fixture
def make_app():
    """create an application backed by a fresh :class:`FakeBackend`"""

    def make(models, enable_auth=False, **kwargs):
        backend = FakeBackend(models, enable_auth=enable_auth)
        return restmodels.Application(
            models,
            base_url=BASE_URL,
            client=backend,
            enable_auth=enable_auth,
            **kwargs
        )

    return make
