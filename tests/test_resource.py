import asyncio

import pytest

import restmodels
from restmodels import ModelDefinitionError, Resource

MY_MODEL = {
    "MyModel": {
        "properties": {"name": {"type": "string", "required": True}},
    },
}


@pytest.fixture
def app(make_app):
    return make_app(MY_MODEL)


def test_normalize_name():
    assert restmodels.normalize_name("product") == "Product"
    assert restmodels.normalize_name("MyModel") == "MyModel"
    assert restmodels.normalize_name("") == ""


class TestGeneratedType:
    def test_shape(self, app):
        MyModel = app.MyModel
        assert issubclass(MyModel, Resource)
        assert MyModel.__name__ == "MyModel"
        assert MyModel.model.name == "MyModel"
        assert MyModel.app is app
        assert set(MyModel.actions) == {"query", "get", "create", "find",
                                        "save"}
        assert not hasattr(MyModel, "login")
        assert not hasattr(MyModel, "get_current")
        assert "MyModel" in repr(MyModel)

    def test_actions_are_read_only(self, app):
        with pytest.raises(TypeError):
            app.MyModel.actions["extra"] = None

    def test_custom_actions(self, make_app):
        app = make_app({
            "product": {
                "actions": {
                    "bestsellers": {"path": "/bestsellers", "isArray": True},
                    "rate": {"method": "POST", "path": "/{id}/rate"},
                },
            },
        })
        Product = app.Product
        assert set(Product.actions) == {"query", "get", "create", "find",
                                        "save", "bestsellers", "rate"}
        assert Product.actions["bestsellers"].path == "/products/bestsellers"
        assert Product.actions["bestsellers"].is_array
        assert Product.actions["rate"].method == "POST"

    @pytest.mark.parametrize("name", ["query", "save", "conforms"])
    def test_conflicting_custom_action(self, make_app, name):
        app = make_app({"product": {"actions": {name: {}}}})
        with pytest.raises(ModelDefinitionError, match=name):
            app.Product

    def test_conflicting_relation(self, make_app):
        app = make_app({
            "product": {"relations": {"find": {"type": "hasMany",
                                               "model": "product"}}},
        })
        with pytest.raises(ModelDefinitionError, match="find"):
            app["product"]

    def test_relation_named_like_custom_action(self, make_app):
        app = make_app({
            "product": {
                "actions": {"tags": {}},
                "relations": {"tags": {"type": "hasMany", "model": "tag"}},
            },
        })
        with pytest.raises(ModelDefinitionError, match="tags"):
            app.Product

    def test_funky_name(self, make_app):
        app = make_app({"lower-case-not-an-identifier": {}})
        resource = app["Lower-case-not-an-identifier"]
        assert resource is app["lower-case-not-an-identifier"]
        assert resource.model.path == "/lower-case-not-an-identifiers"

    def test_types_are_per_application(self, make_app):
        first, second = make_app(MY_MODEL), make_app(MY_MODEL)
        assert first.MyModel is not second.MyModel
        obj = first.MyModel(name="x")
        assert first.MyModel.conforms(obj)
        assert not second.MyModel.conforms(obj)
        assert not first.MyModel.conforms({"name": "x"})


class TestBuiltinActions:
    @pytest.mark.asyncio
    async def test_query_empty(self, app):
        result = app.MyModel.query()
        assert isinstance(result, restmodels.ResourceList)
        await result
        assert len(result) == 0

    @pytest.mark.asyncio
    async def test_create_then_get(self, app):
        created = app.MyModel.create({"name": "new"})
        assert isinstance(created, app.MyModel)
        await created
        assert created.name == "new"
        assert created.id is not None

        fetched = await app.MyModel.get({"id": created.id})
        assert isinstance(fetched, app.MyModel)
        assert fetched.name == "new"
        assert fetched == created

    @pytest.mark.asyncio
    async def test_query_returns_resources(self, app):
        backend = app.dispatcher.client
        backend.create("MyModel", name="a")
        backend.create("MyModel", name="b")
        result = await app.MyModel.query()
        assert [r.name for r in result] == ["a", "b"]
        assert all(isinstance(r, app.MyModel) for r in result)

    @pytest.mark.asyncio
    async def test_find_with_filter(self, app):
        backend = app.dispatcher.client
        backend.create("MyModel", name="a")
        backend.create("MyModel", name="b")
        result = await app.MyModel.find({"filter": {"where": {"name": "b"}}})
        assert [r.name for r in result] == ["b"]

    @pytest.mark.asyncio
    async def test_find_with_invalid_filter(self, app):
        backend = app.dispatcher.client
        backend.create("MyModel", name="a")
        backend.create("MyModel", name="b")
        result = await app.MyModel.find({"filter": True})
        assert len(result) == 2
        assert "filter" not in backend.requests[-1].params

    @pytest.mark.asyncio
    async def test_get_unknown(self, app):
        with pytest.raises(restmodels.HttpError) as exc_info:
            await app.MyModel.get({"id": 99})
        assert exc_info.value.status == 404
        assert exc_info.value.headers is not None

    @pytest.mark.asyncio
    async def test_get_without_id(self, app):
        with pytest.raises(ValueError, match="id"):
            app.MyModel.get()

    @pytest.mark.asyncio
    async def test_callbacks(self, app, mocker):
        success, error = mocker.Mock(), mocker.Mock()
        created = app.MyModel.create({"name": "new"}, success=success,
                                     error=error)
        await created
        await asyncio.sleep(0)
        success.assert_called_once_with(created)
        assert not error.called


class TestSave:
    @pytest.mark.asyncio
    async def test_new_object(self, app):
        obj = app.MyModel(name="new")
        task = obj.save()
        assert task is obj.promise
        assert await task is obj
        assert obj.id is not None
        assert obj.name == "new"
        assert app.dispatcher.client.requests[-1].method == "POST"

    @pytest.mark.asyncio
    async def test_existing_object(self, app):
        backend = app.dispatcher.client
        record = backend.create("MyModel", name="old")
        obj = await app.MyModel.get({"id": record["id"]})
        obj.name = "updated"
        await obj.save()

        request = backend.requests[-1]
        assert request.method == "PUT"
        assert request.url.endswith("/MyModels/{}".format(record["id"]))
        assert backend.records["MyModel"][record["id"]]["name"] == "updated"
        assert obj.name == "updated"

    @pytest.mark.asyncio
    async def test_error_callback(self, make_app, mocker):
        app = make_app({"widget": {}})
        error = mocker.Mock()
        obj = app.Widget(id=1, name="gone")
        with pytest.raises(restmodels.HttpError):
            await obj.save(error=error)
        await asyncio.sleep(0)
        assert error.call_count == 1
