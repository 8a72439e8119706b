"""Generating resource types from model descriptors"""
import logging
import types
from collections.abc import Mapping
from types import MappingProxyType

from .dispatch import Action, Record
from .errors import ModelDefinitionError
from .relations import bind_relations

__all__ = ["Resource", "normalize_name", "build_resource"]

logger = logging.getLogger(__name__)


def normalize_name(name):
    """The name under which a model's resource type is looked up:
    the model name with its first character in upper case.

    >>> normalize_name('lower-case-not-an-identifier')
    'Lower-case-not-an-identifier'
    """
    return name[:1].upper() + name[1:]


class ResourceMeta(type):
    def __repr__(self):
        if "app" in self.__dict__:
            return "<resource {0.__name__} bound to {0.app!r}>".format(self)
        return "<resource {0.__module__}.{0.__name__}>".format(self)


class Resource(Record, metaclass=ResourceMeta):
    """Base class of generated resource types.

    Subclasses are created by :func:`build_resource`, one per model
    and application. Do not subclass directly.

    Class attributes of generated types:

    * ``model``: the :class:`~restmodels.descriptors.ModelDescriptor`
    * ``app``: the :class:`~restmodels.app.Application`
    * ``actions``: read-only mapping of action name to
      :class:`~restmodels.dispatch.Action`
    * ``relations``: read-only mapping of relation name to
      :class:`~restmodels.descriptors.RelationDescriptor`
    """

    model = None
    app = None
    actions = MappingProxyType({})
    relations = MappingProxyType({})

    def save(self, params=None, *, success=None, error=None):
        """Create this object on the backend if it has no ``id`` yet,
        update it otherwise. The object is updated in place
        with the backend's response.

        Returns
        -------
        ~asyncio.Task
            The task of the operation, resolving to this object
        """
        cls = type(self)
        if self.__dict__.get("id") is None:
            action = cls.actions["save"]
        else:
            action = cls._update_action
            params = dict(params or {}, id=self.__dict__["id"])
        cls.app.dispatcher.invoke(
            action, params, self, target=self, success=success, error=error
        )
        return self._promise

    @classmethod
    def conforms(cls, obj):
        """Whether ``obj`` is an object of this resource type:
        generated from the same model, in the same application."""
        objtype = type(obj)
        return (
            getattr(objtype, "model", None) is cls.model
            and getattr(objtype, "app", None) is cls.app
        )


def _class_action(action):
    def call(cls, *args, success=None, error=None):
        params, data = action.split_args(args)
        return cls.app.dispatcher.invoke(
            action, params, data, success=success, error=error
        )

    call.__name__ = call.__qualname__ = action.name
    call.__doc__ = "{0.method} {0.path}".format(action)
    return classmethod(call)


def _drop_invalid_filter(params):
    if "filter" in params and not isinstance(params["filter"], Mapping):
        del params["filter"]
    return params


def _builtin_actions(descriptor, result):
    path = descriptor.path
    return {
        "query": Action("query", "GET", path, is_array=True, result=result),
        "get": Action("get", "GET", path + "/{id}", result=result),
        "create": Action("create", "POST", path, result=result),
        "find": Action(
            "find",
            "GET",
            path,
            is_array=True,
            result=result,
            prepare_params=_drop_invalid_filter,
        ),
        "save": Action("save", "POST", path, result=result),
    }


def _user_actions(descriptor, result, auth):
    path = descriptor.path

    def prepare_login(params):
        params.pop("rememberMe", None)
        params.setdefault("include", "user")
        return params

    def store_credential(token, params):
        token = token.to_dict()
        auth.set_credential(
            token.get("id"),
            token.get("userId"),
            remember_me=params.get("rememberMe", True),
        )

    def current_user_id(params):
        params["id"] = auth.get_credential().current_user_id
        return params

    def forget_credential(request):
        auth.clear_credential()

    return {
        "login": Action(
            "login",
            "POST",
            path + "/login",
            prepare_params=prepare_login,
            after_response=store_credential,
        ),
        "logout": Action(
            "logout", "POST", path + "/logout", before_send=forget_credential
        ),
        "get_current": Action(
            "get_current",
            "GET",
            path + "/{id}",
            requires_current_user=True,
            result=result,
            prepare_params=current_user_id,
        ),
    }


def _custom_actions(descriptor, result):
    return {
        name: Action(
            name,
            custom.method,
            descriptor.path + custom.path,
            is_array=custom.is_array,
            result=result,
        )
        for name, custom in descriptor.actions.items()
    }


def _check_conflicts(descriptor, builtin):
    reserved = set(builtin)
    reserved.update(
        name for name in dir(Resource) if not name.startswith("_"))
    for name in descriptor.actions:
        if name in reserved:
            raise ModelDefinitionError(
                "{}: custom action {!r} conflicts with a built-in name"
                .format(descriptor.name, name))
    for name in descriptor.relations:
        if name in reserved or name in descriptor.actions:
            raise ModelDefinitionError(
                "{}: relation {!r} conflicts with an action of the same name"
                .format(descriptor.name, name))


def build_resource(descriptor, app):
    """Generate the resource type of a model.

    Parameters
    ----------
    descriptor: ~restmodels.descriptors.ModelDescriptor
        The model
    app: ~restmodels.app.Application
        The application the type is bound to

    Returns
    -------
    type
        A subclass of :class:`Resource`

    Raises
    ------
    ~restmodels.errors.ModelDefinitionError
        if action or relation names conflict
    """
    cls = types.new_class(normalize_name(descriptor.name), (Resource,))
    cls.__module__ = __name__

    def result():
        return cls

    actions = _builtin_actions(descriptor, result)
    if app.enable_auth and descriptor is app.user_model:
        actions.update(_user_actions(descriptor, result, app.auth))
    _check_conflicts(descriptor, actions)
    actions.update(_custom_actions(descriptor, result))

    cls.model = descriptor
    cls.app = app
    cls.actions = MappingProxyType(actions)
    cls.relations = descriptor.relations
    cls._update_action = Action(
        "save", "PUT", descriptor.path + "/{id}", result=result)
    for name, action in actions.items():
        if name != "save":
            setattr(cls, name, _class_action(action))
    bind_relations(cls)
    logger.debug("generated resource %s with actions %s",
                 cls.__name__, sorted(actions))
    return cls
