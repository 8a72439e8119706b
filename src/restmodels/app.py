"""The application scope: configuration and resource type registry"""
import logging
from functools import partial

from .descriptors import load_descriptors
from .dispatch import Dispatcher
from .errors import ModelDefinitionError
from .resource import build_resource, normalize_name
from .session import DEFAULT_PREFIX, Auth, SessionStorage

__all__ = ["Application", "application"]

logger = logging.getLogger(__name__)


class Application(object):
    """The context in which resource types are generated and used.

    Resource types are generated on first lookup and cached,
    so that repeated lookups return the same type.
    A type can be looked up by the model name,
    or by the model name with its first letter in upper case:

    >>> app = Application({'product': {}}, base_url='http://localhost/api')
    >>> app['Product'] is app['product'] is app.Product
    True

    Parameters
    ----------
    models: ~typing.Mapping[str, dict] \
        or ~typing.Iterable[~restmodels.descriptors.ModelDescriptor]
        The model metadata
    base_url: str
        Prefix of all request paths
    client
        The HTTP client, see :class:`~restmodels.dispatch.Dispatcher`
    enable_auth: bool
        Whether the backend requires authentication.
        Only then does the user model get ``login``, ``logout``
        and ``get_current`` actions.
    user_model: str or None
        Name of the user model.
        By default, the single model based on ``User``.
    storage: ~restmodels.session.SessionStorage or None
        Persistence of the session credential.
        Defaults to in-memory tiers.
    auth_header: str
        The request header carrying the access token
    storage_prefix: str
        Prefix of the keys written to the storage tiers
    headers: ~typing.Mapping or None
        Extra headers for every request
    """

    def __init__(
        self,
        models,
        base_url="",
        client=None,
        enable_auth=False,
        user_model=None,
        storage=None,
        auth_header="Authorization",
        storage_prefix=DEFAULT_PREFIX,
        headers=None,
    ):
        self._descriptors = {}
        for descriptor in load_descriptors(models):
            for key in {descriptor.name, normalize_name(descriptor.name)}:
                if key in self._descriptors:
                    raise ModelDefinitionError(
                        "duplicate model name {!r}".format(key))
                self._descriptors[key] = descriptor
        self._types = {}
        self.enable_auth = enable_auth
        self.user_model = self._find_user_model(user_model)
        self.auth = Auth(
            SessionStorage() if storage is None else storage,
            header=auth_header,
            prefix=storage_prefix,
        )
        self.dispatcher = Dispatcher(
            self.auth, client=client, base_url=base_url, headers=headers
        )

    def _find_user_model(self, name):
        if name is not None:
            try:
                return self._descriptors[name]
            except KeyError:
                raise ModelDefinitionError(
                    "unknown user model {!r}".format(name)) from None
        candidates = {d.name: d for d in self._descriptors.values()
                      if d.is_user}
        if len(candidates) > 1:
            raise ModelDefinitionError(
                "several user models ({}), choose one with `user_model`"
                .format(", ".join(sorted(candidates))))
        return next(iter(candidates.values()), None)

    @property
    def models(self):
        """The names of the models, as given"""
        return sorted({d.name for d in self._descriptors.values()})

    def __getitem__(self, name):
        descriptor = self._descriptors[name]
        try:
            return self._types[descriptor.name]
        except KeyError:
            resource = self._types[descriptor.name] = build_resource(
                descriptor, self)
            return resource

    def get(self, name, default=None):
        try:
            return self[name]
        except KeyError:
            return default

    def resolve(self, name):
        """Look up the resource type of a related model

        Raises
        ------
        ~restmodels.errors.ModelDefinitionError
            if there is no such model
        """
        try:
            return self[name]
        except KeyError:
            raise ModelDefinitionError(
                "relation to unknown model {!r}".format(name)) from None

    def __contains__(self, name):
        return name in self._descriptors

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __repr__(self):
        return "<Application: {}>".format(", ".join(self.models))


def application(**kwargs):
    """Create a version of :class:`Application` with bound settings.

    Parameters
    ----------
    **kwargs
        arguments to pass to :class:`Application`

    Returns
    -------
    ~typing.Callable[..., Application]
        an :class:`Application`-like constructor

    Example
    -------

    >>> connect = application(base_url='http://localhost:3000/api',
    ...                       enable_auth=True)
    >>> app = connect({'user': {'base': 'User'}})
    """
    return partial(Application, **kwargs)
