"""
The entire public API is available at root level::

    from restmodels import Application, Auth, HttpError, send_async, ...
"""

from . import clients, http
from .app import *  # noqa
from .clients import *  # noqa
from .descriptors import *  # noqa
from .dispatch import *  # noqa
from .errors import *  # noqa
from .http import *  # noqa
from .relations import *  # noqa
from .resource import *  # noqa
from .session import *  # noqa

__version__ = __import__("importlib.metadata").metadata.version(__name__)
__all__ = ["clients", "http"]
