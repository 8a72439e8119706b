"""Authenticated session state and its persistence"""
import abc
import enum
import json
import logging
import os
import tempfile
import typing as t
from dataclasses import dataclass
from pathlib import Path

from .errors import HttpError

__all__ = [
    "Tier",
    "Credential",
    "SessionStore",
    "MemoryStore",
    "FileStore",
    "SessionStorage",
    "Auth",
]

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessTokenId"
CURRENT_USER_KEY = "currentUserId"
DEFAULT_PREFIX = "$restmodels$"


class Tier(enum.Enum):
    """The persistence tiers of a session"""

    DURABLE = "durable"
    VOLATILE = "volatile"

    @classmethod
    def for_remember_me(cls, remember_me):
        return cls.DURABLE if remember_me else cls.VOLATILE


@dataclass(frozen=True)
class Credential:
    """The current session's access token and user.
    Both are ``None`` when logged out."""

    access_token_id: t.Optional[str] = None
    current_user_id: t.Any = None
    remember_me: bool = True

    @classmethod
    def empty(cls):
        return cls()

    def __bool__(self):
        return self.access_token_id is not None


class SessionStore(abc.ABC):
    """Abstract base class for a key-value persistence tier"""

    @abc.abstractmethod
    def get(self, key):
        """The stored value, or ``None``"""
        raise NotImplementedError()

    @abc.abstractmethod
    def set(self, key, value):
        raise NotImplementedError()

    @abc.abstractmethod
    def delete(self, key):
        """Remove a key. Removing a missing key is not an error."""
        raise NotImplementedError()

    def update(self, values):
        """Set several keys at once"""
        for key, value in values.items():
            self.set(key, value)

    def delete_many(self, keys):
        for key in keys:
            self.delete(key)

    def clear(self):
        self.delete_many(list(self.keys()))

    @abc.abstractmethod
    def keys(self):
        raise NotImplementedError()


class MemoryStore(SessionStore):
    """A volatile tier: values last as long as this object"""

    def __init__(self):
        self._values = {}

    def get(self, key):
        return self._values.get(key)

    def set(self, key, value):
        self._values[key] = value

    def delete(self, key):
        self._values.pop(key, None)

    def keys(self):
        return self._values.keys()

    def __repr__(self):
        return "MemoryStore({!r})".format(sorted(self._values))


class FileStore(SessionStore):
    """A durable tier, persisted as a JSON object in a file.

    Every write replaces the file as a whole.
    A missing or corrupt file reads as an empty store.

    Parameters
    ----------
    path: str or ~os.PathLike
        location of the file. Parent directories are created on write.
    """

    def __init__(self, path):
        self.path = Path(path).expanduser()

    def _load(self):
        try:
            with self.path.open("r", encoding="utf-8") as rfile:
                values = json.load(rfile)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("ignoring unreadable session file %s", self.path)
            return {}
        return values if isinstance(values, dict) else {}

    def _dump(self, values):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as wfile:
                json.dump(values, wfile)
            os.replace(tmp, str(self.path))
        except BaseException:
            os.unlink(tmp)
            raise

    def get(self, key):
        return self._load().get(key)

    def set(self, key, value):
        values = self._load()
        values[key] = value
        self._dump(values)

    def delete(self, key):
        self.delete_many([key])

    def update(self, values):
        stored = self._load()
        stored.update(values)
        self._dump(stored)

    def delete_many(self, keys):
        values = self._load()
        if any(key in values for key in keys):
            for key in keys:
                values.pop(key, None)
            self._dump(values)

    def keys(self):
        return self._load().keys()

    def __repr__(self):
        return "FileStore({!r})".format(str(self.path))


class SessionStorage(object):
    """The durable and volatile tiers of one application.

    Parameters
    ----------
    durable: SessionStore or None
        survives process restarts. Defaults to a :class:`MemoryStore`.
    volatile: SessionStore or None
        lasts for the process only. Defaults to a :class:`MemoryStore`.
    """

    def __init__(self, durable=None, volatile=None):
        self.durable = MemoryStore() if durable is None else durable
        self.volatile = MemoryStore() if volatile is None else volatile

    def tier(self, tier):
        return self.durable if tier is Tier.DURABLE else self.volatile

    def clear(self):
        self.durable.clear()
        self.volatile.clear()

    def __repr__(self):
        return (
            "SessionStorage(durable={0.durable!r}, volatile={0.volatile!r})"
        ).format(self)


class Auth(object):
    """The authentication session manager.
    Single source of truth for the current :class:`Credential`.

    Parameters
    ----------
    storage: SessionStorage
        The persistence tiers
    header: str
        Name of the request header carrying the access token
    prefix: str
        Prefix for the keys written to the storage tiers
    """

    def __init__(self, storage, header="Authorization",
                 prefix=DEFAULT_PREFIX):
        self.storage = storage
        self.header = header
        self._token_key = prefix + ACCESS_TOKEN_KEY
        self._user_key = prefix + CURRENT_USER_KEY
        self._credential = Credential.empty()
        self._loaded = False

    def set_credential(self, access_token_id, current_user_id,
                       remember_me=True):
        """Store a new credential, replacing any previous one.

        It is written to the durable tier if ``remember_me``,
        to the volatile tier otherwise. The other tier is cleared.
        """
        if access_token_id is None or current_user_id is None:
            raise ValueError(
                "a credential needs both an access token and a user id")
        chosen = Tier.for_remember_me(remember_me)
        for tier in Tier:
            store = self.storage.tier(tier)
            if tier is chosen:
                store.update({self._token_key: access_token_id,
                              self._user_key: current_user_id})
            else:
                store.delete_many([self._token_key, self._user_key])
        self._credential = Credential(
            access_token_id, current_user_id, bool(remember_me))
        self._loaded = True
        logger.debug("credential for user %r stored in %s tier",
                     current_user_id, chosen.value)

    def get_credential(self):
        """The current credential.

        The tiers are read once, durable first, then volatile.
        Afterwards the credential in memory is authoritative,
        as every change goes through this manager."""
        if not self._loaded:
            self._credential = self._load()
            self._loaded = True
        return self._credential

    def _load(self):
        for tier in (Tier.DURABLE, Tier.VOLATILE):
            store = self.storage.tier(tier)
            token = store.get(self._token_key)
            user_id = store.get(self._user_key)
            if token is not None and user_id is not None:
                logger.debug("credential restored from %s tier", tier.value)
                return Credential(token, user_id, tier is Tier.DURABLE)
        return Credential.empty()

    def clear_credential(self):
        """Forget the credential, in memory and in both tiers"""
        self._credential = Credential.empty()
        self._loaded = True
        for tier in Tier:
            self.storage.tier(tier).delete_many(
                [self._token_key, self._user_key])
        logger.debug("credential cleared")

    def is_authenticated(self):
        return self.get_credential().access_token_id is not None

    def decorate_request(self, request):
        """Attach the access token to a request, if logged in

        Parameters
        ----------
        request: ~restmodels.http.Request

        Returns
        -------
        ~restmodels.http.Request
        """
        token = self.get_credential().access_token_id
        if token is None:
            return request
        return request.with_headers({self.header: token})

    def should_stub(self, action):
        """Whether the action can be failed locally,
        because it needs a logged in user and there is none."""
        return action.requires_current_user and not self.is_authenticated()

    @staticmethod
    def stub_failure(action):
        """The locally synthesized 401 for a stubbed action"""
        logger.debug("stubbing %s: not authenticated", action.name)
        return HttpError(401, "Unauthorized", headers=None)

    def __repr__(self):
        return "<Auth: {}>".format(
            "authenticated" if self.is_authenticated() else "anonymous")
