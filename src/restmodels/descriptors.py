"""Model, relation and action metadata, as supplied by the backend"""
import enum
import re
import typing as t
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .errors import ModelDefinitionError

__all__ = [
    "RelationKind",
    "PropertyDescriptor",
    "RelationDescriptor",
    "ActionDescriptor",
    "ModelDescriptor",
    "load_descriptors",
]


class RelationKind(enum.Enum):
    BELONGS_TO = "belongsTo"
    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"
    HAS_MANY_THROUGH = "hasManyThrough"
    HAS_AND_BELONGS_TO_MANY = "hasAndBelongsToMany"

    @property
    def to_many(self):
        return self not in (RelationKind.BELONGS_TO, RelationKind.HAS_ONE)


def _camel(name):
    return name[:1].lower() + name[1:]


def pluralize(name):
    """naive english plural, good enough for default REST paths"""
    if re.search("[^aeiou]y$", name, re.IGNORECASE):
        return name[:-1] + "ies"
    if re.search("(s|x|z|ch|sh)$", name, re.IGNORECASE):
        return name + "es"
    return name + "s"


@dataclass(frozen=True)
class PropertyDescriptor:
    name: str
    type: t.Any = None
    required: bool = False

    @classmethod
    def from_dict(cls, name, definition):
        if not isinstance(definition, Mapping):
            # shorthand: ``{"name": "string"}``
            return cls(name, definition)
        return cls(name, definition.get("type"),
                   bool(definition.get("required", False)))


@dataclass(frozen=True)
class RelationDescriptor:
    """A relation of one model to another.

    ``foreign_key`` is inferred when absent:
    ``<relation name>Id`` for ``belongsTo``,
    ``<owner model>Id`` for the other kinds.
    """

    name: str
    kind: RelationKind
    model: str
    foreign_key: t.Optional[str] = None
    through: t.Optional[str] = None

    @classmethod
    def from_dict(cls, owner, name, definition):
        try:
            kind = RelationKind(definition["type"])
            model = definition["model"]
        except (KeyError, ValueError) as exc:
            raise ModelDefinitionError(
                "invalid relation {}.{}: {}".format(owner, name, exc)
            ) from exc
        foreign_key = definition.get("foreignKey") or (
            name + "Id"
            if kind is RelationKind.BELONGS_TO
            else _camel(owner) + "Id"
        )
        through = definition.get("through")
        if kind is RelationKind.HAS_MANY_THROUGH and not through:
            raise ModelDefinitionError(
                "relation {}.{} needs a 'through' model".format(owner, name))
        return cls(name, kind, model, foreign_key, through)


@dataclass(frozen=True)
class ActionDescriptor:
    """A custom remote method of a model.
    The path is relative to the model's base path."""

    name: str
    method: str = "GET"
    path: str = ""
    is_array: bool = False

    @classmethod
    def from_dict(cls, name, definition):
        return cls(
            name,
            definition.get("method", "GET").upper(),
            definition.get("path", "/" + name),
            bool(definition.get("isArray", False)),
        )


@dataclass(frozen=True)
class ModelDescriptor:
    """Everything needed to generate the resource type of one model"""

    name: str
    properties: t.Mapping[str, PropertyDescriptor] = field(
        default_factory=dict, compare=False)
    relations: t.Mapping[str, RelationDescriptor] = field(
        default_factory=dict, compare=False)
    actions: t.Mapping[str, ActionDescriptor] = field(
        default_factory=dict, compare=False)
    base: t.Optional[str] = None
    plural: t.Optional[str] = None

    def __post_init__(self):
        for attr in ("properties", "relations", "actions"):
            object.__setattr__(
                self, attr, MappingProxyType(dict(getattr(self, attr))))
        if self.plural is None:
            object.__setattr__(self, "plural", pluralize(self.name))

    @property
    def path(self):
        """The base path of the model's REST endpoints"""
        return "/" + self.plural

    @property
    def is_user(self):
        return self.base == "User" or self.name == "User"

    @classmethod
    def from_dict(cls, name, definition=None):
        """Create a descriptor from a backend-style model definition::

            {
                "properties": {"name": {"type": "string", "required": True}},
                "options": {
                    "base": "User",
                    "plural": "users",
                    "relations": {
                        "accessTokens": {
                            "model": "AccessToken",
                            "type": "hasMany",
                            "foreignKey": "userId",
                        },
                    },
                },
                "actions": {"summary": {"method": "GET", "path": "/summary"}},
            }

        ``base``, ``plural`` and ``relations`` may also be given
        at the top level.
        """
        definition = definition or {}
        options = dict(definition.get("options") or {})
        for key in ("base", "plural", "relations"):
            if key in definition:
                options[key] = definition[key]
        return cls(
            name,
            properties={
                pname: PropertyDescriptor.from_dict(pname, pdef)
                for pname, pdef in (definition.get("properties") or {}).items()
            },
            relations={
                rname: RelationDescriptor.from_dict(name, rname, rdef)
                for rname, rdef in (options.get("relations") or {}).items()
            },
            actions={
                aname: ActionDescriptor.from_dict(aname, adef)
                for aname, adef in (definition.get("actions") or {}).items()
            },
            base=options.get("base"),
            plural=options.get("plural"),
        )


def load_descriptors(models):
    """Descriptors from a mapping of model name to definition,
    or from an iterable of :class:`ModelDescriptor`

    Returns
    -------
    ~typing.List[ModelDescriptor]
    """
    if isinstance(models, Mapping):
        return [ModelDescriptor.from_dict(name, definition)
                for name, definition in models.items()]
    return list(models)
