"""Relation-scoped sub-resources"""
import copy

from .dispatch import Action

__all__ = ["RelationAccessor", "CollectionAccessor", "bind_relations"]


class RelationAccessor(object):
    """Accessor of a to-one relation (``belongsTo``, ``hasOne``).

    Calling it with the owner's id retrieves the related object.
    Accessed on an instance of the owner, the id is bound automatically.

    Example
    -------

    >>> customer = Order.customer({"id": 4})
    >>> customer = my_order.customer()
    """

    def __init__(self, owner, relation):
        self._owner = owner
        self._relation = relation
        self._owner_id = None
        self._actions = self._make_actions()

    @property
    def _path(self):
        return "{}/{{id}}/{}".format(self._owner.model.path,
                                     self._relation.name)

    def _target(self):
        return self._owner.app.resolve(self._relation.model)

    def _make_actions(self):
        return {
            "fetch": Action(self._relation.name, "GET", self._path,
                            result=self._target),
        }

    def _invoke(self, name, args, success, error):
        action = self._actions[name]
        params, data = action.split_args(args)
        if self._owner_id is not None:
            params = dict(params or {})
            params.setdefault("id", self._owner_id)
        return self._owner.app.dispatcher.invoke(
            action, params, data, success=success, error=error
        )

    def __call__(self, *args, success=None, error=None):
        return self._invoke("fetch", args, success, error)

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        bound = copy.copy(self)
        bound._owner_id = instance.__dict__.get("id")
        return bound

    def __set__(self, instance, value):
        # included relation data stays in the instance's fields
        # (see ``to_dict()``), but never hides the accessor
        raise AttributeError(
            "can't set relation {!r}".format(self._relation.name))

    def __repr__(self):
        return "<{} {}.{} -> {}>".format(
            type(self).__name__,
            self._owner.__name__,
            self._relation.name,
            self._relation.model,
        )


class CollectionAccessor(RelationAccessor):
    """Accessor of a to-many relation (``hasMany``, ``hasManyThrough``,
    ``hasAndBelongsToMany``).

    Calling it with the owner's id retrieves the related collection.
    Its only other members are :meth:`create` and :meth:`destroy_all`.
    """

    def _make_actions(self):
        name = self._relation.name
        return {
            "fetch": Action(name, "GET", self._path, is_array=True,
                            result=self._target),
            "create": Action(name + ".create", "POST", self._path,
                             result=self._target),
            "destroy_all": Action(name + ".destroy_all", "DELETE",
                                  self._path),
        }

    def create(self, *args, success=None, error=None):
        """Create a related object and associate it with the owner.

        The result is an instance of the related model's resource type.

        Example
        -------

        >>> category = Product.categories.create({'id': 1}, {'name': 'c1'})
        """
        return self._invoke("create", args, success, error)

    def destroy_all(self, *args, success=None, error=None):
        """Remove all related objects of the owner"""
        return self._invoke("destroy_all", args, success, error)


def bind_relations(resource):
    """Attach an accessor for each relation of a resource type's model"""
    for name, relation in resource.relations.items():
        accessor_cls = (
            CollectionAccessor if relation.kind.to_many else RelationAccessor
        )
        setattr(resource, name, accessor_cls(resource, relation))
