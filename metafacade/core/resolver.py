"""
Attribute resolution for Entity facades.

Resolution order is fixed:

    declared field -> cached attribute -> metadata -> computed accessor -> False

The outcome of the last three is cached on the instance with its origin, so
each name is resolved at most once per entity instance. A missing name
resolves to (and caches) `False`; callers who need to tell that apart from a
real falsy value can ask for origin().
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from metafacade.core.entity import Attribute, AttributeOrigin, Entity
from metafacade.core.metastore import MetaStore


class AttributeResolver:
    """Stateless resolver; all state lives in the entity's attribute cache."""
    _logger = logging.getLogger("AttributeResolver")

    @classmethod
    def get(cls, entity: Entity, field: str) -> Any:
        if field in type(entity).model_fields:
            return getattr(entity, field)

        cached = entity._attributes.get(field)
        if cached is not None:
            return cached.value

        if type(entity).supports_meta and field not in entity._meta_misses:
            value = MetaStore.fetch(entity.id, field, entity)
            if value:
                return cls._store(entity, field, value, AttributeOrigin.META)
            entity._meta_misses.add(field)

        return cls._resolve_after_meta(entity, field)

    @classmethod
    def _resolve_after_meta(cls, entity: Entity, field: str) -> Any:
        method_name = type(entity).accessors().get(field)
        if method_name is not None:
            value = getattr(entity, method_name)()
            return cls._store(entity, field, value, AttributeOrigin.COMPUTED)

        cls._logger.debug(f"{entity!r}: '{field}' not found, caching sentinel")
        return cls._store(entity, field, False, AttributeOrigin.SENTINEL)

    @classmethod
    def call(cls, entity: Entity, field: str, *args: Any, **kwargs: Any) -> Any:
        """Same as get(); arguments are accepted and ignored."""
        if args or kwargs:
            cls._logger.debug(f"{entity!r}: arguments passed to '{field}' are ignored")
        return cls.get(entity, field)

    @classmethod
    def has_field(cls, entity: Entity, field: str) -> bool:
        return bool(cls.get(entity, field))

    @classmethod
    def origin(cls, entity: Entity, field: str) -> Optional[AttributeOrigin]:
        """Origin of an already resolved name, or None if it was never resolved."""
        if field in type(entity).model_fields:
            return AttributeOrigin.DECLARED
        cached = entity._attributes.get(field)
        return cached.origin if cached is not None else None

    @classmethod
    def prefetch(cls, entity: Entity, fields: Iterable[str]) -> Dict[str, Any]:
        """
        Resolve many names with a single storage round trip.

        All truthy metadata is cached before any accessor runs, and every empty
        name is recorded as a metadata miss, so an accessor reading another name
        of the same batch never goes back to the store. The remaining names then
        continue down the chain (accessor, then sentinel). Declared and cached
        names are skipped.

        Returns:
            Mapping of every newly resolved name to its value
        """
        if not type(entity).supports_meta:
            return {}
        declared = type(entity).model_fields
        wanted = [f for f in dict.fromkeys(fields) if f not in declared and f not in entity._attributes]
        if not wanted:
            return {}

        resolved: Dict[str, Any] = {}
        misses: List[str] = []
        for field, value in MetaStore.fetch_many(entity.id, wanted, entity).items():
            if value:
                resolved[field] = cls._store(entity, field, value, AttributeOrigin.META)
            else:
                entity._meta_misses.add(field)
                misses.append(field)

        for field in misses:
            # an earlier accessor may already have resolved it
            cached = entity._attributes.get(field)
            if cached is not None:
                resolved[field] = cached.value
            else:
                resolved[field] = cls._resolve_after_meta(entity, field)
        cls._logger.info(f"{entity!r}: prefetched {len(wanted)} fields in one round trip")
        return resolved

    @staticmethod
    def _store(entity: Entity, field: str, value: Any, origin: AttributeOrigin) -> Any:
        entity._attributes[field] = Attribute(name=field, value=value, origin=origin)
        return value
