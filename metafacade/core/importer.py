"""
Bulk import of external data onto an entity.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict

from pydantic import BaseModel

from metafacade.core.entity import Attribute, AttributeOrigin, Entity


def flatten_source(source: Any) -> Dict[Any, Any]:
    """
    Turn a mapping or record-like object into a shallow dict.
    Unsupported sources flatten to an empty dict.
    """
    if isinstance(source, Mapping):
        return dict(source)
    if isinstance(source, Entity):
        return source.entity_dump()
    if isinstance(source, BaseModel):
        # Iterating a model yields its fields (and extras) without recursing
        return dict(source)
    if hasattr(source, "__dict__"):
        return {k: v for k, v in vars(source).items() if not k.startswith("_")}
    return {}


class ImportMerger:
    """
    Applies external data to an entity.

    Rules, per key:
    - empty keys and keys starting with a NUL byte are dropped
    - force=True assigns unconditionally, even over a method or accessor name
    - otherwise method and accessor names are never shadowed
    - otherwise only_declared=True keeps declared fields only
    Declared fields are set on the model, anything else becomes an imported
    attribute that resolution returns as-is. Nested values are not merged.
    """
    _logger = logging.getLogger("ImportMerger")

    @classmethod
    def merge(cls, entity: Entity, source: Any, force: bool = False, only_declared: bool = False) -> None:
        if not isinstance(source, Mapping) and not hasattr(source, "__dict__"):
            cls._logger.debug(f"{entity!r}: ignoring import from {type(source).__name__}")
            return
        data = flatten_source(source)

        declared = type(entity).model_fields
        applied = 0
        for key, value in data.items():
            if not key or str(key)[0] == "\x00":
                cls._logger.debug(f"{entity!r}: dropping malformed key {key!r}")
                continue
            key = str(key)

            if not force:
                if type(entity).is_method_name(key):
                    continue
                if only_declared and key not in declared:
                    continue

            if key in declared:
                setattr(entity, key, value)
            else:
                entity._attributes[key] = Attribute(name=key, value=value, origin=AttributeOrigin.IMPORTED)
            applied += 1

        cls._logger.info(f"{entity!r}: imported {applied}/{len(data)} keys (force={force}, only_declared={only_declared})")
