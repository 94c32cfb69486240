"""
MetaStore: the read/write path between an entity id and its metadata.

fetch() runs in three steps:

1. PRE STAGE:   `pre_meta`, then legacy `get_meta_field_pre`, seeded with None.
                A non-None result skips the storage read entirely.
2. STORAGE:     raw values for (record id, key) are normalized:
                    []        -> None
                    [x]       -> x
                    [a, b...] -> [a, b...] (store order)
3. POST STAGE:  `meta`, then legacy `get_meta_field`, threading the value.

write() is the legacy direct path: straight to storage, no filters.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from metafacade.core.filters import FilterContext, FilterPipeline, StageAlias, Transformer
from metafacade.core.storage import InMemoryMetaStorage, MetaStorage, RecordId

PRE_META = "pre_meta"
POST_META = "meta"

META_STAGE_ALIASES: Dict[str, StageAlias] = {
    "get_meta_field_pre": StageAlias(canonical=PRE_META, since="2.0.0"),
    "get_meta_field": StageAlias(canonical=POST_META, since="2.0.0"),
}


def normalize_meta_values(values: List[Any]) -> Any:
    """Collapse a raw store result into None, a scalar or an ordered list."""
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return list(values)


class MetaStore:
    """
    Static facade over the configured metadata storage and filter pipeline.
    """
    _logger = logging.getLogger("MetaStore")
    _storage: MetaStorage = InMemoryMetaStorage()  # default
    _filters: FilterPipeline = FilterPipeline(aliases=META_STAGE_ALIASES)
    _warn_ambiguous: bool = True

    @classmethod
    def use_storage(cls, storage: MetaStorage) -> None:
        """Set the storage implementation to use."""
        cls._storage = storage
        cls._logger.info(f"Now using {type(storage).__name__} for metadata")

    @classmethod
    def get_storage(cls) -> MetaStorage:
        return cls._storage

    @classmethod
    def set_ambiguous_key_warnings(cls, enabled: bool) -> None:
        cls._warn_ambiguous = enabled

    # Filter delegation
    @classmethod
    def add_filter(cls, stage: str, transformer: Transformer) -> None:
        cls._filters.add_filter(stage, transformer)

    @classmethod
    def remove_filter(cls, stage: str, transformer: Transformer) -> bool:
        return cls._filters.remove_filter(stage, transformer)

    @classmethod
    def clear_filters(cls) -> None:
        cls._filters.clear()

    @classmethod
    def fetch(cls, record_id: RecordId, key: Optional[str] = None, entity: Any = None) -> Any:
        """
        Fetch one metadata value for a record.

        Args:
            record_id: Id of the record owning the metadata
            key: Metadata key; None reads the whole record
            entity: The entity asking, handed to the filters

        Returns:
            The filtered, normalized value (None when nothing is stored)
        """
        context = FilterContext(record_id=record_id, field_name=key, entity=entity)
        value = cls._filters.apply(PRE_META, None, context)
        cls._check_key(key)

        if value is None:
            value = normalize_meta_values(cls._storage.fetch(record_id, key))
        else:
            cls._logger.debug(f"Pre-fetch filters resolved {key!r} for record {record_id}")

        return cls._filters.apply(POST_META, value, context)

    @classmethod
    def fetch_many(cls, record_id: RecordId, keys: Iterable[str], entity: Any = None) -> Dict[str, Any]:
        """
        Batched fetch: one storage round trip for every key the pre-fetch
        filters leave unresolved. Each key is otherwise treated as in fetch().

        Raises:
            ValueError: If a key is None; whole-record reads go through fetch()
        """
        keys = list(dict.fromkeys(keys))
        if None in keys:
            raise ValueError("fetch_many() needs explicit keys, use fetch(record_id, None) for the whole record")
        contexts = {key: FilterContext(record_id=record_id, field_name=key, entity=entity) for key in keys}
        values: Dict[str, Any] = {}
        pending: List[str] = []
        for key in keys:
            cls._check_key(key)
            pre = cls._filters.apply(PRE_META, None, contexts[key])
            if pre is None:
                pending.append(key)
            else:
                values[key] = pre

        if pending:
            raw = cls._storage.fetch_many(record_id, pending)
            for key in pending:
                values[key] = normalize_meta_values(raw.get(key, []))

        cls._logger.debug(f"Batched fetch of {len(keys)} keys for record {record_id}, {len(pending)} from storage")
        return {key: cls._filters.apply(POST_META, values[key], contexts[key]) for key in keys}

    @classmethod
    def write(cls, record_id: RecordId, key: str, value: Any) -> bool:
        """Persist a single value for (record_id, key), replacing what was there."""
        return cls._storage.write(record_id, key, value)

    @classmethod
    def add(cls, record_id: RecordId, key: str, value: Any) -> bool:
        """Append another value to a multi-valued key."""
        return cls._storage.add(record_id, key, value)

    @classmethod
    def _check_key(cls, key: Optional[str]) -> None:
        if not cls._warn_ambiguous:
            return
        if key is None:
            cls._logger.warning(
                "You have not set what meta field you want to retrieve, "
                "this can cause strange behavior and is not recommended"
            )
        elif key == "meta":
            cls._logger.warning(
                'You are trying to retrieve a meta field named "meta", '
                "this can cause strange behavior and is not recommended"
            )

    @classmethod
    def get_registry_status(cls) -> Dict[str, Any]:
        return {
            "storage": cls._storage.get_registry_status(),
            "filters": cls._filters.get_registry_status(),
        }

    @classmethod
    def reset(cls, storage: Optional[MetaStorage] = None) -> None:
        """Drop all filters and swap in fresh storage (in-memory by default)."""
        cls._filters = FilterPipeline(aliases=META_STAGE_ALIASES)
        cls._storage = storage if storage is not None else InMemoryMetaStorage()
        cls._warn_ambiguous = True
