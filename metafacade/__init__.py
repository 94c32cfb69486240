"""
metafacade: metadata-backed entity facades for templates.
"""
from metafacade.core.entity import Attribute, AttributeOrigin, Entity, accessor
from metafacade.core.capabilities import EditCapability
from metafacade.core.filters import FilterContext, FilterPipeline, StageAlias
from metafacade.core.metastore import MetaStore, normalize_meta_values
from metafacade.core.storage import InMemoryMetaStorage, MetaStorage, SqlMetaStorage
from metafacade.core.resolver import AttributeResolver
from metafacade.core.importer import ImportMerger
from metafacade.core.enregistry import CurrentEntityRegistry, LifecycleManager, LoopContext
from metafacade.core.loop import in_entity_loop, the_loop

__all__ = [
    "Attribute", "AttributeOrigin", "Entity", "accessor",
    "EditCapability",
    "FilterContext", "FilterPipeline", "StageAlias",
    "MetaStore", "normalize_meta_values",
    "InMemoryMetaStorage", "MetaStorage", "SqlMetaStorage",
    "AttributeResolver", "ImportMerger",
    "CurrentEntityRegistry", "LifecycleManager", "LoopContext",
    "in_entity_loop", "the_loop",
]
