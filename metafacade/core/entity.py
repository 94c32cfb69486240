############################################################
# entity.py
############################################################

"""
Template-facing entity facade.

An Entity is a record from the host metadata store dressed up as a native
object. Key concepts:

1. DECLARED SCHEMA:
   - The pydantic model fields of the subclass, fixed at construction
   - Declared fields always win and are read straight off the model

2. RESOLVED ATTRIBUTES:
   - Anything else is resolved lazily: metadata, then a computed accessor,
     then the `False` sentinel (see AttributeResolver)
   - Each outcome is cached per instance with its origin, so a field hits the
     metadata store at most once per instance

3. ACCESSORS:
   - Zero-argument methods marked with @accessor, registered per class
   - Resolved by name exactly like metadata keys

4. LIFECYCLE:
   - setup() pins the entity as the process-wide current entity for an
     external loop; teardown() is its symmetric no-op

Example Usage:
```python
class Post(Entity):
    title: str = ""

    @accessor
    def slug(self) -> str:
        return self.title.lower().replace(" ", "-")

post = Post(id=42, title="Hello World")
post["color"]      # metadata value, or False
post["slug"]       # "hello-world"
"color" in post    # truthiness of the resolved value
```
"""

import inspect
import logging
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Set, Union, overload
from uuid import UUID

from pydantic import BaseModel, ConfigDict, PrivateAttr

from metafacade.core.capabilities import EditCapability


class AttributeOrigin(str, Enum):
    """Where a resolved attribute value came from."""
    DECLARED = "declared"
    META = "meta"
    COMPUTED = "computed"
    SENTINEL = "sentinel"
    IMPORTED = "imported"


class Attribute(BaseModel):
    """A resolved (name, value, origin) triple cached on an entity."""
    name: str
    value: Any = None
    origin: AttributeOrigin

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


F = Callable[..., Any]


@overload
def accessor(func: F) -> F: ...
@overload
def accessor(*, name: Optional[str] = None) -> Callable[[F], F]: ...

def accessor(func: Optional[F] = None, *, name: Optional[str] = None) -> Any:
    """
    Mark a zero-argument method as a computed accessor.
    Usable bare (`@accessor`) or with a public name (`@accessor(name="thumb")`).
    """
    def mark(target: F) -> F:
        target.__accessor__ = name or target.__name__  # type: ignore[attr-defined]
        return target

    if func is None:
        return mark
    return mark(func)


class Entity(BaseModel):
    """
    Base class for metadata-backed facade objects.

    Attributes:
        id: Identity of the record in the host store
        supports_meta: Whether unresolved names are looked up in the MetaStore
        object_type: Host object type, informational for storage and filters
        _attributes: Per-instance cache of resolved and imported attributes
        _meta_misses: Names whose metadata already came back empty
    """
    id: Optional[Union[int, str, UUID]] = None

    supports_meta: ClassVar[bool] = True
    object_type: ClassVar[str] = "post"
    _accessor_cache: ClassVar[Dict[type, Dict[str, str]]] = {}

    _attributes: Dict[str, Attribute] = PrivateAttr(default_factory=dict)
    _meta_misses: Set[str] = PrivateAttr(default_factory=set)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id})"

    ############################################################################
    # Schema and accessor registry
    ############################################################################
    @classmethod
    def declared_fields(cls) -> Set[str]:
        return set(cls.model_fields)

    @classmethod
    def accessors(cls) -> Dict[str, str]:
        """Public accessor name -> method name, inherited accessors included."""
        cached = Entity._accessor_cache.get(cls)
        if cached is None:
            cached = {}
            for klass in reversed(cls.__mro__):
                if not issubclass(klass, Entity):
                    continue
                for attr_name, member in vars(klass).items():
                    if inspect.isfunction(member) and getattr(member, "__accessor__", None):
                        cached[member.__accessor__] = attr_name
            Entity._accessor_cache[cls] = cached
        return dict(cached)

    @classmethod
    def is_method_name(cls, name: str) -> bool:
        """
        True when `name` is an accessor or a method defined on an Entity class.
        Imports never shadow these unless forced. Methods inherited from
        BaseModel (json, copy, ...) do not count, so records may carry those keys.
        """
        if name in cls.accessors():
            return True
        return any(
            name in vars(klass) and callable(getattr(cls, name, None))
            for klass in cls.__mro__
            if issubclass(klass, Entity)
        )

    def cached_attribute(self, name: str) -> Optional[Attribute]:
        return self._attributes.get(name)

    def entity_dump(self) -> Dict[str, Any]:
        """Shallow dump of declared fields plus every non-sentinel cached attribute."""
        data = {name: getattr(self, name) for name in type(self).model_fields}
        for name, attribute in self._attributes.items():
            if attribute.origin is not AttributeOrigin.SENTINEL:
                data[name] = attribute.value
        return data

    ############################################################################
    # Resolution
    ############################################################################
    def resolve(self, field: str) -> Any:
        from metafacade.core.resolver import AttributeResolver
        return AttributeResolver.get(self, field)

    def call(self, field: str, *args: Any, **kwargs: Any) -> Any:
        from metafacade.core.resolver import AttributeResolver
        return AttributeResolver.call(self, field, *args, **kwargs)

    def has_field(self, field: str) -> bool:
        from metafacade.core.resolver import AttributeResolver
        return AttributeResolver.has_field(self, field)

    def __getitem__(self, field: str) -> Any:
        return self.resolve(field)

    def __contains__(self, field: object) -> bool:
        return isinstance(field, str) and self.has_field(field)

    ############################################################################
    # Metadata
    ############################################################################
    def meta(self, field_name: Optional[str] = None) -> Any:
        """
        Get a metadata value for this entity through the MetaStore filters.

        Args:
            field_name: The metadata key to read

        Returns:
            The normalized, filtered value (None when nothing is stored)
        """
        from metafacade.core.metastore import MetaStore
        return MetaStore.fetch(self.id, field_name, self)

    def get_field(self, field_name: str) -> Any:
        return self.meta(field_name)

    def update(self, key: str, value: Any) -> bool:
        """Deprecated direct metadata write; the cache is left untouched."""
        from metafacade.core.metastore import MetaStore
        logging.getLogger("Entity").warning(
            f"{type(self).__name__}.update() is deprecated since 2.0.0, write through the MetaStore instead"
        )
        return MetaStore.write(self.id, key, value)

    ############################################################################
    # Capabilities
    ############################################################################
    @accessor
    def can_edit(self) -> bool:
        """Whether the current user may edit this record. False without an oracle."""
        return EditCapability.has_edit_capability(self.id)

    def get_method_values(self) -> Dict[str, Any]:
        return {"can_edit": self.can_edit()}

    ############################################################################
    # Lifecycle and import
    ############################################################################
    def setup(self) -> "Entity":
        from metafacade.core.enregistry import LifecycleManager
        return LifecycleManager.setup(self)

    def teardown(self) -> "Entity":
        from metafacade.core.enregistry import LifecycleManager
        return LifecycleManager.teardown(self)

    def import_data(self, source: Any, force: bool = False, only_declared: bool = False) -> None:
        from metafacade.core.importer import ImportMerger
        ImportMerger.merge(self, source, force=force, only_declared=only_declared)
