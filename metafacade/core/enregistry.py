import logging
from typing import Any, Callable, Dict, List, Optional

from metafacade.core.entity import Entity

PostListener = Callable[[Any], None]

##############################
# 1) Loop context
##############################

class LoopContext:
    """
    The state an external iteration loop exposes: whether it is inside the
    loop and which record id is active. Listeners are notified with the
    record id every time a record is set up (the `the_post` action).
    """
    def __init__(self) -> None:
        self._logger = logging.getLogger("LoopContext")
        self.in_the_loop: bool = False
        self.active_id: Any = None
        self._listeners: List[PostListener] = []

    def add_listener(self, listener: PostListener) -> None:
        if not callable(listener):
            raise ValueError("Loop listener must be callable")
        self._listeners.append(listener)

    def remove_listener(self, listener: PostListener) -> bool:
        if listener not in self._listeners:
            return False
        self._listeners.remove(listener)
        return True

    def setup_postdata(self, record_id: Any) -> None:
        self.active_id = record_id
        for listener in list(self._listeners):
            listener(record_id)
        self._logger.debug(f"Active record is now {record_id}")

    def reset(self) -> None:
        self.in_the_loop = False
        self.active_id = None


##############################
# 2) Current entity registry
##############################

class CurrentEntityRegistry:
    """
    Single-slot, process-wide registry of the current entity.
    Pinning a new entity evicts the previous one. Not locked: callers
    serialize pin() themselves.
    """
    _logger = logging.getLogger("CurrentEntityRegistry")
    _current: Optional[Entity] = None
    _loop: LoopContext = LoopContext()

    @classmethod
    def use_loop(cls, loop: LoopContext) -> None:
        """Set the loop context setup() writes to."""
        cls._loop = loop

    @classmethod
    def get_loop(cls) -> LoopContext:
        return cls._loop

    @classmethod
    def pin(cls, entity: Entity) -> Optional[Entity]:
        """Make `entity` current. Returns the entity it evicted, if any."""
        evicted = cls._current
        cls._current = entity
        if evicted is not None and evicted is not entity:
            cls._logger.debug(f"{entity!r} evicted {evicted!r}")
        return evicted

    @classmethod
    def current(cls) -> Optional[Entity]:
        return cls._current

    @classmethod
    def is_current(cls, entity: Entity) -> bool:
        return cls._current is entity

    @classmethod
    def clear(cls) -> None:
        """External release of the pin. Also leaves the loop."""
        cls._current = None
        cls._loop.reset()

    @classmethod
    def get_registry_status(cls) -> Dict[str, Any]:
        return {
            "current": repr(cls._current) if cls._current is not None else None,
            "in_the_loop": cls._loop.in_the_loop,
            "active_id": cls._loop.active_id,
        }


##############################
# 3) Lifecycle
##############################

class LifecycleManager:
    """setup()/teardown() pair used around every entity an external loop renders."""
    _logger = logging.getLogger("LifecycleManager")

    @classmethod
    def setup(cls, entity: Entity) -> Entity:
        if not isinstance(entity, Entity):
            cls._logger.error(f"Invalid entity type: {type(entity)}")
            raise ValueError("Only Entity instances can be set up")
        CurrentEntityRegistry.pin(entity)
        loop = CurrentEntityRegistry.get_loop()
        loop.in_the_loop = True
        loop.setup_postdata(entity.id)
        return entity

    @classmethod
    def teardown(cls, entity: Entity) -> Entity:
        # No-op kept so every setup() has a matching call site
        return entity
