from typing import Any, Callable, Dict, Iterable, Iterator, List
import logging
from functools import wraps

from metafacade.core.entity import Entity
from metafacade.core.enregistry import CurrentEntityRegistry, LifecycleManager

##############################
# Entity loops
##############################

def _collect_entities(args: tuple, kwargs: dict) -> List[Entity]:
    """Helper to collect Entity instances from args and kwargs, in argument order, without duplicates."""
    logger = logging.getLogger("EntityCollection")
    found: Dict[int, Entity] = {}

    def scan(obj: Any, path: str = "") -> None:
        if isinstance(obj, Entity):
            found.setdefault(id(obj), obj)
            logger.debug(f"Found entity {obj!r} at path {path}")
        elif isinstance(obj, (list, tuple, set)):
            for i, item in enumerate(obj):
                scan(item, f"{path}[{i}]")
        elif isinstance(obj, dict):
            for k, v in obj.items():
                scan(v, f"{path}.{k}")

    for i, arg in enumerate(args):
        scan(arg, f"args[{i}]")
    for key, arg in kwargs.items():
        scan(arg, f"kwargs[{key}]")
    return list(found.values())


def the_loop(entities: Iterable[Entity]) -> Iterator[Entity]:
    """
    Iterate entities the way a rendering loop does: each one is set up as the
    current entity before it is yielded and torn down after. The loop flag is
    cleared once the sequence is exhausted; the last entity stays pinned.
    """
    logger = logging.getLogger("EntityLoop")
    count = 0
    try:
        for entity in entities:
            LifecycleManager.setup(entity)
            try:
                yield entity
            finally:
                LifecycleManager.teardown(entity)
            count += 1
    finally:
        CurrentEntityRegistry.get_loop().in_the_loop = False
        logger.info(f"Loop finished after {count} entities")


def in_entity_loop(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator for render callbacks: the first Entity found in the arguments is
    set up before the call and torn down after it.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        entities = _collect_entities(args, kwargs)
        if not entities:
            return func(*args, **kwargs)
        entity = LifecycleManager.setup(entities[0])
        try:
            return func(*args, **kwargs)
        finally:
            LifecycleManager.teardown(entity)

    return wrapper
