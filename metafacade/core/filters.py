"""
Named filter pipelines with deprecated stage aliases.

A pipeline maps a stage name to an ordered list of transformers. Applying a
stage threads a value through every transformer registered for it, left to
right. Legacy stage names are declared up front in an alias table; applying a
canonical stage also applies each legacy stage aliased to it, right after the
canonical one, so old extensions keep working.

Main components:
- FilterContext: what a transformer gets to know about the value it filters
- StageAlias: one entry of the alias table
- FilterPipeline: stage registry and application
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeAlias

Transformer: TypeAlias = Callable[[Any, "FilterContext"], Any]


@dataclass
class FilterContext:
    """Information passed to every transformer alongside the value"""
    record_id: Any
    field_name: Optional[str]
    entity: Any = None


@dataclass(frozen=True)
class StageAlias:
    """A legacy stage name kept for backward compatibility"""
    canonical: str
    since: str


class FilterPipeline:
    """
    Ordered transformer stages keyed by name.

    The alias table is fixed at construction: every alias must point at a
    canonical stage that is not itself an alias.
    """

    def __init__(self, aliases: Optional[Mapping[str, StageAlias]] = None) -> None:
        self._logger = logging.getLogger("FilterPipeline")
        self._stages: Dict[str, List[Transformer]] = {}
        self._aliases: Dict[str, StageAlias] = dict(aliases or {})
        self._legacy_by_canonical: Dict[str, List[str]] = {}
        for legacy, alias in self._aliases.items():
            if alias.canonical in self._aliases:
                self._logger.error(f"Alias '{legacy}' points at another alias '{alias.canonical}'")
                raise ValueError(f"Stage alias '{legacy}' must target a canonical stage")
            self._legacy_by_canonical.setdefault(alias.canonical, []).append(legacy)

    @property
    def aliases(self) -> Dict[str, StageAlias]:
        return dict(self._aliases)

    def add_filter(self, stage: str, transformer: Transformer) -> None:
        """Append a transformer to a stage. Legacy stage names are accepted."""
        if not callable(transformer):
            self._logger.error(f"Registration failed: transformer for '{stage}' is not callable")
            raise ValueError(f"Transformer for stage '{stage}' must be callable")
        self._stages.setdefault(stage, []).append(transformer)
        name = getattr(transformer, "__name__", type(transformer).__name__)
        self._logger.info(f"Registered transformer {name} on stage '{stage}'")

    def remove_filter(self, stage: str, transformer: Transformer) -> bool:
        """Remove a transformer from a stage. Returns False if it was not registered."""
        registered = self._stages.get(stage, [])
        if transformer not in registered:
            return False
        registered.remove(transformer)
        return True

    def has_filters(self, stage: str) -> bool:
        return bool(self._stages.get(stage))

    def clear(self, stage: Optional[str] = None) -> None:
        if stage is None:
            self._stages.clear()
        else:
            self._stages.pop(stage, None)

    def apply(self, stage: str, value: Any, context: FilterContext) -> Any:
        """
        Run `stage` then every legacy stage aliased to it.

        Args:
            stage: Canonical stage name
            value: Seed value threaded through the transformers
            context: Passed unchanged to every transformer

        Returns:
            The value returned by the last transformer (or the seed if none ran)
        """
        value = self._run(stage, value, context)
        for legacy in self._legacy_by_canonical.get(stage, []):
            if self.has_filters(legacy):
                alias = self._aliases[legacy]
                self._logger.warning(
                    f"Filter stage '{legacy}' is deprecated since {alias.since}, "
                    f"use '{alias.canonical}' instead"
                )
            value = self._run(legacy, value, context)
        return value

    def _run(self, stage: str, value: Any, context: FilterContext) -> Any:
        for transformer in list(self._stages.get(stage, [])):
            value = transformer(value, context)
        return value

    def get_registry_status(self) -> Dict[str, Any]:
        return {
            "stages": {name: len(fns) for name, fns in self._stages.items() if fns},
            "aliases": {legacy: alias.canonical for legacy, alias in self._aliases.items()},
        }
