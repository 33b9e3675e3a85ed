"""Built-in generators plus discovery of plugin generators."""

from __future__ import annotations

from importlib import metadata
from typing import Dict, List, Sequence, Type

from ..annotations import Annotation
from .base import CorpusGenerator, GenerationContext, Generator, OutputUnit
from .composition import CompositionGenerator
from .fixtures import Fixtures
from .mapper import AutoMappableGenerator
from .mocks import AutoFailingMockGenerator, AutoStubGenerator
from .registration import RegistrationGenerator

_ENTRY_POINT_GROUP = "declgen.generators"

# Emission order of the built-in strategies.
_BUILTIN_GENERATORS: Dict[str, Type[Generator]] = {
    Annotation.AUTO_FAILING_MOCK.value: AutoFailingMockGenerator,
    Annotation.AUTO_STUB.value: AutoStubGenerator,
    Annotation.AUTO_MAPPABLE_FROM_DTO.value: AutoMappableGenerator,
    Annotation.AUTOREGISTER.value: RegistrationGenerator,
    Annotation.DESCRIBES_FEATURE.value: CompositionGenerator,
}


def discover_generators(enabled: Sequence[str] | None = None) -> List[Generator]:
    """Instantiate the built-in generators and any ``declgen.generators`` plugins.

    ``enabled`` filters by strategy or entry-point name, case-insensitively.
    Built-ins come first in their fixed order, followed by plugins sorted by
    name; a plugin cannot replace a built-in strategy.
    """
    plugins = {
        entry.name: entry
        for entry in metadata.entry_points(group=_ENTRY_POINT_GROUP)
        if entry.name.lower() not in {name.lower() for name in _BUILTIN_GENERATORS}
    }
    available = {name.lower(): name for name in [*_BUILTIN_GENERATORS, *sorted(plugins)]}

    if enabled is None:
        selected = list(available.values())
    else:
        wanted = {name.lower() for name in enabled}
        unknown = sorted(wanted - set(available))
        if unknown:
            raise ValueError("Unknown generators requested: " + ", ".join(unknown))
        selected = [name for key, name in available.items() if key in wanted]

    generators: List[Generator] = []
    for name in selected:
        if name in _BUILTIN_GENERATORS:
            generators.append(_BUILTIN_GENERATORS[name]())
        else:
            generators.append(_load_plugin(plugins[name]))
    return generators


def _load_plugin(entry: metadata.EntryPoint) -> Generator:
    try:
        loaded = entry.load()
    except Exception as exc:
        raise RuntimeError(f"Failed to load generator entry point '{entry.name}': {exc}") from exc
    if not (isinstance(loaded, type) and issubclass(loaded, Generator)):
        raise TypeError(f"Generator entry point '{entry.name}' must name a Generator subclass")
    return loaded()


__all__ = [
    "AutoFailingMockGenerator",
    "AutoMappableGenerator",
    "AutoStubGenerator",
    "CompositionGenerator",
    "CorpusGenerator",
    "Fixtures",
    "GenerationContext",
    "Generator",
    "OutputUnit",
    "RegistrationGenerator",
    "discover_generators",
]
