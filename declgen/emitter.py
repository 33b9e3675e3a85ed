"""Assembles generated artifacts into output unit text."""

from __future__ import annotations

import heapq
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .config import DEFAULT_HEADER
from .generators.base import OutputUnit
from .logging import get_logger
from .models import GeneratedArtifact


def order_artifacts(artifacts: Iterable[GeneratedArtifact]) -> List[GeneratedArtifact]:
    """Order artifacts so referenced declarations come first.

    Ties, and the members of reference cycles, fall back to the
    (declaration, strategy) key, so the result never depends on input order.
    """
    items = sorted(artifacts, key=lambda artifact: artifact.sort_key)
    by_declaration: Dict[str, List[int]] = defaultdict(list)
    for index, artifact in enumerate(items):
        by_declaration[artifact.declaration].append(index)

    dependents: Dict[int, Set[int]] = defaultdict(set)
    pending: Dict[int, int] = {}
    for index, artifact in enumerate(items):
        requires = {
            other
            for name in artifact.references
            for other in by_declaration.get(name, ())
            if other != index
        }
        pending[index] = len(requires)
        for other in requires:
            dependents[other].add(index)

    ready: List[Tuple[Tuple[str, str], int]] = [
        (items[index].sort_key, index) for index, count in pending.items() if count == 0
    ]
    heapq.heapify(ready)
    ordered: List[GeneratedArtifact] = []
    done: Set[int] = set()
    while len(ordered) < len(items):
        if not ready:
            # cycle: release the smallest remaining artifact
            index = min((i for i in pending if i not in done), key=lambda i: items[i].sort_key)
            heapq.heappush(ready, (items[index].sort_key, index))
        _, index = heapq.heappop(ready)
        if index in done:
            continue
        done.add(index)
        ordered.append(items[index])
        for dependent in sorted(dependents[index]):
            if dependent in done:
                continue
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(ready, (items[dependent].sort_key, dependent))
    return ordered


class Emitter:
    """Renders one text per output unit: header, imports, prelude, fragments."""

    def __init__(self, header: Optional[str] = DEFAULT_HEADER) -> None:
        self.header = header
        self.logger = get_logger("emitter")

    def emit(
        self,
        artifacts: Iterable[GeneratedArtifact],
        units: Mapping[str, OutputUnit] | None = None,
    ) -> Dict[str, str]:
        units = units or {}
        grouped: Dict[str, List[GeneratedArtifact]] = defaultdict(list)
        for artifact in artifacts:
            grouped[artifact.unit].append(artifact)

        outputs: Dict[str, str] = {}
        for name in sorted(grouped):
            unit = units.get(name) or OutputUnit(name=name)
            outputs[name] = self.render_unit(unit, grouped[name])
            self.logger.debug("Emitted %s with %d artifact(s)", name, len(grouped[name]))
        return outputs

    def render_unit(self, unit: OutputUnit, artifacts: Iterable[GeneratedArtifact]) -> str:
        blocks: List[str] = []
        if self.header:
            blocks.append(self.header.rstrip())
        if unit.imports:
            blocks.append("\n".join(f"import {module}" for module in unit.imports))
        if unit.prelude:
            blocks.append(unit.prelude.strip("\n"))
        for artifact in order_artifacts(artifacts):
            blocks.extend(fragment.strip("\n") for fragment in artifact.fragments if fragment.strip())
        return "\n\n".join(blocks) + "\n"


__all__ = ["Emitter", "order_artifacts"]
