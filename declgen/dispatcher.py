"""Routes resolved declarations to the generators whose strategy they carry."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from .annotations import ResolvedDeclaration
from .errors import GenerationError
from .generators.base import CorpusGenerator, GenerationContext, Generator, OutputUnit
from .logging import get_logger
from .models import GeneratedArtifact

_Outcome = Tuple[List[GeneratedArtifact], List[GenerationError]]


@dataclass
class DispatchResult:
    """Artifacts and errors of one dispatch, both in deterministic order."""

    artifacts: List[GeneratedArtifact] = field(default_factory=list)
    errors: List[GenerationError] = field(default_factory=list)
    units: Dict[str, OutputUnit] = field(default_factory=dict)


class StrategyDispatcher:
    """Runs every applicable generator and merges their results.

    Per-declaration generators run once for each declaration that carries
    their strategy; corpus-wide generators run once with all of them. A
    :class:`GenerationError` fails only the declaration and strategy it was
    raised for. Results are sorted by (declaration, strategy) so the outcome
    does not depend on scheduling.
    """

    def __init__(self, generators: Iterable[Generator], *, workers: int = 1) -> None:
        self.generators = list(generators)
        self.workers = max(1, workers)
        self.logger = get_logger("dispatcher")

    def dispatch(
        self, resolved: Sequence[ResolvedDeclaration], context: GenerationContext
    ) -> DispatchResult:
        tasks: List[Callable[[], _Outcome]] = []
        for generator in self.generators:
            selected = [item for item in resolved if generator.supports(item)]
            if not selected:
                continue
            if isinstance(generator, CorpusGenerator):
                tasks.append(self._corpus_task(generator, selected, context))
            else:
                tasks.extend(self._declaration_task(generator, item, context) for item in selected)

        self.logger.debug("Dispatching %d generation task(s) on %d worker(s)", len(tasks), self.workers)
        if self.workers > 1 and len(tasks) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                outcomes = list(pool.map(lambda task: task(), tasks))
        else:
            outcomes = [task() for task in tasks]

        artifacts: List[GeneratedArtifact] = []
        errors: List[GenerationError] = []
        for produced, failed in outcomes:
            artifacts.extend(produced)
            errors.extend(failed)

        result = DispatchResult(
            artifacts=_deduplicate(artifacts),
            errors=sorted(errors, key=lambda error: error.sort_key),
        )
        used_units = {artifact.unit for artifact in result.artifacts}
        for generator in self.generators:
            if generator.output_unit in used_units and generator.output_unit not in result.units:
                result.units[generator.output_unit] = generator.unit(context)
        return result

    @staticmethod
    def _declaration_task(
        generator: Generator, item: ResolvedDeclaration, context: GenerationContext
    ) -> Callable[[], _Outcome]:
        def _run() -> _Outcome:
            try:
                return generator.generate(item, context), []
            except GenerationError as exc:
                return [], [exc.with_strategy(generator.strategy)]

        return _run

    @staticmethod
    def _corpus_task(
        generator: CorpusGenerator,
        selected: Sequence[ResolvedDeclaration],
        context: GenerationContext,
    ) -> Callable[[], _Outcome]:
        def _run() -> _Outcome:
            try:
                artifacts, errors = generator.generate_corpus(selected, context)
            except GenerationError as exc:
                return [], [exc.with_strategy(generator.strategy)]
            return artifacts, [error.with_strategy(generator.strategy) for error in errors]

        return _run


def _deduplicate(artifacts: Iterable[GeneratedArtifact]) -> List[GeneratedArtifact]:
    """Keep one artifact per (declaration, strategy), preferring the first in sort order."""
    ordered = sorted(artifacts, key=lambda artifact: (artifact.sort_key, artifact.fragments))
    unique: Dict[Tuple[str, str], GeneratedArtifact] = {}
    for artifact in ordered:
        unique.setdefault(artifact.sort_key, artifact)
    return list(unique.values())


__all__ = ["DispatchResult", "StrategyDispatcher"]
