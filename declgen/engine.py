"""Run orchestration: parse, index, resolve, dispatch and emit."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .annotations import AnnotationResolver, parse_markers
from .config import GeneratorConfig
from .corpus import Corpus
from .dispatcher import StrategyDispatcher
from .emitter import Emitter
from .errors import GenerationError, MalformedDeclaration
from .generators import Generator, GenerationContext, discover_generators
from .logging import get_logger
from .models import GeneratedArtifact, ParsedDeclaration, SourceUnit
from .parsing import DeclarationParser, ParseResult
from .rendering import TemplateRenderer


@dataclass
class GenerationResult:
    """Everything a run produced: output texts, artifacts and collected errors."""

    outputs: Dict[str, str] = field(default_factory=dict)
    artifacts: List[GeneratedArtifact] = field(default_factory=list)
    errors: List[GenerationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class GenerationEngine:
    """Coordinates one stateless generation pass over a set of source units."""

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        *,
        generators: Optional[Iterable[Generator]] = None,
        parser: DeclarationParser | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config or GeneratorConfig()
        self._generator_overrides = list(generators) if generators is not None else None
        self.parser = parser or DeclarationParser()
        self.renderer = renderer or TemplateRenderer(self.config.templates_dir)
        self.logger = get_logger("engine")

    def run(self, units: Sequence[SourceUnit]) -> GenerationResult:
        self.logger.info("Generating from %d source unit(s)", len(units))
        parsed, malformed = self._parse(units)

        corpus, duplicates = Corpus.build(parsed)
        errors: List[GenerationError] = []
        for error in [*malformed, *duplicates]:
            if not parse_markers(error.markers):
                self.logger.debug("Ignoring unannotated declaration: %s", error)
                continue
            self.logger.warning("Skipping malformed declaration: %s", error)
            errors.append(error)

        resolver = AnnotationResolver(self.config)
        resolved, unresolvable = resolver.resolve_all(corpus)
        errors.extend(unresolvable)

        context = GenerationContext.create(corpus, self.config, resolved, self.renderer)
        dispatcher = StrategyDispatcher(self._select_generators(), workers=self.config.workers)
        dispatched = dispatcher.dispatch(resolved, context)
        errors.extend(dispatched.errors)

        outputs = Emitter(self.config.header).emit(dispatched.artifacts, dispatched.units)
        ordered_errors = sorted(errors, key=lambda error: error.sort_key)
        self.logger.info(
            "Generated %d artifact(s) into %d unit(s); %d error(s)",
            len(dispatched.artifacts),
            len(outputs),
            len(ordered_errors),
        )
        return GenerationResult(outputs=outputs, artifacts=dispatched.artifacts, errors=ordered_errors)

    def _parse(
        self, units: Sequence[SourceUnit]
    ) -> Tuple[List[ParsedDeclaration], List[MalformedDeclaration]]:
        if self.config.workers > 1 and len(units) > 1:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                results: List[ParseResult] = list(pool.map(self.parser.parse, units))
        else:
            results = [self.parser.parse(unit) for unit in units]

        parsed: List[ParsedDeclaration] = []
        errors: List[MalformedDeclaration] = []
        for result in results:
            parsed.extend(result.declarations)
            errors.extend(result.errors)
        return parsed, errors

    def _select_generators(self) -> List[Generator]:
        if self._generator_overrides is not None:
            return [
                generator
                for generator in self._generator_overrides
                if self.config.is_enabled(generator.strategy)
            ]
        return discover_generators(self.config.strategies)


def generate(units: Sequence[SourceUnit], config: GeneratorConfig | None = None) -> GenerationResult:
    """Convenience wrapper running a single engine pass."""
    return GenerationEngine(config).run(units)


__all__ = ["GenerationEngine", "GenerationResult", "generate"]
