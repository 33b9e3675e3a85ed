"""Base classes for generator plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from ..annotations import Annotation, ResolvedDeclaration
from ..config import GeneratorConfig
from ..corpus import Corpus
from ..errors import GenerationError
from ..models import GeneratedArtifact
from ..rendering import TemplateRenderer
from .fixtures import Fixtures


@dataclass(frozen=True)
class OutputUnit:
    """Describes one generated file: its name, imports and shared prelude."""

    name: str
    imports: Tuple[str, ...] = ("Foundation",)
    prelude: Optional[str] = None


@dataclass
class GenerationContext:
    """Read-only state every generator can consult during a run."""

    corpus: Corpus
    config: GeneratorConfig
    fixtures: Fixtures
    renderer: TemplateRenderer
    resolved: Mapping[str, ResolvedDeclaration] = field(default_factory=dict)

    def annotations_for(self, name: str) -> FrozenSet[Annotation]:
        resolved = self.resolved.get(name)
        return resolved.annotations if resolved is not None else frozenset()

    @classmethod
    def create(
        cls,
        corpus: Corpus,
        config: GeneratorConfig,
        resolved: Sequence[ResolvedDeclaration] = (),
        renderer: TemplateRenderer | None = None,
    ) -> "GenerationContext":
        by_name: Dict[str, ResolvedDeclaration] = {item.name: item for item in resolved}
        return cls(
            corpus=corpus,
            config=config,
            fixtures=Fixtures.from_config(config, corpus),
            renderer=renderer or TemplateRenderer(config.templates_dir),
            resolved=by_name,
        )


class Generator(ABC):
    """Contract for generators that turn annotated declarations into artifacts."""

    strategy: str = ""
    output_unit: str = ""
    imports: Tuple[str, ...] = ("Foundation",)
    corpus_wide = False

    def supports(self, resolved: ResolvedDeclaration) -> bool:
        """Return True when ``resolved`` carries this generator's strategy tag."""
        return any(annotation.value == self.strategy for annotation in resolved.annotations)

    def prelude(self, context: GenerationContext) -> Optional[str]:
        """Shared text emitted once at the top of this generator's output unit."""
        return None

    def unit(self, context: GenerationContext) -> OutputUnit:
        return OutputUnit(name=self.output_unit, imports=self.imports, prelude=self.prelude(context))

    def artifact(
        self,
        declaration: str,
        fragments: Sequence[str],
        references: Sequence[str] = (),
    ) -> GeneratedArtifact:
        return GeneratedArtifact(
            strategy=self.strategy,
            declaration=declaration,
            fragments=tuple(fragments),
            references=frozenset(name for name in references if name != declaration),
            unit=self.output_unit,
        )

    @abstractmethod
    def generate(
        self, resolved: ResolvedDeclaration, context: GenerationContext
    ) -> List[GeneratedArtifact]:
        """Produce artifacts for one declaration or raise a GenerationError."""


class CorpusGenerator(Generator):
    """Generator whose output depends on every annotated declaration at once."""

    corpus_wide = True

    def generate(
        self, resolved: ResolvedDeclaration, context: GenerationContext
    ) -> List[GeneratedArtifact]:
        artifacts, errors = self.generate_corpus([resolved], context)
        if errors:
            raise errors[0]
        return artifacts

    @abstractmethod
    def generate_corpus(
        self, declarations: Sequence[ResolvedDeclaration], context: GenerationContext
    ) -> Tuple[List[GeneratedArtifact], List[GenerationError]]:
        """Produce artifacts for the whole corpus, collecting every error."""


__all__ = ["CorpusGenerator", "GenerationContext", "Generator", "OutputUnit"]
