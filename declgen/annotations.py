"""Annotation extraction and strategy precondition checks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .config import GeneratorConfig
from .corpus import Corpus
from .errors import UnresolvableStrategy
from .logging import get_logger
from .models import Contract, Declaration, Enumeration, ParsedDeclaration, ValueType


class Annotation(str, Enum):
    """Recognized marker tags."""

    AUTO_FAILING_MOCK = "autoFailingMock"
    AUTO_STUB = "autoStub"
    AUTO_MAPPABLE_FROM_DTO = "autoMappableFromDTO"
    AUTOREGISTER = "autoregister"
    DESCRIBES_FEATURE = "describesFeature"
    CONTAINS_COMPOSITION = "containsComposition"


_ALIASES: Dict[str, Annotation] = {
    "autofailingmock": Annotation.AUTO_FAILING_MOCK,
    "autofailing": Annotation.AUTO_FAILING_MOCK,
    "asyncautofailing": Annotation.AUTO_FAILING_MOCK,
    "autostub": Annotation.AUTO_STUB,
    "asyncautostub": Annotation.AUTO_STUB,
    "automappablefromdto": Annotation.AUTO_MAPPABLE_FROM_DTO,
    "autoregister": Annotation.AUTOREGISTER,
    "swiftdepautoregister": Annotation.AUTOREGISTER,
    "describesfeature": Annotation.DESCRIBES_FEATURE,
    "describestcafeature": Annotation.DESCRIBES_FEATURE,
    "containscomposition": Annotation.CONTAINS_COMPOSITION,
}

_SOURCERY_PREFIX = re.compile(r"^sourcery\s*:\s*", re.IGNORECASE)
_SEPARATOR = re.compile(r"[,\s]+")


@dataclass(frozen=True)
class ResolvedDeclaration:
    """A parsed declaration with its validated annotation set."""

    parsed: ParsedDeclaration
    annotations: FrozenSet[Annotation]
    position: int

    @property
    def declaration(self) -> Declaration:
        return self.parsed.declaration

    @property
    def name(self) -> str:
        return self.parsed.name

    def has(self, annotation: Annotation) -> bool:
        return annotation in self.annotations


def parse_markers(markers: Iterable[str]) -> FrozenSet[Annotation]:
    """Return recognized tags found in raw ``//`` marker lines; unknown tags are ignored."""
    found: Set[Annotation] = set()
    for raw in markers:
        text = raw.strip()
        if text.startswith("//"):
            text = text[2:]
        text = text.strip()
        text = _SOURCERY_PREFIX.sub("", text)
        for chunk in _SEPARATOR.split(text):
            # `key = value` annotations contribute their key only.
            tag = chunk.split("=", 1)[0].strip().lstrip("@")
            annotation = _ALIASES.get(tag.lower())
            if annotation is not None:
                found.add(annotation)
    return frozenset(found)


class AnnotationResolver:
    """Attaches typed annotations to declarations and validates their preconditions."""

    def __init__(self, config: GeneratorConfig | None = None) -> None:
        self.config = config or GeneratorConfig()
        self.logger = get_logger("annotations")

    def resolve_all(
        self, corpus: Corpus
    ) -> Tuple[List[ResolvedDeclaration], List[UnresolvableStrategy]]:
        resolved: List[ResolvedDeclaration] = []
        errors: List[UnresolvableStrategy] = []
        for position, parsed in enumerate(corpus):
            declaration, failures = self.resolve(parsed, corpus, position=position)
            resolved.append(declaration)
            errors.extend(failures)
        return resolved, errors

    def resolve(
        self,
        parsed: ParsedDeclaration,
        corpus: Corpus,
        *,
        position: Optional[int] = None,
    ) -> Tuple[ResolvedDeclaration, List[UnresolvableStrategy]]:
        annotations = set(parse_markers(parsed.markers))
        failures: List[UnresolvableStrategy] = []
        for annotation in sorted(annotations, key=lambda item: item.value):
            problem = self._precondition_problem(annotation, parsed.declaration, annotations, corpus)
            if problem is None:
                continue
            annotations.discard(annotation)
            failures.append(
                UnresolvableStrategy(parsed.name, problem, strategy=annotation.value)
            )
        if position is None:
            position = corpus.position(parsed.name) or 0
        if annotations:
            self.logger.debug(
                "%s annotated with %s",
                parsed.name,
                ", ".join(sorted(item.value for item in annotations)),
            )
        return ResolvedDeclaration(parsed, frozenset(annotations), position), failures

    def _precondition_problem(
        self,
        annotation: Annotation,
        declaration: Declaration,
        annotations: Set[Annotation],
        corpus: Corpus,
    ) -> Optional[str]:
        if annotation is Annotation.CONTAINS_COMPOSITION:
            if not self.config.is_enabled(Annotation.DESCRIBES_FEATURE.value):
                return None
            if Annotation.DESCRIBES_FEATURE not in annotations:
                return "containsComposition requires describesFeature on the same declaration"
            return None
        if not self.config.is_enabled(annotation.value):
            return None
        if annotation in (Annotation.AUTO_FAILING_MOCK, Annotation.AUTO_STUB):
            if not isinstance(declaration, Contract):
                return f"{annotation.value} applies to protocols only"
        elif annotation is Annotation.AUTO_MAPPABLE_FROM_DTO:
            if not isinstance(declaration, (ValueType, Enumeration)):
                return "autoMappableFromDTO applies to value types and enumerations only"
            if corpus.dto_counterpart(declaration.name, self.config.naming) is None:
                candidates = ", ".join(self.config.naming.dto_candidates(declaration.name))
                return f"no DTO counterpart found (looked for {candidates})"
        elif annotation is Annotation.DESCRIBES_FEATURE:
            if not isinstance(declaration, ValueType):
                return "describesFeature applies to value types only"
        elif annotation is Annotation.AUTOREGISTER:
            if isinstance(declaration, Enumeration):
                return "autoregister applies to protocols and concrete types only"
        return None


__all__ = ["Annotation", "AnnotationResolver", "ResolvedDeclaration", "parse_markers"]
