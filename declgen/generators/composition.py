"""Reducer scaffolding for structs annotated with ``describesFeature``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..annotations import Annotation, ResolvedDeclaration
from ..errors import UnresolvableStrategy
from ..logging import get_logger
from ..models import Field, GeneratedArtifact, TypeKind, TypeRef, ValueType
from ..rendering import swift_type
from .base import GenerationContext, Generator

_STATE_SUFFIX = ".State"


@dataclass(frozen=True)
class ChildFeature:
    """A field wired into the parent reducer."""

    name: str
    feature: str
    optional: bool


def child_state_owner(type_ref: TypeRef) -> Optional[str]:
    """Return ``X`` for a field typed ``X.State`` or ``X.State?``."""
    if type_ref.kind is TypeKind.OPTIONAL:
        type_ref = type_ref.wrapped
    if type_ref.kind is not TypeKind.NAMED or type_ref.arguments:
        return None
    if not type_ref.name.endswith(_STATE_SUFFIX):
        return None
    owner = type_ref.name[: -len(_STATE_SUFFIX)]
    return owner or None


def field_declaration(item: Field) -> str:
    keyword = "var" if item.is_mutable else "let"
    text = f"{keyword} {item.name}: {swift_type(item.type)}"
    if item.has_default and item.default is not None:
        text += f" = {item.default}"
    return text


class CompositionGenerator(Generator):
    """Emits ``struct <Name>Reducer: Reducer`` with State, Action and body.

    With ``containsComposition`` every ``X.State`` field whose ``X`` is a
    feature declared earlier is scoped into the parent reducer; optional
    children are attached with ``ifLet``.
    """

    strategy = Annotation.DESCRIBES_FEATURE.value
    output_unit = "Features.generated.swift"
    imports = ("ComposableArchitecture",)

    def __init__(self) -> None:
        self.logger = get_logger("generators.composition")

    def feature_name(self, declaration_name: str, context: GenerationContext) -> str:
        return f"{declaration_name}{context.config.naming.feature_suffix}"

    def generate(
        self, resolved: ResolvedDeclaration, context: GenerationContext
    ) -> List[GeneratedArtifact]:
        declaration = resolved.declaration
        if not isinstance(declaration, ValueType):
            raise UnresolvableStrategy(
                resolved.name, "describesFeature applies to value types only", strategy=self.strategy
            )

        children: List[ChildFeature] = []
        references = set()
        if resolved.has(Annotation.CONTAINS_COMPOSITION):
            for item in declaration.fields:
                owner = child_state_owner(item.type)
                if owner is None:
                    continue
                feature, source = self._resolve_child(owner, item, resolved, context)
                references.add(source)
                children.append(ChildFeature(item.name, feature, item.type.is_optional))

        conformances = ", ".join(declaration.conformances)
        action_conformance = ": Equatable" if "Equatable" in declaration.conformances else ""
        text = context.renderer.render(
            "composition.swift.j2",
            name=self.feature_name(declaration.name, context),
            state_conformance=f": {conformances}" if conformances else "",
            action_conformance=action_conformance,
            fields=[field_declaration(item) for item in declaration.fields],
            children=children,
        )
        self.logger.debug(
            "Feature %s wires %d child feature(s)", declaration.name, len(children)
        )
        return [self.artifact(declaration.name, [text], sorted(references))]

    def _resolve_child(
        self,
        owner: str,
        item: Field,
        resolved: ResolvedDeclaration,
        context: GenerationContext,
    ) -> Tuple[str, str]:
        """Return the child reducer name and the declaration it comes from."""
        corpus = context.corpus
        hand_written = corpus.get(owner)
        if isinstance(hand_written, ValueType) and {"State", "Action"} <= set(hand_written.nested):
            source = owner
        else:
            source = self._generated_source(owner, context)
            if source is None:
                raise UnresolvableStrategy(
                    resolved.name,
                    f"'{owner}' is neither a feature with nested State and Action "
                    "nor a describesFeature declaration",
                    member=item.name,
                    strategy=self.strategy,
                )
        position = corpus.position(source)
        if position is None or position >= resolved.position:
            raise UnresolvableStrategy(
                resolved.name,
                f"child feature '{owner}' must be declared before {resolved.name}",
                member=item.name,
                strategy=self.strategy,
            )
        return owner, source

    def _generated_source(self, owner: str, context: GenerationContext) -> Optional[str]:
        for entry in context.corpus:
            if self.feature_name(entry.name, context) != owner:
                continue
            if Annotation.DESCRIBES_FEATURE in context.annotations_for(entry.name):
                return entry.name
        return None


__all__ = ["ChildFeature", "CompositionGenerator", "child_state_owner", "field_declaration"]
