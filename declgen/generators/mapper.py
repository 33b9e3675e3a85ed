"""Generates ``init(dto:)`` converters from DTO value types to domain types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..annotations import Annotation, ResolvedDeclaration
from ..config import NamingConvention
from ..corpus import Corpus
from ..errors import IncompatibleFieldSet, UnresolvableStrategy
from ..logging import get_logger
from ..models import Declaration, Enumeration, GeneratedArtifact, TypeKind, TypeRef, ValueType
from ..rendering import swift_type
from .base import GenerationContext, Generator


@dataclass
class PairPlan:
    """Outcome of checking one domain/DTO pair."""

    target: str
    source: str
    assignments: List[Tuple[str, str]] = field(default_factory=list)
    cases: List[str] = field(default_factory=list)
    offending: List[str] = field(default_factory=list)
    details: List[str] = field(default_factory=list)
    dependencies: Set[str] = field(default_factory=set)
    is_enumeration: bool = False

    @property
    def ok(self) -> bool:
        return not self.offending


class MappingPlanner:
    """Checks field compatibility of domain/DTO pairs and builds conversion expressions.

    Plans are memoized per domain type. A pair referenced while its own plan
    is still being built is assumed mappable so recursive types terminate.
    """

    def __init__(self, corpus: Corpus, naming: NamingConvention) -> None:
        self.corpus = corpus
        self.naming = naming
        self._plans: Dict[str, PairPlan] = {}
        self._in_progress: Set[str] = set()

    def plan(self, target_name: str) -> Optional[PairPlan]:
        if target_name in self._plans:
            return self._plans[target_name]
        target = self.corpus.get(target_name)
        source = self.corpus.dto_counterpart(target_name, self.naming)
        if target is None or source is None:
            return None
        self._in_progress.add(target_name)
        try:
            if isinstance(target, Enumeration) and isinstance(source, Enumeration):
                plan = self._plan_enumeration(target, source)
            elif isinstance(target, ValueType) and isinstance(source, ValueType):
                plan = self._plan_value_type(target, source)
            else:
                return None
        finally:
            self._in_progress.discard(target_name)
        self._plans[target_name] = plan
        return plan

    def _plan_enumeration(self, target: Enumeration, source: Enumeration) -> PairPlan:
        plan = PairPlan(target=target.name, source=source.name, is_enumeration=True)
        known = set(target.cases)
        for case in source.cases:
            if case in known:
                plan.cases.append(case)
            else:
                plan.offending.append(case)
                plan.details.append(f"{case}: no matching case in {target.name}")
        return plan

    def _plan_value_type(self, target: ValueType, source: ValueType) -> PairPlan:
        plan = PairPlan(target=target.name, source=source.name)
        source_fields = {item.name: item for item in source.fields}
        for target_field in target.fields:
            source_field = source_fields.get(target_field.name)
            if source_field is None:
                if target_field.has_default:
                    if target_field.is_mutable:
                        plan.assignments.append((target_field.name, target_field.default or "nil"))
                    continue
                plan.offending.append(target_field.name)
                plan.details.append(f"{target_field.name}: missing in {source.name}")
                continue
            if target_field.has_default and not target_field.is_mutable:
                plan.offending.append(target_field.name)
                plan.details.append(f"{target_field.name}: constant with an initial value")
                continue
            expression = self.convert(
                f"dto.{target_field.name}", source_field.type, target_field.type, plan.dependencies
            )
            if expression is None:
                plan.offending.append(target_field.name)
                plan.details.append(
                    f"{target_field.name}: {swift_type(source_field.type)} cannot be mapped to "
                    f"{swift_type(target_field.type)}"
                )
                continue
            plan.assignments.append((target_field.name, expression))
        target_names = {item.name for item in target.fields}
        for source_field in source.fields:
            if source_field.name not in target_names:
                plan.offending.append(source_field.name)
                plan.details.append(f"{source_field.name}: not present in {target.name}")
        return plan

    def convert(
        self, expression: str, source: TypeRef, target: TypeRef, dependencies: Set[str]
    ) -> Optional[str]:
        """Return a Swift expression turning ``expression`` of ``source`` into ``target``."""
        if source == target:
            return expression
        if target.kind is TypeKind.OPTIONAL:
            if source.kind is TypeKind.OPTIONAL:
                return self._map_elements(expression, source.wrapped, target.wrapped, dependencies)
            # a required source may fill an optional target
            return self.convert(expression, source, target.wrapped, dependencies)
        if source.kind is not target.kind:
            return None
        if target.kind is TypeKind.SEQUENCE:
            return self._map_elements(expression, source.element, target.element, dependencies)
        if target.kind is TypeKind.MAPPING:
            if source.key != target.key:
                return None
            inner = self.convert("$0", source.value, target.value, dependencies)
            if inner is None:
                return None
            if inner == "$0":
                return expression
            return f"{expression}.mapValues {{ {inner} }}"
        if target.kind is TypeKind.NAMED:
            return self._convert_named(expression, source, target, dependencies)
        return None

    def _map_elements(
        self, expression: str, source: TypeRef, target: TypeRef, dependencies: Set[str]
    ) -> Optional[str]:
        inner = self.convert("$0", source, target, dependencies)
        if inner is None:
            return None
        if inner == "$0":
            return expression
        return f"{expression}.map {{ {inner} }}"

    def _convert_named(
        self, expression: str, source: TypeRef, target: TypeRef, dependencies: Set[str]
    ) -> Optional[str]:
        if source.arguments or target.arguments:
            return None
        if source.name not in self.naming.dto_candidates(target.name):
            return None
        if self.corpus.dto_counterpart(target.name, self.naming) is None:
            return None
        declared = self.corpus.get(target.name)
        # only a struct gets a memberwise init(dto:) from an extension
        if isinstance(declared, ValueType) and declared.keyword != "struct":
            return None
        if target.name not in self._in_progress:
            nested = self.plan(target.name)
            if nested is None or not nested.ok:
                return None
        dependencies.add(target.name)
        return f"{target.name}(dto: {expression})"


class AutoMappableGenerator(Generator):
    """Emits ``extension X { init(dto: XDTO) }`` for annotated domain types."""

    strategy = Annotation.AUTO_MAPPABLE_FROM_DTO.value
    output_unit = "AutoMappableFromDTO.generated.swift"

    def __init__(self) -> None:
        self.logger = get_logger("generators.mapper")

    def generate(
        self, resolved: ResolvedDeclaration, context: GenerationContext
    ) -> List[GeneratedArtifact]:
        declaration = resolved.declaration
        self._check_target(declaration)
        planner = MappingPlanner(context.corpus, context.config.naming)
        plan = planner.plan(declaration.name)
        if plan is None:
            raise UnresolvableStrategy(
                declaration.name,
                "no DTO counterpart of the same kind found",
                strategy=self.strategy,
            )
        if not plan.ok:
            raise IncompatibleFieldSet(
                declaration.name, plan.offending, details=plan.details, strategy=self.strategy
            )

        artifacts = [self._render(plan, context)]
        # unannotated nested pairs have no artifact of their own
        pending = sorted(plan.dependencies)
        emitted = {plan.target}
        while pending:
            name = pending.pop(0)
            if name in emitted:
                continue
            emitted.add(name)
            if Annotation.AUTO_MAPPABLE_FROM_DTO in context.annotations_for(name):
                continue
            nested = planner.plan(name)
            if nested is None:
                continue
            self.logger.debug("Emitting converter for unannotated pair %s <- %s", nested.target, nested.source)
            artifacts.append(self._render(nested, context))
            pending.extend(sorted(nested.dependencies - emitted))
        return artifacts

    def _check_target(self, declaration: Optional[Declaration]) -> None:
        if isinstance(declaration, ValueType) and declaration.keyword != "struct":
            raise UnresolvableStrategy(
                declaration.name,
                f"an extension initializer cannot assign the stored properties of a {declaration.keyword}",
                strategy=self.strategy,
            )

    def _render(self, plan: PairPlan, context: GenerationContext) -> GeneratedArtifact:
        if plan.is_enumeration:
            text = context.renderer.render(
                "mapper_enum.swift.j2", target=plan.target, source=plan.source, cases=plan.cases
            )
        else:
            text = context.renderer.render(
                "mapper.swift.j2",
                target=plan.target,
                source=plan.source,
                assignments=[
                    {"name": name, "expression": expression} for name, expression in plan.assignments
                ],
            )
        return self.artifact(plan.target, [text], sorted(plan.dependencies | {plan.source}))


__all__ = ["AutoMappableGenerator", "MappingPlanner", "PairPlan"]
