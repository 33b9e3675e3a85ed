"""Builds the dependency registration table for ``autoregister`` declarations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..annotations import Annotation, ResolvedDeclaration
from ..errors import AmbiguousRegistration, GenerationError, UnregisteredContract
from ..logging import get_logger
from ..models import Contract, Field, GeneratedArtifact, Method, Parameter, TypeKind, ValueType
from ..rendering import lower_camel
from .base import CorpusGenerator, GenerationContext
from .mocks import contract_members

REGISTRY_NAME = "DependencyValues"


@dataclass(frozen=True)
class RegistrationEntry:
    key: str
    contract: str
    implementation: str


def _external_label(parameter: Parameter) -> str:
    return parameter.label if parameter.label is not None else parameter.name


def _same_shape(required: Method, candidate: Method) -> bool:
    if required.name != candidate.name or len(required.parameters) != len(candidate.parameters):
        return False
    if (required.is_async, required.is_throwing) != (candidate.is_async, candidate.is_throwing):
        return False
    if required.return_type != candidate.return_type:
        return False
    return all(
        _external_label(left) == _external_label(right) and left.type == right.type
        for left, right in zip(required.parameters, candidate.parameters)
    )


def _closure_matches(required: Method, candidate: Field) -> bool:
    closure = candidate.type
    if candidate.name != required.name or closure.kind is not TypeKind.FUNCTION:
        return False
    return (
        closure.arguments == tuple(parameter.type for parameter in required.parameters)
        and closure.result == required.return_type
        and closure.is_async == required.is_async
        and closure.is_throwing == required.is_throwing
    )


def implements(candidate: ValueType, methods: Sequence[Method], properties: Sequence[Field]) -> bool:
    """Return True when ``candidate`` structurally provides every listed member."""
    for method in methods:
        if any(_same_shape(method, own) for own in candidate.methods):
            continue
        if any(_closure_matches(method, own) for own in candidate.fields):
            continue
        return False
    for requirement in properties:
        own = candidate.field_named(requirement.name)
        if own is None or own.type != requirement.type:
            return False
        if requirement.is_mutable and not own.is_mutable:
            return False
    return True


class RegistrationGenerator(CorpusGenerator):
    """Pairs annotated contracts with their single annotated implementation."""

    strategy = Annotation.AUTOREGISTER.value
    output_unit = "DependencyRegistration.generated.swift"
    imports = ("Foundation", "Dependencies")

    def __init__(self) -> None:
        self.logger = get_logger("generators.registration")

    def generate_corpus(
        self, declarations: Sequence[ResolvedDeclaration], context: GenerationContext
    ) -> Tuple[List[GeneratedArtifact], List[GenerationError]]:
        ordered = sorted(declarations, key=lambda item: item.position)
        contracts = [item.declaration for item in ordered if isinstance(item.declaration, Contract)]
        concrete = [item.declaration for item in ordered if isinstance(item.declaration, ValueType)]

        entries: List[RegistrationEntry] = []
        errors: List[GenerationError] = []
        claimed = set()
        for contract in contracts:
            # ambiguous candidates stay claimed so they are not registered on their own
            candidates, error = self._register_contract(contract, concrete, context, entries)
            claimed.update(candidates)
            if error is not None:
                errors.append(error)

        for value_type in concrete:
            if value_type.name in claimed:
                continue
            entries.append(
                RegistrationEntry(
                    key=lower_camel(value_type.name),
                    contract=value_type.name,
                    implementation=value_type.name,
                )
            )

        entries, collisions = self._drop_key_collisions(entries)
        errors.extend(collisions)

        if not entries:
            return [], errors
        entries.sort(key=lambda entry: (entry.key, entry.implementation))
        text = context.renderer.render("registration.swift.j2", entries=entries)
        references = sorted({entry.implementation for entry in entries} | {entry.contract for entry in entries})
        self.logger.debug("Registered %d dependencies", len(entries))
        return [self.artifact(REGISTRY_NAME, [text], references)], errors

    def _drop_key_collisions(
        self, entries: Sequence[RegistrationEntry]
    ) -> Tuple[List[RegistrationEntry], List[GenerationError]]:
        by_key: Dict[str, List[RegistrationEntry]] = {}
        for entry in entries:
            by_key.setdefault(entry.key, []).append(entry)
        kept: List[RegistrationEntry] = []
        errors: List[GenerationError] = []
        for key, claimants in by_key.items():
            if len(claimants) == 1:
                kept.append(claimants[0])
                continue
            owners = sorted(
                {entry.contract for entry in claimants}
                | {entry.implementation for entry in claimants}
            )
            self.logger.warning("Registration key %s is claimed by %s", key, ", ".join(owners))
            errors.append(
                AmbiguousRegistration(
                    min(entry.contract for entry in claimants),
                    owners,
                    key=key,
                    strategy=self.strategy,
                )
            )
        return kept, errors

    def _register_contract(
        self,
        contract: Contract,
        concrete: Sequence[ValueType],
        context: GenerationContext,
        entries: List[RegistrationEntry],
    ) -> Tuple[List[str], Optional[GenerationError]]:
        methods, _, properties = contract_members(contract, context.corpus)
        candidates = [item for item in concrete if implements(item, methods, properties)]
        if not candidates:
            return [], UnregisteredContract(contract.name, strategy=self.strategy)
        key = lower_camel(context.config.naming.contract_base(contract.name))
        if len(candidates) == 1:
            entries.append(RegistrationEntry(key, contract.name, candidates[0].name))
            return [candidates[0].name], None
        names = [candidate.name for candidate in candidates]
        if context.config.fail_on_ambiguous_registration:
            return names, AmbiguousRegistration(contract.name, names, strategy=self.strategy)
        self.logger.warning(
            "%s has %d implementations (%s); registering each under its own key",
            contract.name,
            len(names),
            ", ".join(sorted(names)),
        )
        for name in names:
            entries.append(RegistrationEntry(lower_camel(name), contract.name, name))
        return names, None


__all__ = ["RegistrationEntry", "RegistrationGenerator", "implements"]
