"""Failing mock and fixture-backed stub generators for contracts."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..annotations import Annotation, ResolvedDeclaration
from ..corpus import Corpus
from ..errors import UnresolvableStrategy
from ..logging import get_logger
from ..models import Contract, Field, GeneratedArtifact, Initializer, Method, TypeKind, TypeRef
from ..rendering import (
    initializer_signature,
    method_display_name,
    method_signature,
    swift_type,
    upper_camel,
)
from .base import GenerationContext, Generator


def contract_members(
    contract: Contract, corpus: Corpus
) -> Tuple[List[Method], List[Initializer], List[Field]]:
    """Return the members of ``contract`` plus those inherited from contracts in the corpus."""
    methods: List[Method] = []
    initializers: List[Initializer] = []
    properties: List[Field] = []
    seen_methods: Set[str] = set()
    seen_properties: Set[str] = set()
    visited: Set[str] = set()

    def _collect(current: Contract) -> None:
        if current.name in visited:
            return
        visited.add(current.name)
        for method in current.methods:
            key = method_signature(method)
            if key not in seen_methods:
                seen_methods.add(key)
                methods.append(method)
        for initializer in current.initializers:
            if initializer not in initializers:
                initializers.append(initializer)
        for prop in current.properties:
            if prop.name not in seen_properties:
                seen_properties.add(prop.name)
                properties.append(prop)
        for parent_name in current.inherited:
            parent = corpus.get(parent_name)
            if isinstance(parent, Contract):
                _collect(parent)

    _collect(contract)
    return methods, initializers, properties


def storage_names(methods: Sequence[Method]) -> List[str]:
    """Return one unique, identifier-safe storage prefix per method, in order."""
    counts = Counter(method.name for method in methods)
    used: Set[str] = set()
    names: List[str] = []
    for method in methods:
        base = method.name.strip("`")
        if counts[method.name] > 1:
            suffix = "".join(
                upper_camel((parameter.label if parameter.label not in (None, "_") else parameter.name).strip("`"))
                for parameter in method.parameters
            )
            base = f"{base}{suffix}"
        candidate = base
        index = 2
        while candidate in used:
            candidate = f"{base}{index}"
            index += 1
        used.add(candidate)
        names.append(candidate)
    return names


class _ContractGenerator(Generator):
    suffix_attribute = ""

    def _contract(self, resolved: ResolvedDeclaration) -> Contract:
        declaration = resolved.declaration
        if not isinstance(declaration, Contract):
            raise UnresolvableStrategy(
                resolved.name,
                f"{self.strategy} applies to protocols only",
                strategy=self.strategy,
            )
        if declaration.associated_types:
            raise UnresolvableStrategy(
                resolved.name,
                "protocols with associated types ("
                + ", ".join(declaration.associated_types)
                + ") cannot be mirrored by a concrete type",
                strategy=self.strategy,
            )
        return declaration

    def _type_name(self, contract: Contract, context: GenerationContext) -> str:
        naming = context.config.naming
        suffix = getattr(naming, self.suffix_attribute)
        return f"{naming.contract_base(contract.name)}{suffix}"

    @staticmethod
    def _references(methods: Sequence[Method], properties: Sequence[Field], initializers: Sequence[Initializer]) -> Set[str]:
        names: Set[str] = set()
        for method in methods:
            names.update(method.return_type.referenced_names())
            for parameter in method.parameters:
                names.update(parameter.type.referenced_names())
        for initializer in initializers:
            for parameter in initializer.parameters:
                names.update(parameter.type.referenced_names())
        for prop in properties:
            names.update(prop.type.referenced_names())
        return names


class AutoFailingMockGenerator(_ContractGenerator):
    """Emits a mock whose throwing requirements fail with an injectable error.

    Non-throwing requirements have no failure channel; they abort through
    ``fatalError`` and are flagged in the output and the log.
    """

    strategy = Annotation.AUTO_FAILING_MOCK.value
    output_unit = "AutoFailingMock.generated.swift"
    suffix_attribute = "mock_suffix"

    def __init__(self) -> None:
        self.logger = get_logger("generators.failing_mock")

    def prelude(self, context: GenerationContext) -> Optional[str]:
        return context.renderer.render("autofailing_prelude.swift.j2")

    def generate(
        self, resolved: ResolvedDeclaration, context: GenerationContext
    ) -> List[GeneratedArtifact]:
        contract = self._contract(resolved)
        methods, initializers, properties = contract_members(contract, context.corpus)
        mock_name = self._type_name(contract, context)

        method_views = []
        for method in methods:
            aborts = not method.is_throwing
            if aborts:
                self.logger.warning(
                    "%s.%s is not throwing; the failing mock aborts instead of throwing",
                    contract.name,
                    method_display_name(method),
                )
            method_views.append(
                {
                    "signature": method_signature(method),
                    "display": method_display_name(method),
                    "aborts": aborts,
                }
            )
        property_views = [
            {"name": prop.name, "type": swift_type(prop.type), "settable": prop.is_mutable}
            for prop in properties
        ]
        initializer_views = [{"signature": initializer_signature(item)} for item in initializers]

        text = context.renderer.render(
            "autofailing_mock.swift.j2",
            mock_name=mock_name,
            contract_name=contract.name,
            methods=method_views,
            properties=property_views,
            initializers=initializer_views,
        )
        references = self._references(methods, properties, initializers) | {contract.name}
        return [self.artifact(contract.name, [text], sorted(references))]


class AutoStubGenerator(_ContractGenerator):
    """Emits a stub returning configurable fixture values and recording calls."""

    strategy = Annotation.AUTO_STUB.value
    output_unit = "AutoStub.generated.swift"
    suffix_attribute = "stub_suffix"

    def __init__(self) -> None:
        self.logger = get_logger("generators.stub")

    def generate(
        self, resolved: ResolvedDeclaration, context: GenerationContext
    ) -> List[GeneratedArtifact]:
        contract = self._contract(resolved)
        methods, initializers, properties = contract_members(contract, context.corpus)
        fixtures = context.fixtures

        property_views = [
            {
                "name": prop.name,
                "type": swift_type(prop.type),
                "default": fixtures.default_for(
                    prop.type, declaration=contract.name, member=prop.name, strategy=self.strategy
                ),
            }
            for prop in properties
        ]

        method_views: List[Dict[str, object]] = []
        for method, storage in zip(methods, storage_names(methods)):
            view: Dict[str, object] = {
                "signature": method_signature(method),
                "storage": storage,
                "throws": method.is_throwing,
                "result_type": None,
                "default": None,
                "received": [],
            }
            if method.returns_value:
                view["result_type"] = swift_type(method.return_type.erased())
                view["default"] = fixtures.default_for(
                    method.return_type,
                    declaration=contract.name,
                    member=method_display_name(method),
                    strategy=self.strategy,
                )
            view["received"] = [
                {
                    "name": f"{storage}Received{upper_camel(parameter.name.strip('`'))}",
                    "type": swift_type(TypeRef.optional(parameter.type.erased())),
                    "parameter": parameter.name,
                }
                for parameter in method.parameters
                # non-escaping closures cannot be stored
                if parameter.type.kind is not TypeKind.FUNCTION
            ]
            method_views.append(view)

        initializer_views = [{"signature": initializer_signature(item)} for item in initializers]
        text = context.renderer.render(
            "autostub.swift.j2",
            stub_name=self._type_name(contract, context),
            contract_name=contract.name,
            methods=method_views,
            properties=property_views,
            initializers=initializer_views,
        )
        self.logger.debug("Generated stub for %s with %d methods", contract.name, len(methods))
        references = self._references(methods, properties, initializers) | {contract.name}
        return [self.artifact(contract.name, [text], sorted(references))]


__all__ = ["AutoFailingMockGenerator", "AutoStubGenerator", "contract_members", "storage_names"]
