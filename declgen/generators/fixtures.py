"""Default value expressions used to seed stub storage."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from ..config import FixtureProvider, GeneratorConfig
from ..corpus import Corpus
from ..errors import MissingFixture
from ..models import TypeKind, TypeRef
from ..rendering import swift_type

_PRIMITIVE_DEFAULTS: Dict[str, str] = {
    "String": '""',
    "Substring": '""',
    "Character": '" "',
    "Int": "0",
    "Int8": "0",
    "Int16": "0",
    "Int32": "0",
    "Int64": "0",
    "UInt": "0",
    "UInt8": "0",
    "UInt16": "0",
    "UInt32": "0",
    "UInt64": "0",
    "Double": "0",
    "Float": "0",
    "CGFloat": "0",
    "Decimal": "0",
    "Bool": "false",
    "Date": "Date(timeIntervalSince1970: 0)",
    "Data": "Data()",
    "URL": 'URL(string: "https://example.com")!',
    "UUID": 'UUID(uuidString: "00000000-0000-0000-0000-000000000000")!',
    "Void": "()",
}

_COLLECTION_NAMES = {"Set", "Swift.Set", "IdentifiedArrayOf", "IdentifiedArray"}


class Fixtures:
    """Resolves a default value expression for a type reference.

    Lookup order: the caller supplied provider, the configured ``fixtures``
    table keyed by the rendered Swift type, then the built-in structural
    rules. Types none of them know raise :class:`MissingFixture`.
    """

    def __init__(
        self,
        corpus: Corpus | None = None,
        *,
        overrides: Mapping[str, str] | None = None,
        provider: FixtureProvider | None = None,
    ) -> None:
        self._corpus = corpus
        self._overrides = dict(overrides or {})
        self._provider = provider

    @classmethod
    def from_config(cls, config: GeneratorConfig, corpus: Corpus | None = None) -> "Fixtures":
        return cls(corpus, overrides=config.fixtures, provider=config.fixture_provider)

    def default_for(
        self,
        type_ref: TypeRef,
        *,
        declaration: str,
        member: Optional[str] = None,
        strategy: Optional[str] = None,
    ) -> str:
        value = self.lookup(type_ref)
        if value is None:
            raise MissingFixture(
                declaration,
                swift_type(type_ref),
                member=member,
                strategy=strategy,
            )
        return value

    def lookup(self, type_ref: TypeRef) -> Optional[str]:
        if self._provider is not None:
            provided = self._provider(type_ref)
            if provided is not None:
                return provided
        override = self._overrides.get(swift_type(type_ref))
        if override is not None:
            return override
        return self._builtin(type_ref)

    def _builtin(self, type_ref: TypeRef) -> Optional[str]:
        kind = type_ref.kind
        if kind is TypeKind.OPTIONAL:
            return "nil"
        if kind is TypeKind.SEQUENCE:
            return "[]"
        if kind is TypeKind.MAPPING:
            return "[:]"
        if kind is TypeKind.PRIMITIVE:
            return _PRIMITIVE_DEFAULTS.get(type_ref.name)
        if kind is TypeKind.NAMED:
            if type_ref.name in _COLLECTION_NAMES:
                return "[]"
            if self._corpus is not None:
                enumeration = self._corpus.enumeration(type_ref.name)
                if enumeration is not None and enumeration.cases:
                    return f".{enumeration.cases[0]}"
        return None


__all__ = ["Fixtures"]
