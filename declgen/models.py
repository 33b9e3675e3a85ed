"""Core data models shared across declgen components."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union


class TypeKind(str, Enum):
    """Shape tag of a type reference."""

    PRIMITIVE = "primitive"
    NAMED = "namedDeclaration"
    SEQUENCE = "sequenceOf"
    MAPPING = "mappingOf"
    OPTIONAL = "optionalOf"
    FUNCTION = "functionOf"


PRIMITIVE_NAMES = frozenset(
    {
        "String",
        "Character",
        "Substring",
        "Int",
        "Int8",
        "Int16",
        "Int32",
        "Int64",
        "UInt",
        "UInt8",
        "UInt16",
        "UInt32",
        "UInt64",
        "Double",
        "Float",
        "CGFloat",
        "Decimal",
        "Bool",
        "Date",
        "Data",
        "URL",
        "UUID",
        "Void",
    }
)


@dataclass(frozen=True)
class TypeRef:
    """Recursive reference to a type as written in a declaration.

    ``arguments`` holds the element of a sequence, the key and value of a
    mapping, the wrapped type of an optional, the generic arguments of a
    named type and the parameter types of a function type.

    ``qualifier`` is ``"some"`` or ``"any"`` for opaque and existential types.
    """

    kind: TypeKind
    name: str = ""
    arguments: Tuple["TypeRef", ...] = ()
    result: Optional["TypeRef"] = None
    is_async: bool = False
    is_throwing: bool = False
    qualifier: str = ""

    @classmethod
    def primitive(cls, name: str) -> "TypeRef":
        return cls(TypeKind.PRIMITIVE, name)

    @classmethod
    def named(cls, name: str, arguments: Tuple["TypeRef", ...] = ()) -> "TypeRef":
        return cls(TypeKind.NAMED, name, tuple(arguments))

    @classmethod
    def sequence(cls, element: "TypeRef") -> "TypeRef":
        return cls(TypeKind.SEQUENCE, "Array", (element,))

    @classmethod
    def mapping(cls, key: "TypeRef", value: "TypeRef") -> "TypeRef":
        return cls(TypeKind.MAPPING, "Dictionary", (key, value))

    @classmethod
    def optional(cls, wrapped: "TypeRef") -> "TypeRef":
        return cls(TypeKind.OPTIONAL, "Optional", (wrapped,))

    @classmethod
    def function(
        cls,
        parameters: Tuple["TypeRef", ...],
        result: "TypeRef",
        *,
        is_async: bool = False,
        is_throwing: bool = False,
    ) -> "TypeRef":
        return cls(
            TypeKind.FUNCTION,
            "",
            tuple(parameters),
            result=result,
            is_async=is_async,
            is_throwing=is_throwing,
        )

    @classmethod
    def void(cls) -> "TypeRef":
        return cls(TypeKind.PRIMITIVE, "Void")

    @classmethod
    def from_name(cls, name: str, arguments: Tuple["TypeRef", ...] = ()) -> "TypeRef":
        """Classify a plain type name as primitive or named."""
        if not arguments and name in PRIMITIVE_NAMES:
            return cls.primitive(name)
        return cls.named(name, arguments)

    @property
    def is_void(self) -> bool:
        return self.kind is TypeKind.PRIMITIVE and self.name == "Void"

    @property
    def is_optional(self) -> bool:
        return self.kind is TypeKind.OPTIONAL

    @property
    def wrapped(self) -> "TypeRef":
        if self.kind is not TypeKind.OPTIONAL:
            raise ValueError(f"{self.kind.value} has no wrapped type")
        return self.arguments[0]

    @property
    def element(self) -> "TypeRef":
        if self.kind is not TypeKind.SEQUENCE:
            raise ValueError(f"{self.kind.value} has no element type")
        return self.arguments[0]

    @property
    def key(self) -> "TypeRef":
        if self.kind is not TypeKind.MAPPING:
            raise ValueError(f"{self.kind.value} has no key type")
        return self.arguments[0]

    @property
    def value(self) -> "TypeRef":
        if self.kind is not TypeKind.MAPPING:
            raise ValueError(f"{self.kind.value} has no value type")
        return self.arguments[1]

    def erased(self) -> "TypeRef":
        """Return a copy with every ``some`` qualifier turned into ``any``.

        Opaque types cannot be stored, so recorded arguments use the existential form.
        """
        return replace(
            self,
            qualifier="any" if self.qualifier == "some" else self.qualifier,
            arguments=tuple(argument.erased() for argument in self.arguments),
            result=self.result.erased() if self.result is not None else None,
        )

    def referenced_names(self) -> FrozenSet[str]:
        """Return every named declaration reachable through this reference."""
        names = set()
        if self.kind is TypeKind.NAMED:
            names.add(self.name)
        for argument in self.arguments:
            names.update(argument.referenced_names())
        if self.result is not None:
            names.update(self.result.referenced_names())
        return frozenset(names)


@dataclass(frozen=True)
class Parameter:
    """A single parameter of a method or initializer.

    ``label`` is ``None`` when the argument label equals the name and
    ``"_"`` when the argument is unlabeled.
    """

    name: str
    type: TypeRef
    label: Optional[str] = None
    has_default: bool = False
    default: Optional[str] = None
    specifiers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Method:
    name: str
    parameters: Tuple[Parameter, ...] = ()
    is_async: bool = False
    is_throwing: bool = False
    return_type: TypeRef = field(default_factory=TypeRef.void)

    @property
    def returns_value(self) -> bool:
        return not self.return_type.is_void


@dataclass(frozen=True)
class Initializer:
    parameters: Tuple[Parameter, ...] = ()
    is_async: bool = False
    is_throwing: bool = False
    is_failable: bool = False


@dataclass(frozen=True)
class Field:
    """Stored property of a value type, or a property requirement of a contract."""

    name: str
    type: TypeRef
    has_default: bool = False
    default: Optional[str] = None
    is_mutable: bool = True


@dataclass(frozen=True)
class Contract:
    """Protocol-like declaration: signatures without implementation."""

    name: str
    methods: Tuple[Method, ...] = ()
    initializers: Tuple[Initializer, ...] = ()
    properties: Tuple[Field, ...] = ()
    inherited: Tuple[str, ...] = ()
    associated_types: Tuple[str, ...] = ()

    kind = "contract"


@dataclass(frozen=True)
class ValueType:
    """Struct/class-like declaration with stored fields."""

    name: str
    fields: Tuple[Field, ...] = ()
    conformances: Tuple[str, ...] = ()
    methods: Tuple[Method, ...] = ()
    initializers: Tuple[Initializer, ...] = ()
    keyword: str = "struct"
    nested: Tuple[str, ...] = ()

    kind = "value_type"

    def field_named(self, name: str) -> Optional[Field]:
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        return None


@dataclass(frozen=True)
class Enumeration:
    name: str
    cases: Tuple[str, ...] = ()
    conformances: Tuple[str, ...] = ()

    kind = "enumeration"


Declaration = Union[Contract, ValueType, Enumeration]


@dataclass(frozen=True)
class SourceUnit:
    """One unit of source text handed to the parser."""

    name: str
    text: str


@dataclass(frozen=True)
class ParsedDeclaration:
    """A declaration plus the raw marker lines found immediately above it."""

    declaration: Declaration
    markers: Tuple[str, ...] = ()
    unit: str = ""
    line: int = 0

    @property
    def name(self) -> str:
        return self.declaration.name


@dataclass(frozen=True)
class GeneratedArtifact:
    """Output fragments produced by one strategy for one declaration."""

    strategy: str
    declaration: str
    fragments: Tuple[str, ...]
    references: FrozenSet[str] = frozenset()
    unit: str = ""

    @property
    def sort_key(self) -> Tuple[str, str]:
        return (self.declaration, self.strategy)


__all__ = [
    "Contract",
    "Declaration",
    "Enumeration",
    "Field",
    "GeneratedArtifact",
    "Initializer",
    "Method",
    "Parameter",
    "ParsedDeclaration",
    "PRIMITIVE_NAMES",
    "SourceUnit",
    "TypeKind",
    "TypeRef",
    "ValueType",
]
