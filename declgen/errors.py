"""Error taxonomy surfaced to the generation driver."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple


class GenerationError(Exception):
    """Base class for per-declaration and corpus-wide generation failures."""

    def __init__(
        self,
        declaration: str,
        message: str,
        *,
        member: Optional[str] = None,
        strategy: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.declaration = declaration
        self.member = member
        self.strategy = strategy
        self.message = message

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    @property
    def sort_key(self) -> Tuple[str, str, str, str]:
        return (self.declaration, self.strategy or "", self.kind, self.member or "")

    def with_strategy(self, strategy: str) -> "GenerationError":
        if self.strategy is None:
            self.strategy = strategy
        return self

    def __str__(self) -> str:
        location = self.declaration
        if self.member:
            location = f"{location}.{self.member}"
        prefix = f"{self.kind} [{self.strategy}]" if self.strategy else self.kind
        return f"{prefix} {location}: {self.message}"


class MalformedDeclaration(GenerationError):
    """A declaration or one of its members could not be parsed or classified."""

    def __init__(
        self,
        declaration: str,
        message: str,
        *,
        member: Optional[str] = None,
        unit: Optional[str] = None,
        line: Optional[int] = None,
        markers: Sequence[str] = (),
    ) -> None:
        super().__init__(declaration, message, member=member)
        self.unit = unit
        self.line = line
        self.markers = tuple(markers)

    def __str__(self) -> str:
        base = super().__str__()
        if self.unit:
            where = f"{self.unit}:{self.line}" if self.line else self.unit
            return f"{base} ({where})"
        return base


class UnresolvableStrategy(GenerationError):
    """A strategy's preconditions do not hold for the annotated declaration."""


class MissingFixture(GenerationError):
    """No default value is known for a type a stub has to return."""

    def __init__(
        self,
        declaration: str,
        type_name: str,
        *,
        member: Optional[str] = None,
        strategy: Optional[str] = None,
    ) -> None:
        super().__init__(
            declaration,
            f"no fixture known for type '{type_name}'; configure one under 'fixtures'",
            member=member,
            strategy=strategy,
        )
        self.type_name = type_name


class IncompatibleFieldSet(GenerationError):
    """Source and target value types cannot be mapped field by field."""

    def __init__(
        self,
        declaration: str,
        fields: Iterable[str],
        *,
        details: Sequence[str] = (),
        strategy: Optional[str] = None,
    ) -> None:
        self.fields = tuple(fields)
        self.details = tuple(details)
        message = "unmatched fields: " + ", ".join(self.fields)
        if self.details:
            message += " (" + "; ".join(self.details) + ")"
        super().__init__(declaration, message, strategy=strategy)


class AmbiguousRegistration(GenerationError):
    """More than one annotated type implements the same contract or claims the same key."""

    def __init__(
        self,
        declaration: str,
        candidates: Iterable[str],
        *,
        key: Optional[str] = None,
        strategy: Optional[str] = None,
    ) -> None:
        self.candidates = tuple(sorted(candidates))
        self.key = key
        if key is None:
            message = "multiple implementations: " + ", ".join(self.candidates)
        else:
            message = f"registration key '{key}' is claimed by: " + ", ".join(self.candidates)
        super().__init__(declaration, message, strategy=strategy)


class UnregisteredContract(GenerationError):
    """An annotated contract has no annotated implementation."""

    def __init__(self, declaration: str, *, strategy: Optional[str] = None) -> None:
        super().__init__(
            declaration,
            "no annotated type implements every member of this contract",
            strategy=strategy,
        )


__all__ = [
    "AmbiguousRegistration",
    "GenerationError",
    "IncompatibleFieldSet",
    "MalformedDeclaration",
    "MissingFixture",
    "UnregisteredContract",
    "UnresolvableStrategy",
]
