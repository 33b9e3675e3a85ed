"""Read-only declaration corpus shared by every generator in a run."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import NamingConvention
from .errors import MalformedDeclaration
from .models import Contract, Declaration, Enumeration, ParsedDeclaration, ValueType


class Corpus:
    """Declarations of a whole run, indexed by name and by declaration order.

    The corpus is built once after every source unit has been parsed and is
    never mutated afterwards; generators may read it from worker threads.
    """

    def __init__(self, parsed: Sequence[ParsedDeclaration]) -> None:
        self._entries: Tuple[ParsedDeclaration, ...] = tuple(parsed)
        self._by_name: Dict[str, ParsedDeclaration] = {}
        self._positions: Dict[str, int] = {}
        for position, entry in enumerate(self._entries):
            self._by_name[entry.name] = entry
            self._positions[entry.name] = position

    @classmethod
    def build(
        cls, parsed: Iterable[ParsedDeclaration]
    ) -> Tuple["Corpus", List[MalformedDeclaration]]:
        """Index ``parsed`` in order, rejecting duplicate declaration names."""
        accepted: List[ParsedDeclaration] = []
        seen: Dict[str, ParsedDeclaration] = {}
        errors: List[MalformedDeclaration] = []
        for entry in parsed:
            previous = seen.get(entry.name)
            if previous is not None:
                errors.append(
                    MalformedDeclaration(
                        entry.name,
                        f"duplicate declaration (first declared in {previous.unit}:{previous.line})",
                        unit=entry.unit,
                        line=entry.line,
                        markers=previous.markers + entry.markers,
                    )
                )
                continue
            seen[entry.name] = entry
            accepted.append(entry)
        return cls(accepted), errors

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[ParsedDeclaration]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, name: str) -> Optional[Declaration]:
        entry = self._by_name.get(name)
        return entry.declaration if entry is not None else None

    def entry(self, name: str) -> Optional[ParsedDeclaration]:
        return self._by_name.get(name)

    def position(self, name: str) -> Optional[int]:
        """Return the declaration order index of ``name`` across the whole run."""
        return self._positions.get(name)

    def contracts(self) -> List[Contract]:
        return [entry.declaration for entry in self._entries if isinstance(entry.declaration, Contract)]

    def value_types(self) -> List[ValueType]:
        return [entry.declaration for entry in self._entries if isinstance(entry.declaration, ValueType)]

    def enumeration(self, name: str) -> Optional[Enumeration]:
        declaration = self.get(name)
        return declaration if isinstance(declaration, Enumeration) else None

    def dto_counterpart(self, name: str, naming: NamingConvention) -> Optional[Declaration]:
        """Find the DTO-shaped declaration paired with domain type ``name``."""
        domain = self.get(name)
        if domain is None:
            return None
        for candidate in naming.dto_candidates(name):
            counterpart = self.get(candidate)
            if counterpart is not None and type(counterpart) is type(domain):
                return counterpart
        return None


__all__ = ["Corpus"]
