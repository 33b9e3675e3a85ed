"""Tests for declgen.emitter."""

from __future__ import annotations

from declgen.emitter import Emitter, order_artifacts
from declgen.generators.base import OutputUnit
from declgen.models import GeneratedArtifact


def _artifact(declaration: str, *references: str, unit: str = "Out.swift", strategy: str = "autoStub") -> GeneratedArtifact:
    return GeneratedArtifact(
        strategy=strategy,
        declaration=declaration,
        fragments=(f"// {declaration}",),
        references=frozenset(references),
        unit=unit,
    )


def test_order_places_referenced_declarations_first() -> None:
    artifacts = [_artifact("Alpha", "Zulu"), _artifact("Mike"), _artifact("Zulu")]

    ordered = order_artifacts(artifacts)

    assert [artifact.declaration for artifact in ordered] == ["Mike", "Zulu", "Alpha"]


def test_order_is_independent_of_input_order() -> None:
    artifacts = [_artifact("B", "A"), _artifact("A"), _artifact("C", "B"), _artifact("D")]

    forward = order_artifacts(artifacts)
    backward = order_artifacts(list(reversed(artifacts)))

    assert forward == backward
    assert [artifact.declaration for artifact in forward] == ["A", "B", "C", "D"]


def test_order_breaks_cycles_by_name() -> None:
    artifacts = [_artifact("Second", "First"), _artifact("First", "Second")]

    ordered = order_artifacts(artifacts)

    assert [artifact.declaration for artifact in ordered] == ["First", "Second"]


def test_emit_renders_header_imports_prelude_and_fragments() -> None:
    emitter = Emitter(header="// header")
    units = {
        "Mocks.swift": OutputUnit(name="Mocks.swift", imports=("Foundation", "Dependencies"), prelude="enum Shared {}\n"),
    }
    artifacts = [
        _artifact("Beta", unit="Mocks.swift"),
        _artifact("Alpha", unit="Mocks.swift"),
        _artifact("Gamma", unit="Other.swift"),
    ]

    outputs = emitter.emit(artifacts, units)

    assert list(outputs) == ["Mocks.swift", "Other.swift"]
    assert outputs["Mocks.swift"] == (
        "// header\n\n"
        "import Foundation\n"
        "import Dependencies\n\n"
        "enum Shared {}\n\n"
        "// Alpha\n\n"
        "// Beta\n"
    )
    assert outputs["Other.swift"] == "// header\n\nimport Foundation\n\n// Gamma\n"


def test_emit_without_artifacts_produces_nothing() -> None:
    assert Emitter().emit([]) == {}
