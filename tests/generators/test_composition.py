"""Tests for declgen.generators.composition."""

from __future__ import annotations

import pytest

from declgen.config import GeneratorConfig, NamingConvention
from declgen.errors import UnresolvableStrategy
from declgen.generators.composition import CompositionGenerator
from tests._fixtures.source_builder import build_context, resolved_named
from tests._fixtures.swift_sources import FEATURE_SOURCE, swift


def test_composed_feature_wires_required_and_optional_children() -> None:
    context, resolved, _ = build_context(FEATURE_SOURCE)

    artifact = CompositionGenerator().generate(resolved_named(resolved, "ComposedFeature"), context)[0]

    assert artifact.unit == "Features.generated.swift"
    assert artifact.references == {"Child1", "Child2"}
    assert artifact.fragments[0] == swift(
        """
        struct ComposedFeatureReducer: Reducer {
            struct State: Equatable {
                var name: String = ""
                var description: String? = nil
                var numberOfItems: Int = 0
                var child: Child1.State = .init()
                var optionalChild: Child2.State? = nil
            }

            enum Action: Equatable {
                case child(Child1.Action)
                case optionalChild(Child2.Action)
            }

            var body: some ReducerOf<Self> {
                Scope(state: \\.child, action: /Action.child) {
                    Child1()
                }
                Reduce { state, action in
                    switch action {
                    case .child:
                        return .none
                    case .optionalChild:
                        return .none
                    }
                }
                .ifLet(\\.optionalChild, action: /Action.optionalChild) {
                    Child2()
                }
            }
        }
        """
    ).rstrip("\n")


def test_simple_feature_has_no_children() -> None:
    context, resolved, _ = build_context(FEATURE_SOURCE)

    text = CompositionGenerator().generate(resolved_named(resolved, "SimpleFeature"), context)[0].fragments[0]

    assert text.startswith("struct SimpleFeatureReducer: Reducer {")
    assert "    enum Action: Equatable {\n    }" in text
    assert "        Reduce { state, action in\n            .none\n        }" in text
    assert "Scope(" not in text


def test_without_contains_composition_child_fields_are_opaque() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: describesFeature
            struct Shell {
                var inner: Unknown.State = .init()
            }
            """
        )
    )

    text = CompositionGenerator().generate(resolved_named(resolved, "Shell"), context)[0].fragments[0]

    assert "        var inner: Unknown.State = .init()" in text
    assert "case inner" not in text


def test_generated_child_feature_is_wired_by_generated_name() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: describesFeature
            struct Counter {
                var count: Int = 0
            }

            // sourcery: describesFeature, containsComposition
            struct App {
                var counter: CounterReducer.State = .init()
            }
            """
        )
    )

    artifact = CompositionGenerator().generate(resolved_named(resolved, "App"), context)[0]

    assert artifact.references == {"Counter"}
    assert "        case counter(CounterReducer.Action)" in artifact.fragments[0]
    assert "            CounterReducer()" in artifact.fragments[0]


def test_child_declared_after_parent_is_rejected() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: describesFeature, containsComposition
            struct App {
                var counter: CounterReducer.State = .init()
            }

            // sourcery: describesFeature
            struct Counter {
                var count: Int = 0
            }
            """
        )
    )

    with pytest.raises(UnresolvableStrategy) as excinfo:
        CompositionGenerator().generate(resolved_named(resolved, "App"), context)

    assert excinfo.value.member == "counter"
    assert "declared before" in excinfo.value.message


def test_unknown_child_is_rejected() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: describesFeature, containsComposition
            struct App {
                var missing: Nowhere.State? = nil
            }
            """
        )
    )

    with pytest.raises(UnresolvableStrategy) as excinfo:
        CompositionGenerator().generate(resolved_named(resolved, "App"), context)

    assert excinfo.value.member == "missing"


def test_feature_suffix_is_configurable() -> None:
    config = GeneratorConfig(naming=NamingConvention(feature_suffix="Feature"))
    context, resolved, _ = build_context(FEATURE_SOURCE, config=config)

    text = CompositionGenerator().generate(resolved_named(resolved, "SimpleFeature"), context)[0].fragments[0]

    assert text.startswith("struct SimpleFeatureFeature: Reducer {")
