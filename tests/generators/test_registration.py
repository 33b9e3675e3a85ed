"""Tests for declgen.generators.registration."""

from __future__ import annotations

import logging

import pytest

from declgen.config import GeneratorConfig
from declgen.errors import AmbiguousRegistration, UnregisteredContract
from declgen.generators.registration import RegistrationGenerator
from tests._fixtures.source_builder import build_context
from tests._fixtures.swift_sources import REGISTRATION_SOURCE, swift

_TWO_IMPLEMENTATIONS = swift(
    """
    // sourcery: autoregister
    protocol ClockProtocol {
        func now() -> Date
    }

    // sourcery: autoregister
    struct SystemClock {
        func now() -> Date { Date() }
    }

    // sourcery: autoregister
    struct FrozenClock {
        var now: () -> Date
    }
    """
)


def _annotated(resolved):
    return [item for item in resolved if item.annotations]


def test_registers_closure_struct_for_contract() -> None:
    context, resolved, _ = build_context(REGISTRATION_SOURCE)

    artifacts, errors = RegistrationGenerator().generate_corpus(_annotated(resolved), context)

    assert errors == []
    assert len(artifacts) == 1
    artifact = artifacts[0]
    assert artifact.unit == "DependencyRegistration.generated.swift"
    assert artifact.fragments[0] == swift(
        """
        // Registered dependencies:
        //   SomeDependencyProtocol -> SomeDependencyStruct

        extension DependencyValues {
            var someDependency: SomeDependencyStruct {
                get { self[SomeDependencyStruct.self] }
                set { self[SomeDependencyStruct.self] = newValue }
            }
        }
        """
    ).rstrip("\n")
    assert "DoNotRegister" not in artifact.fragments[0]


def test_two_implementations_are_ambiguous() -> None:
    context, resolved, _ = build_context(_TWO_IMPLEMENTATIONS)

    artifacts, errors = RegistrationGenerator().generate_corpus(_annotated(resolved), context)

    assert artifacts == []
    assert len(errors) == 1
    error = errors[0]
    assert isinstance(error, AmbiguousRegistration)
    assert error.declaration == "ClockProtocol"
    assert error.candidates == ("FrozenClock", "SystemClock")


def test_ambiguity_can_register_each_candidate(caplog: pytest.LogCaptureFixture) -> None:
    config = GeneratorConfig(fail_on_ambiguous_registration=False)
    context, resolved, _ = build_context(_TWO_IMPLEMENTATIONS, config=config)

    with caplog.at_level(logging.WARNING, logger="declgen"):
        artifacts, errors = RegistrationGenerator().generate_corpus(_annotated(resolved), context)

    assert errors == []
    text = artifacts[0].fragments[0]
    assert "    var frozenClock: FrozenClock {" in text
    assert "    var systemClock: SystemClock {" in text
    assert text.index("frozenClock") < text.index("systemClock")
    assert any("ClockProtocol" in record.getMessage() for record in caplog.records)


def test_contract_without_implementation_is_reported() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: autoregister
            protocol MailerProtocol {
                func send(to address: String) async throws
            }

            // sourcery: autoregister
            struct Analytics {
                let track: (String) -> Void
            }

            // sourcery: autoregister
            struct WrongLabels {
                func send(address: String) async throws {}
            }
            """
        )
    )

    artifacts, errors = RegistrationGenerator().generate_corpus(_annotated(resolved), context)

    assert [type(error) for error in errors] == [UnregisteredContract]
    assert errors[0].declaration == "MailerProtocol"
    text = artifacts[0].fragments[0]
    assert "//   Analytics -> Analytics" in text
    assert "    var analytics: Analytics {" in text
    assert "    var wrongLabels: WrongLabels {" in text


def test_property_requirements_must_match() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: autoregister
            protocol SettingsProtocol {
                var locale: String { get set }
            }

            // sourcery: autoregister
            struct ReadOnlySettings {
                let locale: String
            }
            """
        )
    )

    _, errors = RegistrationGenerator().generate_corpus(_annotated(resolved), context)

    assert isinstance(errors[0], UnregisteredContract)


def test_colliding_registration_keys_are_reported() -> None:
    context, resolved, _ = build_context(
        REGISTRATION_SOURCE
        + swift(
            """

            // sourcery: autoregister
            struct SomeDependency {
                let value: Int
            }
            """
        )
    )

    artifacts, errors = RegistrationGenerator().generate_corpus(_annotated(resolved), context)

    assert artifacts == []
    assert len(errors) == 1
    error = errors[0]
    assert isinstance(error, AmbiguousRegistration)
    assert error.key == "someDependency"
    assert error.declaration == "SomeDependency"
    assert error.candidates == ("SomeDependency", "SomeDependencyProtocol", "SomeDependencyStruct")
    assert "registration key 'someDependency'" in error.message


def test_contract_suffixes_sharing_a_base_collide_even_when_lenient() -> None:
    config = GeneratorConfig(fail_on_ambiguous_registration=False)
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: autoregister
            protocol FooProtocol {
                func ping() -> Bool
            }

            // sourcery: autoregister
            protocol FooInterface {
                func pong() -> Bool
            }

            // sourcery: autoregister
            struct LiveFoo {
                func ping() -> Bool { true }
            }

            // sourcery: autoregister
            struct OtherFoo {
                func pong() -> Bool { false }
            }

            // sourcery: autoregister
            struct Unrelated {
                let id: Int
            }
            """
        ),
        config=config,
    )

    artifacts, errors = RegistrationGenerator().generate_corpus(_annotated(resolved), context)

    assert [error.key for error in errors] == ["foo"]
    assert errors[0].declaration == "FooInterface"
    text = artifacts[0].fragments[0]
    assert "var foo:" not in text
    assert "    var unrelated: Unrelated {" in text
