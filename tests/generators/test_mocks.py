"""Tests for declgen.generators.mocks."""

from __future__ import annotations

import logging

import pytest

from declgen.config import GeneratorConfig
from declgen.errors import MissingFixture, UnresolvableStrategy
from declgen.generators.mocks import AutoFailingMockGenerator, AutoStubGenerator, storage_names
from declgen.models import Method, Parameter, TypeRef
from tests._fixtures.source_builder import build_context, resolved_named
from tests._fixtures.swift_sources import SERVICE_SOURCE, swift

_FIXTURES = GeneratorConfig(fixtures={"Something": "Something.fixture"})


def test_failing_mock_renders_exact_text() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: AutoFailing
            protocol PingProtocol {
                func ping() async throws -> String
                func reset()
            }
            """
        )
    )

    artifacts = AutoFailingMockGenerator().generate(resolved_named(resolved, "PingProtocol"), context)

    assert len(artifacts) == 1
    artifact = artifacts[0]
    assert artifact.strategy == "autoFailingMock"
    assert artifact.unit == "AutoFailingMock.generated.swift"
    assert artifact.fragments[0] == swift(
        """
        final class PingFailingMock: PingProtocol {
            var error: Error = AutoFailingMockError.notImplemented("PingProtocol")

            func ping() async throws -> String {
                throw error
            }

            // No failure channel: non-throwing requirement aborts.
            func reset() {
                fatalError("PingFailingMock.reset() has no failure channel")
            }
        }
        """
    ).rstrip("\n")


def test_failing_mock_mirrors_signatures_and_warns(caplog: pytest.LogCaptureFixture) -> None:
    context, resolved, _ = build_context(SERVICE_SOURCE)
    generator = AutoFailingMockGenerator()

    with caplog.at_level(logging.WARNING, logger="declgen"):
        text = generator.generate(resolved_named(resolved, "SomeServiceInterface"), context)[0].fragments[0]

    assert text.startswith("final class SomeServiceFailingMock: SomeServiceInterface {")
    assert "    init(something: String) {}" in text
    assert "    func getSomething(_ id: String) async throws -> Something {\n        throw error\n    }" in text
    assert "    func getDictionary() async throws -> [String: String] {" in text
    assert "    func postSomething() async throws {\n        throw error\n    }" in text
    assert 'fatalError("SomeServiceFailingMock.postNoThrow() has no failure channel")' in text
    assert any("postNoThrow()" in record.getMessage() for record in caplog.records)


def test_failing_mock_prelude_declares_error_enum() -> None:
    context, _, _ = build_context(SERVICE_SOURCE)

    prelude = AutoFailingMockGenerator().prelude(context)

    assert prelude == (
        "enum AutoFailingMockError: Error, Equatable {\n"
        "    case notImplemented(String)\n"
        "}"
    )


def test_failing_mock_includes_inherited_requirements_and_properties() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            protocol Closable {
                func close() throws
            }

            // sourcery: AutoFailing
            protocol SessionProtocol: Closable {
                var token: String { get set }
                var isActive: Bool { get }
                func open() throws
            }
            """
        )
    )

    text = AutoFailingMockGenerator().generate(resolved_named(resolved, "SessionProtocol"), context)[0].fragments[0]

    assert text.index("func open() throws") < text.index("func close() throws")
    assert "    var token: String {\n        get {" in text
    assert 'set { fatalError("SessionFailingMock.token has no failure channel") }' in text
    assert 'set { fatalError("SessionFailingMock.isActive' not in text


def test_stub_uses_fixtures_and_records_calls() -> None:
    context, resolved, _ = build_context(SERVICE_SOURCE, config=_FIXTURES)

    artifact = AutoStubGenerator().generate(resolved_named(resolved, "SomeServiceInterface"), context)[0]
    text = artifact.fragments[0]

    assert artifact.unit == "AutoStub.generated.swift"
    assert text.startswith("final class SomeServiceStub: SomeServiceInterface {")
    assert "    var getSomethingResult: Something = Something.fixture" in text
    assert "    var getSomethingError: Error?" in text
    assert "    private(set) var getSomethingCallCount = 0" in text
    assert "    private(set) var getSomethingReceivedId: String?" in text
    assert "    var getEnumResult: MyEnum = .firstCase" in text
    assert "    var getDateResult: Date = Date(timeIntervalSince1970: 0)" in text
    assert "    var getArrayResult: [String] = []" in text
    assert "    var getDictionaryResult: [String: String] = [:]" in text
    assert "    init(something: String) {}" in text
    assert (
        "    func getSomething(_ id: String) async throws -> Something {\n"
        "        getSomethingCallCount += 1\n"
        "        getSomethingReceivedId = id\n"
        "        if let error = getSomethingError {\n"
        "            throw error\n"
        "        }\n"
        "        return getSomethingResult\n"
        "    }"
    ) in text
    assert "    func postNoThrow() async {\n        postNoThrowCallCount += 1\n    }" in text
    assert "postNoThrowError" not in text
    assert "MyEnum" in artifact.references and "Something" in artifact.references


def test_stub_without_fixture_raises_missing_fixture() -> None:
    context, resolved, _ = build_context(SERVICE_SOURCE)

    with pytest.raises(MissingFixture) as excinfo:
        AutoStubGenerator().generate(resolved_named(resolved, "SomeServiceInterface"), context)

    error = excinfo.value
    assert error.declaration == "SomeServiceInterface"
    assert error.member == "getSomething(_:)"
    assert error.type_name == "Something"
    assert error.strategy == "autoStub"


def test_stub_properties_and_closure_parameters() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: AutoStub
            protocol LoaderProtocol {
                var retries: Int { get set }
                func load(path: String, completion: @escaping (Data) -> Void)
            }
            """
        )
    )

    text = AutoStubGenerator().generate(resolved_named(resolved, "LoaderProtocol"), context)[0].fragments[0]

    assert "    var retries: Int = 0" in text
    assert "    private(set) var loadReceivedPath: String?" in text
    assert "loadReceivedCompletion" not in text
    assert "    func load(path: String, completion: @escaping (Data) -> Void) {" in text


def test_generators_reject_non_contracts() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            struct Plain {
                let value: Int
            }
            """
        )
    )

    with pytest.raises(UnresolvableStrategy):
        AutoStubGenerator().generate(resolved_named(resolved, "Plain"), context)


def test_storage_names_are_unique_for_overloads() -> None:
    string = TypeRef.primitive("String")
    methods = [
        Method("load", (Parameter("id", string),)),
        Method("load", (Parameter("name", string, label="_"),)),
        Method("save"),
        Method("load", (Parameter("id", string),), is_async=True),
    ]

    assert storage_names(methods) == ["loadId", "loadName", "save", "loadId2"]


def test_stub_keeps_opaque_parameters_and_stores_existentials() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: AutoStub
            protocol LoggerProtocol {
                func log(_ value: some CustomStringConvertible) async throws
                func attach(_ sink: any TextOutputStream)
            }
            """
        )
    )

    text = AutoStubGenerator().generate(resolved_named(resolved, "LoggerProtocol"), context)[0].fragments[0]

    assert "    func log(_ value: some CustomStringConvertible) async throws {" in text
    assert "    private(set) var logReceivedValue: (any CustomStringConvertible)?" in text
    assert "    func attach(_ sink: any TextOutputStream) {" in text
    assert "    private(set) var attachReceivedSink: (any TextOutputStream)?" in text
    assert "some CustomStringConvertible)?" not in text


def test_mock_generators_reject_associated_types() -> None:
    context, resolved, _ = build_context(
        swift(
            """
            // sourcery: AutoStub, AutoFailing
            protocol StoreProtocol {
                associatedtype Item
                func load() throws -> Item
            }
            """
        )
    )

    for generator in (AutoStubGenerator(), AutoFailingMockGenerator()):
        with pytest.raises(UnresolvableStrategy) as excinfo:
            generator.generate(resolved_named(resolved, "StoreProtocol"), context)
        assert "Item" in excinfo.value.message
