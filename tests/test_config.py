"""Tests for declgen.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from declgen.config import (
    DEFAULT_HEADER,
    STRATEGY_NAMES,
    ConfigError,
    GeneratorConfig,
    NamingConvention,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, GeneratorConfig)
    assert config.root == tmp_path.resolve()
    assert config.strategies == list(STRATEGY_NAMES)
    assert config.fixtures == {}
    assert config.fixture_provider is None
    assert config.fail_on_ambiguous_registration is True
    assert config.naming == NamingConvention()
    assert config.workers == 1
    assert config.header == DEFAULT_HEADER
    assert config.templates_dir is None
    assert config.output_dir is None


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".declgen.yml"
    config_file.write_text(
        """
strategies: [autoStub, autoregister]
fixtures:
  Something: "Something.fixture"
  "[User]": "[.mock]"
fail_on_ambiguous_registration: "no"
naming:
  dto_suffixes: [Response]
  contract_suffixes: Service
  mock_suffix: Failing
  feature_suffix: Feature
workers: 4
header: "// custom header"
templates_dir: "codegen/templates"
output_dir: "Generated"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.strategies == ["autoStub", "autoregister"]
    assert config.is_enabled("autoStub")
    assert not config.is_enabled("describesFeature")
    assert config.fixtures == {"Something": "Something.fixture", "[User]": "[.mock]"}
    assert config.fail_on_ambiguous_registration is False
    assert config.naming.dto_suffixes == ("Response",)
    assert config.naming.contract_suffixes == ("Service",)
    assert config.naming.mock_suffix == "Failing"
    assert config.naming.stub_suffix == "Stub"
    assert config.naming.feature_suffix == "Feature"
    assert config.workers == 4
    assert config.header == "// custom header"
    assert config.templates_dir == tmp_path.resolve() / "codegen" / "templates"
    assert config.output_dir == tmp_path.resolve() / "Generated"


def test_load_config_rejects_unknown_strategy(tmp_path: Path) -> None:
    (tmp_path / ".declgen.yml").write_text("strategies: [autoStub, autoMagic]\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="autoMagic"):
        load_config(tmp_path)


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".declgen.yml").write_text("fixtures: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "content",
    ["- just\n- a list\n", "fixtures: [Int]\n", "workers: 0\n"],
)
def test_load_config_rejects_ill_typed_values(tmp_path: Path, content: str) -> None:
    (tmp_path / ".declgen.yml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_empty_config_file_yields_defaults(tmp_path: Path) -> None:
    (tmp_path / ".declgen.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path).strategies == list(STRATEGY_NAMES)


def test_naming_convention_helpers() -> None:
    naming = NamingConvention()

    assert naming.contract_base("SomeServiceProtocol") == "SomeService"
    assert naming.contract_base("SomeServiceInterface") == "SomeService"
    assert naming.contract_base("Protocol") == "Protocol"
    assert naming.dto_candidates("User") == ["UserDTO", "UserDto"]
    assert naming.is_dto_name("UserDTO")
    assert not naming.is_dto_name("DTO")
