"""Configuration loading for declgen (.declgen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import yaml

from .models import TypeRef

CONFIG_FILENAME = ".declgen.yml"

STRATEGY_NAMES: Tuple[str, ...] = (
    "autoFailingMock",
    "autoStub",
    "autoMappableFromDTO",
    "autoregister",
    "describesFeature",
)

DEFAULT_HEADER = "// Generated by declgen. DO NOT EDIT."

FixtureProvider = Callable[[TypeRef], Optional[str]]


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass(frozen=True)
class NamingConvention:
    """Suffix tables used for DTO/domain and contract/implementation matching."""

    dto_suffixes: Tuple[str, ...] = ("DTO", "Dto")
    contract_suffixes: Tuple[str, ...] = ("Protocol", "Interface")
    mock_suffix: str = "FailingMock"
    stub_suffix: str = "Stub"
    feature_suffix: str = "Reducer"

    def contract_base(self, name: str) -> str:
        """Return ``name`` without its contract suffix (``FooProtocol`` -> ``Foo``)."""
        for suffix in self.contract_suffixes:
            if name.endswith(suffix) and len(name) > len(suffix):
                return name[: -len(suffix)]
        return name

    def dto_candidates(self, name: str) -> List[str]:
        """Return the DTO names a domain type ``name`` may pair with, in priority order."""
        return [f"{name}{suffix}" for suffix in self.dto_suffixes]

    def is_dto_name(self, name: str) -> bool:
        return any(name.endswith(suffix) and len(name) > len(suffix) for suffix in self.dto_suffixes)


@dataclass
class GeneratorConfig:
    """Represents the settings defined in .declgen.yml plus API-only hooks."""

    root: Optional[Path] = None
    strategies: List[str] = field(default_factory=lambda: list(STRATEGY_NAMES))
    fixtures: Dict[str, str] = field(default_factory=dict)
    fixture_provider: Optional[FixtureProvider] = None
    fail_on_ambiguous_registration: bool = True
    naming: NamingConvention = field(default_factory=NamingConvention)
    workers: int = 1
    header: str = DEFAULT_HEADER
    templates_dir: Optional[Path] = None
    output_dir: Optional[Path] = None

    def is_enabled(self, strategy: str) -> bool:
        return strategy in self.strategies


def load_config(config_path: Path) -> GeneratorConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return GeneratorConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = GeneratorConfig(root=root)

    if "strategies" in data:
        strategies = _as_str_list(data.get("strategies"))
        unknown = sorted(set(strategies) - set(STRATEGY_NAMES))
        if unknown:
            raise ConfigError("Unknown strategies requested: " + ", ".join(unknown))
        config.strategies = strategies

    fixtures = data.get("fixtures")
    if fixtures is not None:
        if not isinstance(fixtures, dict):
            raise ConfigError("'fixtures' must map type names to Swift expressions")
        config.fixtures = {str(key): str(value) for key, value in fixtures.items()}

    fail_on_ambiguous = _as_bool(data.get("fail_on_ambiguous_registration"))
    if fail_on_ambiguous is not None:
        config.fail_on_ambiguous_registration = fail_on_ambiguous

    naming_data = _as_dict(data.get("naming"))
    if naming_data:
        defaults = NamingConvention()
        config.naming = NamingConvention(
            dto_suffixes=tuple(_as_str_list(naming_data.get("dto_suffixes")))
            or defaults.dto_suffixes,
            contract_suffixes=tuple(_as_str_list(naming_data.get("contract_suffixes")))
            or defaults.contract_suffixes,
            mock_suffix=_as_str(naming_data.get("mock_suffix")) or defaults.mock_suffix,
            stub_suffix=_as_str(naming_data.get("stub_suffix")) or defaults.stub_suffix,
            feature_suffix=_as_str(naming_data.get("feature_suffix"))
            or defaults.feature_suffix,
        )

    workers = _as_int(data.get("workers"))
    if workers is not None:
        if workers < 1:
            raise ConfigError("'workers' must be a positive integer")
        config.workers = workers

    header = _as_str(data.get("header"))
    if header is not None:
        config.header = header

    templates_dir = _as_str(data.get("templates_dir"))
    if templates_dir:
        config.templates_dir = root / templates_dir

    output_dir = _as_str(data.get("output_dir"))
    if output_dir:
        config.output_dir = root / output_dir

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_HEADER",
    "FixtureProvider",
    "GeneratorConfig",
    "NamingConvention",
    "STRATEGY_NAMES",
    "load_config",
]
