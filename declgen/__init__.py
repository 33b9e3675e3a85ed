"""Annotation-driven code generation for Swift declarations."""

from .config import GeneratorConfig, load_config
from .engine import GenerationEngine, GenerationResult, generate
from .models import SourceUnit

__all__ = [
    "GenerationEngine",
    "GenerationResult",
    "GeneratorConfig",
    "SourceUnit",
    "generate",
    "load_config",
]
