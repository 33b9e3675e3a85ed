"""Swift source rendering helpers and the Jinja environment used by generators."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Sequence

from jinja2 import Environment, FileSystemLoader

from .models import Initializer, Method, Parameter, TypeKind, TypeRef

_DEFAULT_TEMPLATES = Path(__file__).with_name("generators") / "templates"


def swift_type(type_ref: TypeRef) -> str:
    """Render a type reference back to Swift syntax."""
    text = _unqualified_type(type_ref)
    if type_ref.qualifier:
        return f"{type_ref.qualifier} {text}"
    return text


def _unqualified_type(type_ref: TypeRef) -> str:
    kind = type_ref.kind
    if kind is TypeKind.PRIMITIVE:
        return type_ref.name
    if kind is TypeKind.NAMED:
        if type_ref.arguments:
            inner = ", ".join(swift_type(argument) for argument in type_ref.arguments)
            return f"{type_ref.name}<{inner}>"
        return type_ref.name
    if kind is TypeKind.SEQUENCE:
        return f"[{swift_type(type_ref.element)}]"
    if kind is TypeKind.MAPPING:
        return f"[{swift_type(type_ref.key)}: {swift_type(type_ref.value)}]"
    if kind is TypeKind.OPTIONAL:
        wrapped = type_ref.wrapped
        if wrapped.kind is TypeKind.FUNCTION or wrapped.qualifier:
            return f"({swift_type(wrapped)})?"
        return f"{swift_type(wrapped)}?"
    if kind is TypeKind.FUNCTION:
        parameters = ", ".join(swift_type(argument) for argument in type_ref.arguments)
        effects = _effects(type_ref.is_async, type_ref.is_throwing)
        result = swift_type(type_ref.result) if type_ref.result is not None else "Void"
        return f"({parameters}){effects} -> {result}"
    raise ValueError(f"Unsupported type kind: {kind}")


def render_parameter(parameter: Parameter, *, include_default: bool = False) -> str:
    prefix = f"{parameter.label} " if parameter.label else ""
    specifiers = "".join(f"{specifier} " for specifier in parameter.specifiers)
    text = f"{prefix}{parameter.name}: {specifiers}{swift_type(parameter.type)}"
    if include_default and parameter.has_default and parameter.default:
        text += f" = {parameter.default}"
    return text


def render_parameters(parameters: Sequence[Parameter], *, include_defaults: bool = False) -> str:
    return ", ".join(
        render_parameter(parameter, include_default=include_defaults) for parameter in parameters
    )


def method_signature(method: Method) -> str:
    """Return ``func name(params) async throws -> Result`` for ``method``."""
    signature = f"func {method.name}({render_parameters(method.parameters)})"
    signature += _effects(method.is_async, method.is_throwing)
    if method.returns_value:
        signature += f" -> {swift_type(method.return_type)}"
    return signature


def initializer_signature(initializer: Initializer) -> str:
    keyword = "init?" if initializer.is_failable else "init"
    signature = f"{keyword}({render_parameters(initializer.parameters)})"
    return signature + _effects(initializer.is_async, initializer.is_throwing)


def method_display_name(method: Method) -> str:
    """Return the Swift selector-style name, e.g. ``getSomething(_:)``."""
    labels = "".join(f"{parameter.label or parameter.name}:" for parameter in method.parameters)
    return f"{method.name}({labels})"


def lower_camel(name: str) -> str:
    """``SomeDependency`` -> ``someDependency``; leading acronyms are lowered as a block."""
    if not name:
        return name
    leading = 0
    while leading < len(name) and name[leading].isupper():
        leading += 1
    if leading <= 1:
        return name[:1].lower() + name[1:]
    if leading == len(name):
        return name.lower()
    return name[: leading - 1].lower() + name[leading - 1 :]


def upper_camel(name: str) -> str:
    return name[:1].upper() + name[1:]


def _effects(is_async: bool, is_throwing: bool) -> str:
    text = ""
    if is_async:
        text += " async"
    if is_throwing:
        text += " throws"
    return text


class TemplateRenderer:
    """Loads generator templates, preferring a user templates directory when configured."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir
        self._env = self._create_env(templates_dir)

    @property
    def environment(self) -> Environment:
        return self._env

    def render(self, template_name: str, **context: Any) -> str:
        template = self._env.get_template(template_name)
        return _normalise(template.render(**context))

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories: List[str] = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(_DEFAULT_TEMPLATES))
        # ensure uniqueness preserving order
        seen: set[str] = set()
        ordered: List[str] = []
        for directory in directories:
            if directory not in seen:
                ordered.append(directory)
                seen.add(directory)
        env = Environment(
            loader=FileSystemLoader(ordered),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        env.filters["swift_type"] = swift_type
        env.filters["lower_camel"] = lower_camel
        return env


def _normalise(text: str) -> str:
    lines = [line.rstrip() for line in text.splitlines()]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


__all__ = [
    "TemplateRenderer",
    "initializer_signature",
    "lower_camel",
    "method_display_name",
    "method_signature",
    "render_parameter",
    "render_parameters",
    "swift_type",
    "upper_camel",
]
