"""Tree-sitter powered extraction of Swift declarations into model instances."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import tree_sitter_swift
from tree_sitter import Language, Node, Parser, Tree

from ..errors import MalformedDeclaration
from ..logging import get_logger
from ..models import (
    Contract,
    Declaration,
    Enumeration,
    Field,
    Initializer,
    Method,
    Parameter,
    ParsedDeclaration,
    SourceUnit,
    TypeRef,
    ValueType,
)

SWIFT_LANGUAGE = Language(tree_sitter_swift.language())

_DECLARATIONS = {"protocol_declaration", "class_declaration"}
_DECLARATION_KINDS = {"protocol", "struct", "class", "actor", "enum", "extension"}
_BODIES = {"protocol_body", "class_body", "enum_class_body"}
_COMMENTS = {"comment", "multiline_comment"}
_MODIFIER_NODES = {"type_modifiers", "parameter_modifiers"}
_NON_TYPE_NODES = _COMMENTS | _MODIFIER_NODES | {"throws", "async", "type_arguments"}
_SETTER = re.compile(r"\bset\b")

_LOGGER = get_logger("parser")


class _ParseFailure(Exception):
    def __init__(self, message: str, member: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.member = member


@dataclass
class ParseResult:
    """Declarations and per-declaration failures found in one source unit."""

    unit: str
    declarations: List[ParsedDeclaration] = field(default_factory=list)
    errors: List[MalformedDeclaration] = field(default_factory=list)


class _TreeWalker:
    """Walks one unit's parse tree collecting declarations and own-line comments."""

    def __init__(self, unit: str, source: bytes, root: Node) -> None:
        self.unit = unit
        self.source = source
        self.root = root
        self.result = ParseResult(unit=unit)
        self._lines = source.split(b"\n")
        self._comments = self._own_line_comments(root)

    def run(self) -> ParseResult:
        for node in self.root.named_children:
            if node.type in _DECLARATIONS:
                self.result.declarations.extend(self._declaration(node, prefix=""))
            elif node.type == "ERROR":
                self._record_syntax_error(node)
        return self.result

    # Declarations ---------------------------------------------------------

    def _declaration(self, node: Node, *, prefix: str) -> List[ParsedDeclaration]:
        keyword = self._keyword(node)
        name_node = node.child_by_field_name("name")
        if keyword is None or keyword == "extension" or name_node is None:
            return []
        simple = self._text(name_node)
        name = f"{prefix}.{simple}" if prefix else simple
        line = node.start_point[0] + 1
        markers = self._markers_before(line)
        body = next((child for child in node.children if child.type in _BODIES), None)
        nested: List[ParsedDeclaration] = []
        try:
            if body is None:
                raise _ParseFailure(f"expected '{{' to open the body of {keyword} {name}")
            self._check_header(node)
            inherited = tuple(
                self._text(child) for child in node.children if child.type == "inheritance_specifier"
            )
            declaration: Declaration
            if keyword == "protocol":
                declaration = self._contract(name, inherited, body)
            elif keyword == "enum":
                declaration = self._enumeration(name, inherited, body, nested)
            else:
                declaration = self._value_type(name, keyword, inherited, body, nested)
        except _ParseFailure as exc:
            self._record(name, exc, line, markers)
            return []
        parsed = ParsedDeclaration(declaration=declaration, markers=markers, unit=self.unit, line=line)
        return [parsed, *nested]

    def _keyword(self, node: Node) -> Optional[str]:
        kind = node.child_by_field_name("declaration_kind")
        if kind is not None:
            return self._text(kind)
        if node.type == "protocol_declaration":
            return "protocol"
        for child in node.children:
            if not child.is_named and child.type in _DECLARATION_KINDS:
                return child.type
        return None

    def _check_header(self, node: Node) -> None:
        for child in node.children:
            if child.type in _BODIES:
                continue
            if child.type == "ERROR" or child.has_error:
                raise _ParseFailure(f"syntax error at line {child.start_point[0] + 1}")

    def _contract(self, name: str, inherited: Tuple[str, ...], body: Node) -> Contract:
        methods: List[Method] = []
        initializers: List[Initializer] = []
        properties: List[Field] = []
        associated: List[str] = []
        for member in body.named_children:
            kind = member.type
            if kind in _COMMENTS:
                continue
            if kind == "ERROR" or member.has_error:
                raise _ParseFailure(
                    f"syntax error at line {member.start_point[0] + 1}",
                    member=self._member_name(member),
                )
            if self._is_static(member):
                raise _ParseFailure(
                    "static requirements cannot be mirrored", member=self._member_name(member)
                )
            if kind in ("protocol_function_declaration", "function_declaration"):
                methods.append(self._method(member))
            elif kind == "init_declaration":
                initializers.append(self._initializer(member))
            elif kind == "protocol_property_declaration":
                properties.append(self._property_requirement(member))
            elif kind == "associatedtype_declaration":
                associated.append(self._declared_name(member))
            elif kind == "typealias_declaration":
                continue
            else:
                raise _ParseFailure(
                    f"cannot classify {kind.replace('_', ' ')}", member=self._member_name(member)
                )
        return Contract(
            name=name,
            methods=tuple(methods),
            initializers=tuple(initializers),
            properties=tuple(properties),
            inherited=inherited,
            associated_types=tuple(associated),
        )

    def _value_type(
        self,
        name: str,
        keyword: str,
        conformances: Tuple[str, ...],
        body: Node,
        nested: List[ParsedDeclaration],
    ) -> ValueType:
        fields: List[Field] = []
        methods: List[Method] = []
        initializers: List[Initializer] = []
        nested_names: List[str] = []
        for member in body.named_children:
            kind = member.type
            if kind in _COMMENTS:
                continue
            if kind == "ERROR":
                raise _ParseFailure(f"syntax error at line {member.start_point[0] + 1}")
            if kind in _DECLARATIONS:
                found = self._declaration(member, prefix=name)
                if found:
                    nested_names.append(found[0].name.rsplit(".", 1)[-1])
                    nested.extend(found)
                continue
            if kind == "typealias_declaration":
                nested_names.append(self._declared_name(member))
                continue
            if self._is_static(member):
                continue
            if kind == "property_declaration":
                if member.has_error:
                    raise _ParseFailure(
                        f"syntax error at line {member.start_point[0] + 1}",
                        member=self._member_name(member),
                    )
                stored = self._stored_property(member)
                if stored is not None:
                    fields.append(stored)
            elif kind in ("function_declaration", "init_declaration"):
                try:
                    if member.has_error:
                        raise _ParseFailure(f"syntax error at line {member.start_point[0] + 1}")
                    if kind == "function_declaration":
                        methods.append(self._method(member))
                    else:
                        initializers.append(self._initializer(member))
                except _ParseFailure as exc:
                    _LOGGER.debug("Skipping member of %s: %s", name, exc.message)
        return ValueType(
            name=name,
            fields=tuple(fields),
            conformances=conformances,
            methods=tuple(methods),
            initializers=tuple(initializers),
            keyword=keyword,
            nested=tuple(nested_names),
        )

    def _enumeration(
        self,
        name: str,
        conformances: Tuple[str, ...],
        body: Node,
        nested: List[ParsedDeclaration],
    ) -> Enumeration:
        cases: List[str] = []
        for member in body.named_children:
            if member.type == "ERROR":
                raise _ParseFailure(f"syntax error at line {member.start_point[0] + 1}")
            if member.type == "enum_entry":
                cases.extend(
                    self._text(child)
                    for child in member.children_by_field_name("name")
                    if child.type == "simple_identifier"
                )
            elif member.type in _DECLARATIONS:
                nested.extend(self._declaration(member, prefix=name))
        return Enumeration(name=name, cases=tuple(cases), conformances=conformances)

    # Members --------------------------------------------------------------

    def _method(self, node: Node) -> Method:
        name_node = node.child_by_field_name("name")
        if name_node is None or name_node.type != "simple_identifier":
            member = self._text(name_node) if name_node is not None else None
            raise _ParseFailure("operator functions are not supported", member=member)
        name = self._text(name_node)
        try:
            self._reject_generics(node, "generic methods are not supported")
            parameters = self._parameters(node)
            is_async, is_throwing = self._effects(node)
            return_type = TypeRef.void()
            returned = node.children_by_field_name("return_type")
            if returned:
                return_type, _ = self._type_in(returned, "a return type")
        except _ParseFailure as exc:
            raise _ParseFailure(exc.message, member=exc.member or name) from None
        return Method(
            name=name,
            parameters=parameters,
            is_async=is_async,
            is_throwing=is_throwing,
            return_type=return_type,
        )

    def _initializer(self, node: Node) -> Initializer:
        try:
            self._reject_generics(node, "generic initializers are not supported")
            parameters = self._parameters(node)
            is_async, is_throwing = self._effects(node)
        except _ParseFailure as exc:
            raise _ParseFailure(exc.message, member=exc.member or "init") from None
        failable = any(child.type in ("?", "!", "bang") for child in node.children)
        return Initializer(
            parameters=parameters,
            is_async=is_async,
            is_throwing=is_throwing,
            is_failable=failable,
        )

    def _property_requirement(self, node: Node) -> Field:
        name = self._member_name(node) or ""
        annotation = self._child_of_type(node, "type_annotation")
        requirements = self._child_of_type(node, "protocol_property_requirements")
        if annotation is None:
            raise _ParseFailure("property requirement needs a type", member=name)
        if requirements is None:
            raise _ParseFailure("property requirement needs a '{ get }' accessor block", member=name)
        try:
            type_ref, _ = self._type_in(self._after(annotation, ":"), "a property type")
        except _ParseFailure as exc:
            raise _ParseFailure(exc.message, member=name) from None
        settable = bool(_SETTER.search(self._text(requirements)))
        return Field(name=name, type=type_ref, is_mutable=settable)

    def _stored_property(self, node: Node) -> Optional[Field]:
        patterns = node.children_by_field_name("name")
        if not patterns:
            raise _ParseFailure("expected a property name")
        if len(patterns) > 1:
            raise _ParseFailure(
                "multiple bindings in one declaration are not supported",
                member=self._binding_name(patterns[0]),
            )
        if "(" in self._text(patterns[0]):
            raise _ParseFailure("destructuring property declarations are not supported")
        name = self._binding_name(patterns[0])
        if node.child_by_field_name("computed_value") is not None or self._child_of_type(
            node, "computed_property"
        ):
            return None
        annotation = self._child_of_type(node, "type_annotation")
        if annotation is None:
            modifiers = self._child_of_type(node, "modifiers")
            if modifiers is not None and "@" in self._text(modifiers):
                # property wrappers may infer the wrapped type from the initializer
                return None
            raise _ParseFailure(f"stored property '{name}' needs an explicit type", member=name)
        try:
            type_ref, _ = self._type_in(self._after(annotation, ":"), "a property type")
        except _ParseFailure as exc:
            raise _ParseFailure(exc.message, member=name) from None
        mutable = self._binding_keyword(node) == "var"
        value = node.child_by_field_name("value")
        default = self._text(value) if value is not None else None
        if default is None and mutable and type_ref.is_optional:
            default = "nil"
        return Field(
            name=name,
            type=type_ref,
            has_default=default is not None,
            default=default,
            is_mutable=mutable,
        )

    def _parameters(self, node: Node) -> Tuple[Parameter, ...]:
        parameters: List[Parameter] = []
        pending_default = False
        for child in node.children:
            if child.type == "parameter":
                parameters.append(self._parameter(child))
                pending_default = False
            elif parameters and not child.is_named and self._text(child) == "=":
                pending_default = True
            elif pending_default and child.is_named and child.type not in _COMMENTS:
                parameters[-1] = replace(
                    parameters[-1], has_default=True, default=self._text(child)
                )
                pending_default = False
        return tuple(parameters)

    def _parameter(self, node: Node) -> Parameter:
        names: List[str] = []
        for child in node.children:
            if self._text(child) == ":":
                break
            if child.type == "simple_identifier" or self._text(child) == "_":
                names.append(self._text(child))
        if not names:
            raise _ParseFailure("expected a parameter name")
        name = names[-1]
        label = names[0] if len(names) > 1 else None
        if any(self._text(child) == "..." for child in node.children):
            raise _ParseFailure(f"variadic parameter '{name}' is not supported")
        type_ref, specifiers = self._type_in(self._after(node, ":"), f"a type for '{name}'")
        return Parameter(name=name, type=type_ref, label=label, specifiers=specifiers)

    def _effects(self, node: Node) -> Tuple[bool, bool]:
        is_async = False
        is_throwing = False
        for child in node.children:
            text = self._text(child)
            if text == "async":
                is_async = True
            elif text == "rethrows":
                raise _ParseFailure("'rethrows' cannot be mirrored")
            elif text == "throws":
                is_throwing = True
            elif child.type == "throws" and text.startswith("throws"):
                raise _ParseFailure("typed throws cannot be mirrored")
        return is_async, is_throwing

    def _reject_generics(self, node: Node, message: str) -> None:
        if self._child_of_type(node, "type_parameters") is not None:
            raise _ParseFailure(message)
        if self._child_of_type(node, "type_constraints") is not None:
            raise _ParseFailure("generic where clauses are not supported")

    # Types ----------------------------------------------------------------

    def _type_in(self, children: Sequence[Node], what: str) -> Tuple[TypeRef, Tuple[str, ...]]:
        """Read ``[modifiers] Type [!]`` from a run of sibling nodes."""
        modifiers: List[str] = []
        for index, child in enumerate(children):
            if child.type in _MODIFIER_NODES:
                modifiers.extend(self._words(child))
            elif child.is_named and child.type not in _COMMENTS:
                type_ref = self._type(child)
                following = children[index + 1] if index + 1 < len(children) else None
                if following is not None and self._text(following) == "!":
                    type_ref = TypeRef.optional(type_ref)
                return type_ref, tuple(modifiers)
        raise _ParseFailure(f"expected {what}")

    def _type(self, node: Node) -> TypeRef:
        kind = node.type
        if kind == "user_type":
            return self._user_type(node)
        if kind == "type_identifier":
            return TypeRef.from_name(self._text(node))
        if kind == "array_type":
            inner = self._type_children(node)
            if len(inner) != 1:
                raise _ParseFailure(f"unexpected array type '{self._text(node)}'")
            return TypeRef.sequence(self._type(inner[0]))
        if kind == "dictionary_type":
            inner = self._type_children(node)
            if len(inner) != 2:
                raise _ParseFailure(f"unexpected dictionary type '{self._text(node)}'")
            return TypeRef.mapping(self._type(inner[0]), self._type(inner[1]))
        if kind == "optional_type":
            inner = self._type_children(node)
            if not inner:
                raise _ParseFailure(f"unexpected optional type '{self._text(node)}'")
            wrapped = self._type(inner[0])
            marks = sum(1 for child in node.children if self._text(child) == "?")
            for _ in range(max(marks, 1)):
                wrapped = TypeRef.optional(wrapped)
            return wrapped
        if kind == "function_type":
            return self._function_type(node)
        if kind == "tuple_type":
            return self._tuple_type(node)
        if kind == "tuple_type_item":
            return self._tuple_item_type(node)
        if kind in ("opaque_type", "existential_type"):
            inner = self._type_children(node)
            if not inner:
                raise _ParseFailure(f"unexpected type '{self._text(node)}'")
            qualifier = "some" if kind == "opaque_type" else "any"
            return replace(self._type(inner[0]), qualifier=qualifier)
        return TypeRef.named(self._text(node))

    def _user_type(self, node: Node) -> TypeRef:
        segments: List[Tuple[str, Tuple[TypeRef, ...]]] = []
        for child in node.named_children:
            if child.type == "type_identifier":
                segments.append((self._text(child), ()))
            elif child.type == "type_arguments" and segments:
                arguments = tuple(self._type(argument) for argument in self._type_children(child))
                segments[-1] = (segments[-1][0], arguments)
        if not segments:
            return TypeRef.named(self._text(node))
        if any(arguments for _, arguments in segments[:-1]):
            raise _ParseFailure("members of specialized generic types are not supported")
        name = ".".join(segment for segment, _ in segments)
        arguments = segments[-1][1]
        spelled = name[len("Swift.") :] if name.startswith("Swift.") else name
        if spelled == "Array" and len(arguments) == 1:
            return TypeRef.sequence(arguments[0])
        if spelled == "Dictionary" and len(arguments) == 2:
            return TypeRef.mapping(arguments[0], arguments[1])
        if spelled == "Optional" and len(arguments) == 1:
            return TypeRef.optional(arguments[0])
        return TypeRef.from_name(name, arguments)

    def _function_type(self, node: Node) -> TypeRef:
        inner = self._type_children(node)
        if len(inner) < 2:
            raise _ParseFailure(f"unexpected function type '{self._text(node)}'")
        params = inner[0]
        if params.type == "tuple_type":
            items = [child for child in params.named_children if child.type == "tuple_type_item"]
            if items:
                arguments = tuple(self._tuple_item_type(item) for item in items)
            else:
                arguments = tuple(self._type(child) for child in self._type_children(params))
        else:
            arguments = (self._type(params),)
        is_async, is_throwing = self._effects(node)
        return TypeRef.function(
            arguments,
            self._type(inner[-1]),
            is_async=is_async,
            is_throwing=is_throwing,
        )

    def _tuple_type(self, node: Node) -> TypeRef:
        items = [child for child in node.named_children if child.type == "tuple_type_item"]
        if not items:
            inner = self._type_children(node)
            if not inner:
                return TypeRef.void()
            if len(inner) == 1:
                return self._type(inner[0])
        elif len(items) == 1 and not self._after(items[0], ":"):
            return self._tuple_item_type(items[0])
        return TypeRef.named(self._text(node))

    def _tuple_item_type(self, node: Node) -> TypeRef:
        children = self._after(node, ":") or list(node.children)
        type_ref, _ = self._type_in(children, "a tuple element type")
        return type_ref

    def _type_children(self, node: Node) -> List[Node]:
        return [child for child in node.named_children if child.type not in _NON_TYPE_NODES]

    # Helpers --------------------------------------------------------------

    def _is_static(self, node: Node) -> bool:
        for child in node.children:
            if child.type == "modifiers" and {"static", "class"} & set(self._text(child).split()):
                return True
            if child.type == "class" and not child.is_named:
                return True
        return False

    def _member_name(self, node: Node) -> Optional[str]:
        if node.type == "init_declaration":
            return "init"
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        return self._binding_name(name_node)

    def _declared_name(self, node: Node) -> str:
        name_node = node.child_by_field_name("name") or self._first_descendant(
            node, ("type_identifier", "simple_identifier")
        )
        if name_node is None:
            raise _ParseFailure(f"expected a name in '{self._text(node)}'")
        return self._text(name_node)

    def _binding_name(self, node: Node) -> str:
        identifier = self._first_descendant(node, ("simple_identifier",))
        return self._text(identifier if identifier is not None else node).strip()

    def _binding_keyword(self, node: Node) -> str:
        binding = self._child_of_type(node, "value_binding_pattern")
        candidates: Iterable[Node] = binding.children if binding is not None else node.children
        for child in candidates:
            if self._text(child) in ("let", "var"):
                return self._text(child)
        return "var"

    def _after(self, node: Node, token: str) -> List[Node]:
        children = list(node.children)
        for index, child in enumerate(children):
            if not child.is_named and self._text(child) == token:
                return children[index + 1 :]
        return []

    def _words(self, node: Node) -> List[str]:
        named = [self._text(child) for child in node.named_children]
        return named or self._text(node).split()

    @staticmethod
    def _child_of_type(node: Node, kind: str) -> Optional[Node]:
        for child in node.children:
            if child.type == kind:
                return child
        return None

    @staticmethod
    def _first_descendant(node: Node, kinds: Tuple[str, ...]) -> Optional[Node]:
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type in kinds:
                return current
            stack.extend(reversed(current.children))
        return None

    def _text(self, node: Optional[Node]) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")

    def _own_line_comments(self, root: Node) -> Dict[int, Tuple[int, str]]:
        """Map the last line of every own-line comment to its first line and text."""
        comments: Dict[int, Tuple[int, str]] = {}
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type in _COMMENTS:
                row, column = node.start_point[0], node.start_point[1]
                if not self._lines[row][:column].strip():
                    comments[node.end_point[0] + 1] = (row + 1, self._text(node).strip())
                continue
            stack.extend(node.children)
        return comments

    def _markers_before(self, line: int) -> Tuple[str, ...]:
        markers: List[str] = []
        current = line - 1
        while current in self._comments:
            first, text = self._comments[current]
            markers.append(text)
            current = first - 1
        return tuple(reversed(markers))

    def _record_syntax_error(self, node: Node) -> None:
        first = next((child for child in node.children if child.type not in _COMMENTS), node)
        line = first.start_point[0] + 1
        identifier = self._first_descendant(node, ("type_identifier", "simple_identifier"))
        name = self._text(identifier) if identifier is not None else self.unit
        failure = _ParseFailure(f"syntax error at line {line}")
        self._record(name, failure, line, self._markers_before(line))

    def _record(
        self, name: str, failure: _ParseFailure, line: int, markers: Tuple[str, ...]
    ) -> None:
        error = MalformedDeclaration(
            name,
            failure.message,
            member=failure.member,
            unit=self.unit,
            line=line,
            markers=markers,
        )
        _LOGGER.debug("Malformed declaration: %s", error)
        self.result.errors.append(error)


class DeclarationParser:
    """Turns Swift source units into declarations plus their marker lines.

    Each call builds its own tree-sitter ``Parser`` so one instance can be shared
    across parsing workers.
    """

    def __init__(self, language: Language = SWIFT_LANGUAGE) -> None:
        self.language = language

    def parse(self, unit: SourceUnit) -> ParseResult:
        source = unit.text.encode("utf-8")
        tree = Parser(self.language).parse(source)
        return self.parse_tree(unit.name, tree, source)

    def parse_tree(self, unit: str, tree: Tree, source: bytes) -> ParseResult:
        """Extract declarations from a tree produced by an external tree-sitter front end."""
        result = _TreeWalker(unit, source, tree.root_node).run()
        _LOGGER.debug(
            "Parsed %s: %d declarations, %d malformed",
            unit,
            len(result.declarations),
            len(result.errors),
        )
        return result


__all__ = ["DeclarationParser", "ParseResult", "SWIFT_LANGUAGE"]
