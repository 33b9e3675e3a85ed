"""Declaration parsing on top of the tree-sitter Swift grammar."""

from .parser import SWIFT_LANGUAGE, DeclarationParser, ParseResult

__all__ = ["DeclarationParser", "ParseResult", "SWIFT_LANGUAGE"]
