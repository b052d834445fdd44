"""Declaration-file parser built on Tree-sitter.

Converts the concrete syntax tree produced by ``tree-sitter-typescript`` into
the immutable model in :mod:`dtsbundle.models`. Only the shapes the bundler
rewrites are modelled structurally:

- ambient modules and namespaces (``declare module "x" {}``, ``namespace X {}``)
- interfaces and classes with their heritage clauses
- variable statements, ``export =`` assignments, ``import x = ...`` and type aliases

Everything else is carried through as :class:`RawStatement` source text.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .errors import FragmentParseError, ParserUnavailableError
from .models import (
    ClassDeclaration,
    DeclarationTree,
    ExportAssignment,
    HeritageClause,
    HeritageKind,
    ImportEquals,
    InterfaceDeclaration,
    Member,
    ModuleDeclaration,
    QualifiedName,
    RawStatement,
    Span,
    Statement,
    TypeAlias,
    TypeReference,
    VariableDeclarator,
    VariableStatement,
)

logger = logging.getLogger(__name__)

FRAGMENT_FILE_NAME = "fragment.d.ts"


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class DeclarationParser(ABC):
    """Abstract base class for declaration parsers."""

    @abstractmethod
    def parse(self, text: str, file_name: str) -> DeclarationTree:
        """Parse *text* tolerantly; syntax errors are logged, not raised."""
        ...

    @abstractmethod
    def has_syntax_errors(self, text: str) -> bool:
        ...

    def parse_file(self, file_path: Path) -> DeclarationTree:
        text = file_path.read_text(encoding="utf-8")
        return self.parse(text, str(file_path))

    def parse_fragment(self, text: str, module: Optional[str] = None) -> Tuple[Statement, ...]:
        """Parse a synthesized fragment strictly.

        Raises:
            FragmentParseError: if the text does not parse cleanly.
        """
        if self.has_syntax_errors(text):
            raise FragmentParseError(
                "Merged interface fragment failed to re-parse",
                fragment=text,
                module=module,
            )
        return self.parse(text, FRAGMENT_FILE_NAME).statements


# ===================================================================
# Tree-sitter Parser
# ===================================================================

class TreeSitterDeclarationParser(DeclarationParser):
    """Error-tolerant ``.d.ts`` parser backed by ``tree-sitter-typescript``."""

    def __init__(self) -> None:
        self._parser = self._init_parser()

    @staticmethod
    def _init_parser() -> Any:
        try:
            import tree_sitter_typescript  # type: ignore[import-untyped]
            from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ParserUnavailableError(
                "tree-sitter grammar for TypeScript is not installed. "
                "Install with: pip install tree-sitter tree-sitter-typescript"
            ) from exc

        # The typescript grammar package ships two languages; .d.ts files use
        # the plain TypeScript one, not TSX.
        parser = TSParser(Language(tree_sitter_typescript.language_typescript()))
        logger.debug("Loaded tree-sitter parser for typescript")
        return parser

    def has_syntax_errors(self, text: str) -> bool:
        tree = self._parser.parse(text.encode("utf-8"))
        error = _first_error(tree.root_node)
        if error is not None:
            row, col = error.start_point
            logger.debug("Syntax error at %d:%d", row + 1, col + 1)
            return True
        return False

    def parse(self, text: str, file_name: str) -> DeclarationTree:
        source = text.encode("utf-8")
        tree = self._parser.parse(source)
        root = tree.root_node

        error = _first_error(root)
        if error is not None:
            row, col = error.start_point
            logger.warning(
                "Syntax error in %s (%d,%d); keeping recoverable declarations",
                file_name, row + 1, col + 1,
            )

        statements = tuple(self._convert_block(root))
        logger.debug("Parsed %s: %d top-level statements", file_name, len(statements))
        return DeclarationTree(file_name=file_name, statements=statements, text=text)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _convert_block(self, block: Any) -> List[Statement]:
        statements: List[Statement] = []
        for child in block.named_children:
            stmt = self._convert_statement(child, ())
            if stmt is None:
                stmt = RawStatement(text=_text(child), span=_span(child))
            statements.append(stmt)
        return statements

    def _convert_statement(self, node: Any, modifiers: Tuple[str, ...]) -> Optional[Statement]:
        kind = node.type

        if kind == "export_statement":
            return self._convert_export(node, modifiers)

        if kind == "ambient_declaration":
            inner = _first_named(node)
            if inner is None or inner.type == "statement_block":
                # declare global { ... }
                return None
            return self._convert_statement(inner, modifiers + ("declare",))

        if kind == "expression_statement":
            # A bare ``namespace X {}`` parses as an expression statement.
            inner = _first_named(node)
            if inner is not None and inner.type == "internal_module":
                return self._convert_module(inner, modifiers)
            return None

        if kind in ("module", "internal_module"):
            return self._convert_module(node, modifiers)

        if kind == "interface_declaration":
            return self._convert_interface(node, modifiers)

        if kind in ("class_declaration", "abstract_class_declaration"):
            if kind == "abstract_class_declaration":
                modifiers = modifiers + ("abstract",)
            return self._convert_class(node, modifiers)

        if kind in ("lexical_declaration", "variable_declaration"):
            return self._convert_variables(node, modifiers)

        if kind == "import_statement":
            return self._convert_import_require(node, modifiers)

        if kind == "import_alias":
            names = [c for c in node.named_children if c.type != "comment"]
            if len(names) < 2:
                return None
            return ImportEquals(
                name=_text(names[0]),
                reference=_text(names[1]),
                require=False,
                modifiers=modifiers,
                span=_span(node),
            )

        if kind == "type_alias_declaration":
            name = node.child_by_field_name("name")
            value = node.child_by_field_name("value")
            if name is None or value is None:
                return None
            params = node.child_by_field_name("type_parameters")
            return TypeAlias(
                name=_text(name),
                type_text=_text(value),
                type_parameters=_text(params) if params is not None else "",
                modifiers=modifiers,
                span=_span(node),
            )

        return None

    def _convert_export(self, node: Any, modifiers: Tuple[str, ...]) -> Optional[Statement]:
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            return self._convert_statement(declaration, modifiers + ("export",))

        if any(not c.is_named and c.type == "=" for c in node.children):
            expr = _first_named(node)
            if expr is None:
                return None
            return ExportAssignment(expression=_text(expr), modifiers=modifiers, span=_span(node))

        for child in node.named_children:
            if child.type in ("import_statement", "import_alias"):
                return self._convert_statement(child, modifiers + ("export",))
        return None

    def _convert_module(self, node: Any, modifiers: Tuple[str, ...]) -> Optional[Statement]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        string_name = name_node.type == "string"
        name = _unquote(_text(name_node)) if string_name else _text(name_node)
        body_node = node.child_by_field_name("body")
        body = tuple(self._convert_block(body_node)) if body_node is not None else None
        return ModuleDeclaration(
            name=name,
            body=body,
            string_name=string_name,
            keyword="namespace" if node.type == "internal_module" else "module",
            modifiers=modifiers,
            span=_span(node),
        )

    def _convert_interface(self, node: Any, modifiers: Tuple[str, ...]) -> Optional[Statement]:
        name = node.child_by_field_name("name")
        if name is None:
            return None
        heritage: List[HeritageClause] = []
        for child in node.children:
            if child.type == "extends_type_clause":
                types = tuple(
                    self._type_reference(t) for t in child.named_children if t.type != "comment"
                )
                heritage.append(HeritageClause(HeritageKind.EXTENDS, types))
            elif child.type == "ERROR" and _text(child).strip() == "extends":
                # ``interface I extends {}``: keep the dangling keyword as an
                # empty clause so the transformer can drop it.
                heritage.append(HeritageClause(HeritageKind.EXTENDS, ()))
        params = node.child_by_field_name("type_parameters")
        return InterfaceDeclaration(
            name=_text(name),
            heritage=tuple(heritage),
            members=_members(node.child_by_field_name("body")),
            type_parameters=_text(params) if params is not None else "",
            references=tuple(_qualified_references(node)),
            modifiers=modifiers,
            span=_span(node),
        )

    def _convert_class(self, node: Any, modifiers: Tuple[str, ...]) -> Optional[Statement]:
        name = node.child_by_field_name("name")
        if name is None:
            return None
        heritage: List[HeritageClause] = []
        for child in node.children:
            if child.type != "class_heritage":
                continue
            for clause in child.named_children:
                if clause.type == "extends_clause":
                    heritage.append(HeritageClause(HeritageKind.EXTENDS, self._extends_types(clause)))
                elif clause.type == "implements_clause":
                    types = tuple(
                        self._type_reference(t) for t in clause.named_children if t.type != "comment"
                    )
                    heritage.append(HeritageClause(HeritageKind.IMPLEMENTS, types))
        params = node.child_by_field_name("type_parameters")
        return ClassDeclaration(
            name=_text(name),
            heritage=tuple(heritage),
            members=_members(node.child_by_field_name("body")),
            type_parameters=_text(params) if params is not None else "",
            modifiers=modifiers,
            span=_span(node),
        )

    def _convert_variables(self, node: Any, modifiers: Tuple[str, ...]) -> Optional[Statement]:
        keyword = _text(node.children[0]) if node.children else "var"
        declarators: List[VariableDeclarator] = []
        for child in node.named_children:
            if child.type != "variable_declarator":
                continue
            name = child.child_by_field_name("name")
            annotation = child.child_by_field_name("type")
            value = child.child_by_field_name("value")
            declarators.append(VariableDeclarator(
                name=_text(name) if name is not None else "",
                type_annotation=_text(annotation).lstrip(":").strip() if annotation is not None else "",
                initializer=_text(value) if value is not None else "",
            ))
        if not declarators:
            return None
        return VariableStatement(
            keyword=keyword,
            declarations=tuple(declarators),
            modifiers=modifiers,
            span=_span(node),
        )

    def _convert_import_require(self, node: Any, modifiers: Tuple[str, ...]) -> Optional[Statement]:
        for child in node.named_children:
            if child.type != "import_require_clause":
                continue
            ident = next((c for c in child.named_children if c.type == "identifier"), None)
            source = child.child_by_field_name("source")
            if ident is None or source is None:
                return None
            return ImportEquals(
                name=_text(ident),
                reference=_unquote(_text(source)),
                require=True,
                modifiers=modifiers,
                span=_span(node),
            )
        return None

    # ------------------------------------------------------------------
    # Heritage
    # ------------------------------------------------------------------

    @staticmethod
    def _type_reference(node: Any) -> TypeReference:
        if node.type == "generic_type":
            name = node.child_by_field_name("name")
            args = node.child_by_field_name("type_arguments")
            return TypeReference(
                expression=_compact(_text(name if name is not None else node)),
                span=_span(node),
                type_arguments=_text(args) if args is not None else "",
            )
        return TypeReference(expression=_compact(_text(node)), span=_span(node))

    @staticmethod
    def _extends_types(clause: Any) -> Tuple[TypeReference, ...]:
        refs: List[TypeReference] = []
        for child in clause.named_children:
            if child.type == "comment":
                continue
            if child.type == "type_arguments" and refs:
                last = refs[-1]
                start = last.span.start if last.span is not None else child.start_byte
                refs[-1] = replace(
                    last,
                    type_arguments=_text(child),
                    span=Span(start, child.end_byte),
                )
                continue
            refs.append(TypeReference(expression=_compact(_text(child)), span=_span(child)))
        return tuple(refs)


# ===================================================================
# Shared Helpers
# ===================================================================

def _text(node: Any) -> str:
    return node.text.decode("utf-8")


def _span(node: Any) -> Span:
    return Span(node.start_byte, node.end_byte)


def _compact(text: str) -> str:
    return "".join(text.split())


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"', "`"):
        return text[1:-1]
    return text


def _first_named(node: Any) -> Optional[Any]:
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _first_error(node: Any) -> Optional[Any]:
    if not node.has_error:
        return None
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


def _members(body: Optional[Any]) -> Tuple[Member, ...]:
    if body is None:
        return ()
    members: List[Member] = []
    for child in body.named_children:
        text = _text(child)
        if child.type == "comment":
            members.append(Member(text=text, comment=True))
        else:
            members.append(Member(text=text.rstrip().rstrip(";,").rstrip()))
    return tuple(members)


def _qualified_references(node: Any) -> List[QualifiedName]:
    """Collect ``Namespace.Identifier`` type references in source order.

    A generic use (``Ace.Range<T>``) is reported once as generic; its type
    arguments are still searched.
    """
    refs: List[QualifiedName] = []

    def _visit(n: Any) -> None:
        if n.type == "generic_type":
            name = n.child_by_field_name("name")
            qualified = _qualified_name(name, generic=True) if name is not None else None
            if qualified is not None:
                refs.append(qualified)
                args = n.child_by_field_name("type_arguments")
                if args is not None:
                    _visit(args)
                return
        elif n.type == "nested_type_identifier":
            qualified = _qualified_name(n, generic=False)
            if qualified is not None:
                refs.append(qualified)
                return
        for child in n.children:
            _visit(child)

    _visit(node)
    return refs


def _qualified_name(node: Any, generic: bool) -> Optional[QualifiedName]:
    if node.type != "nested_type_identifier":
        return None
    segments = _compact(_text(node)).split(".")
    if len(segments) < 2:
        return None
    # Only the first two segments name the alias; ``Ace.A.B`` aliases ``Ace.A``.
    return QualifiedName(
        namespace=segments[0],
        name=segments[1],
        generic=generic and len(segments) == 2,
    )
