"""Type information oracle over parsed declaration trees.

The oracle answers the questions the heritage pruner asks: what symbol a
heritage reference resolves to, and what that symbol's declared type is. It
also produces the diagnostics for the trees it was built from. Resolution is
scoped: a reference inside ``declare module "x"`` sees that module's
declarations before the global ones.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .models import (
    ClassDeclaration,
    DeclarationTree,
    Diagnostic,
    HeritageKind,
    ImportEquals,
    InterfaceDeclaration,
    ModuleDeclaration,
    Statement,
    TypeAlias,
    TypeReference,
    VariableStatement,
)

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"
MAX_ALIAS_DEPTH = 16

# Diagnostic codes, numbered as the TypeScript compiler numbers them.
CANNOT_FIND_NAME = 2304
CANNOT_FIND_MODULE = 2307
NOT_A_CONSTRUCTOR = 2507
SINGLE_BASE_CLASS = 1174
EMPTY_EXTENDS_LIST = 1097


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

class Type:
    pass


@dataclass(frozen=True)
class ObjectType(Type):
    name: str
    constructable: bool = False


@dataclass(frozen=True)
class UndefinedType(Type):
    pass


@dataclass(frozen=True)
class ErrorType(Type):
    reason: str = ""


def type_to_string(t: Optional[Type]) -> str:
    if t is None:
        return "none"
    if isinstance(t, ObjectType):
        return t.name
    if isinstance(t, UndefinedType):
        return "undefined"
    if isinstance(t, ErrorType):
        return "error" if not t.reason else f"error({t.reason})"
    return str(t)


# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------

class SymbolKind(str, Enum):
    MODULE = "module"
    NAMESPACE = "namespace"
    INTERFACE = "interface"
    CLASS = "class"
    TYPE_ALIAS = "type"
    VARIABLE = "variable"
    ALIAS = "alias"


@dataclass
class Symbol:
    name: str
    kind: SymbolKind
    declaration: Statement
    scope: str
    members: Dict[str, "Symbol"] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind.value} {self.name} ({self.scope})"


class SymbolTable:
    def __init__(self) -> None:
        self.scopes: Dict[str, Dict[str, Symbol]] = {GLOBAL_SCOPE: {}}
        self.parent_scope: Dict[str, str] = {}  # scope_name -> parent_scope_name

    def enter_scope(self, new_scope: str, current_scope: str) -> Dict[str, Symbol]:
        self.parent_scope.setdefault(new_scope, current_scope)
        return self.scopes.setdefault(new_scope, {})

    def declare(self, symbol: Symbol) -> Symbol:
        """Declare *symbol*; same-name declarations merge like TypeScript's.

        A class wins over an interface of the same name, namespaces merge
        their members, otherwise the first declaration stays.
        """
        names = self.scopes.setdefault(symbol.scope, {})
        existing = names.get(symbol.name)
        if existing is None:
            names[symbol.name] = symbol
            return symbol
        if symbol.kind is SymbolKind.CLASS and existing.kind is not SymbolKind.CLASS:
            symbol.members.update(existing.members)
            names[symbol.name] = symbol
            return symbol
        if existing.kind is SymbolKind.NAMESPACE and symbol.kind is SymbolKind.NAMESPACE:
            existing.members.update(symbol.members)
        return existing

    def lookup(self, identifier: str, context_scope: str = GLOBAL_SCOPE) -> Optional[Symbol]:
        # Look for the symbol in the current scope first, then parent scopes
        symbol = self.scopes.get(context_scope, {}).get(identifier)
        if symbol is not None:
            return symbol
        parent_scope = self.parent_scope.get(context_scope)
        if parent_scope:
            return self.lookup(identifier, parent_scope)
        return None

    def __str__(self) -> str:
        result = "Symbol Table:\n"
        for scope, names in self.scopes.items():
            for sym in names.values():
                result += f"{scope}: {sym}\n"
        return result


# ===================================================================
# Oracle interface
# ===================================================================

class TypeOracle(ABC):
    """Read-only view of a type-checked program, threaded through a pass."""

    @abstractmethod
    def resolve_symbol(self, reference: Union[TypeReference, str]) -> Optional[Symbol]:
        ...

    @abstractmethod
    def declared_type(self, symbol: Symbol) -> Type:
        ...

    def is_undefined_type(self, t: Type) -> bool:
        return isinstance(t, UndefinedType)

    def is_error_type(self, t: Type) -> bool:
        return isinstance(t, ErrorType)

    @abstractmethod
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        ...


class SymbolTableOracle(TypeOracle):
    """Oracle backed by a scoped symbol table built from declaration trees."""

    def __init__(self, trees: Sequence[DeclarationTree]) -> None:
        self.trees = tuple(trees)
        self.table = SymbolTable()
        self.modules: Dict[str, Symbol] = {}
        self._reference_scopes: Dict[TypeReference, str] = {}
        self._diagnostics: Optional[Tuple[Diagnostic, ...]] = None

        for tree in self.trees:
            self._declare_block(tree.statements, GLOBAL_SCOPE)
        logger.debug(
            "Symbol table built: %d scopes, %d ambient modules",
            len(self.table.scopes), len(self.modules),
        )

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def _declare_block(self, statements: Sequence[Statement], scope: str) -> None:
        for stmt in statements:
            self._declare(stmt, scope)

    def _declare(self, stmt: Statement, scope: str) -> None:
        if isinstance(stmt, ModuleDeclaration):
            if stmt.string_name:
                inner = f'module:"{stmt.name}"'
                members = self.table.enter_scope(inner, GLOBAL_SCOPE)
                if stmt.name not in self.modules:
                    self.modules[stmt.name] = Symbol(
                        stmt.name, SymbolKind.MODULE, stmt, GLOBAL_SCOPE, members=members,
                    )
            else:
                inner = f"{scope}/{stmt.name}"
                members = self.table.enter_scope(inner, scope)
                self.table.declare(Symbol(stmt.name, SymbolKind.NAMESPACE, stmt, scope, members=members))
            if stmt.body:
                self._declare_block(stmt.body, inner)
            return

        if isinstance(stmt, (InterfaceDeclaration, ClassDeclaration)):
            kind = SymbolKind.CLASS if isinstance(stmt, ClassDeclaration) else SymbolKind.INTERFACE
            self.table.declare(Symbol(stmt.name, kind, stmt, scope))
            for clause in stmt.heritage:
                for ref in clause.types:
                    self._reference_scopes[ref] = scope
        elif isinstance(stmt, TypeAlias):
            self.table.declare(Symbol(stmt.name, SymbolKind.TYPE_ALIAS, stmt, scope))
        elif isinstance(stmt, VariableStatement):
            for decl in stmt.declarations:
                self.table.declare(Symbol(decl.name, SymbolKind.VARIABLE, stmt, scope))
        elif isinstance(stmt, ImportEquals):
            self.table.declare(Symbol(stmt.name, SymbolKind.ALIAS, stmt, scope))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_symbol(
        self,
        reference: Union[TypeReference, str],
        scope: Optional[str] = None,
    ) -> Optional[Symbol]:
        if isinstance(reference, TypeReference):
            path = reference.path
            scope = scope or self._reference_scopes.get(reference, GLOBAL_SCOPE)
        else:
            path = tuple(reference.split("."))
            scope = scope or GLOBAL_SCOPE

        symbol = self.table.lookup(path[0], scope)
        for segment in path[1:]:
            if symbol is None:
                return None
            container = self._resolve_alias(symbol)
            if container is None:
                return None
            symbol = container.members.get(segment)
        return symbol

    def _resolve_alias(self, symbol: Symbol, depth: int = 0) -> Optional[Symbol]:
        if symbol.kind is not SymbolKind.ALIAS:
            return symbol
        if depth >= MAX_ALIAS_DEPTH:
            logger.debug("Alias chain too deep at %s", symbol.name)
            return None
        decl = symbol.declaration
        assert isinstance(decl, ImportEquals)
        if decl.require:
            return self.modules.get(decl.reference)
        target = self.resolve_symbol(decl.reference, scope=symbol.scope)
        if target is None:
            return None
        return self._resolve_alias(target, depth + 1)

    def declared_type(self, symbol: Symbol) -> Type:
        decl = symbol.declaration
        if symbol.kind is SymbolKind.CLASS:
            return ObjectType(symbol.name, constructable=True)
        if symbol.kind is SymbolKind.INTERFACE:
            return ObjectType(symbol.name)
        if symbol.kind is SymbolKind.TYPE_ALIAS:
            assert isinstance(decl, TypeAlias)
            if decl.type_text.strip() == "undefined":
                return UndefinedType()
            return ObjectType(symbol.name)
        if symbol.kind is SymbolKind.VARIABLE:
            if self._variable_annotation(symbol) == "undefined":
                return UndefinedType()
            # Values have no declared type of their own.
            return ErrorType(f"'{symbol.name}' is a value")
        if symbol.kind is SymbolKind.ALIAS:
            target = self._resolve_alias(symbol)
            if target is None:
                return ErrorType(f"unresolved alias '{symbol.name}'")
            return self.declared_type(target)
        return ErrorType(f"{symbol.kind.value} '{symbol.name}' is not a type")

    @staticmethod
    def _variable_annotation(symbol: Symbol) -> str:
        decl = symbol.declaration
        assert isinstance(decl, VariableStatement)
        for declarator in decl.declarations:
            if declarator.name == symbol.name:
                return declarator.type_annotation.strip()
        return ""

    def _is_constructable(self, symbol: Symbol) -> bool:
        target = self._resolve_alias(symbol)
        if target is None:
            return False
        if target.kind is SymbolKind.VARIABLE:
            annotation = self._variable_annotation(target)
            return (
                annotation == "any"
                or annotation.startswith("typeof ")
                or "new (" in annotation
                or "new(" in annotation
            )
        declared = self.declared_type(target)
        return isinstance(declared, ObjectType) and declared.constructable

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        if self._diagnostics is None:
            found: List[Diagnostic] = []
            for tree in self.trees:
                self._check_block(tree.statements, GLOBAL_SCOPE, tree.file_name, found)
            self._diagnostics = tuple(found)
            logger.debug("Oracle produced %d diagnostics", len(found))
        return self._diagnostics

    def _check_block(
        self,
        statements: Sequence[Statement],
        scope: str,
        file_name: str,
        found: List[Diagnostic],
    ) -> None:
        for stmt in statements:
            if isinstance(stmt, ModuleDeclaration):
                inner = f'module:"{stmt.name}"' if stmt.string_name else f"{scope}/{stmt.name}"
                if stmt.body:
                    self._check_block(stmt.body, inner, file_name, found)
            elif isinstance(stmt, ClassDeclaration):
                self._check_class(stmt, scope, file_name, found)
            elif isinstance(stmt, InterfaceDeclaration):
                self._check_interface(stmt, scope, file_name, found)
            elif isinstance(stmt, ImportEquals) and stmt.require and stmt.reference not in self.modules:
                if stmt.span is None:
                    continue
                found.append(Diagnostic(
                    code=CANNOT_FIND_MODULE,
                    message=f"Cannot find module '{stmt.reference}' or its corresponding type declarations.",
                    file=file_name,
                    start=stmt.span.start,
                    length=stmt.span.end - stmt.span.start,
                ))

    def _check_class(
        self,
        stmt: ClassDeclaration,
        scope: str,
        file_name: str,
        found: List[Diagnostic],
    ) -> None:
        for clause in stmt.heritage:
            for index, ref in enumerate(clause.types):
                if ref.span is None:
                    continue
                if clause.kind is HeritageKind.EXTENDS and index > 0:
                    found.append(_diagnostic(
                        SINGLE_BASE_CLASS, "Classes can only extend a single class.", file_name, ref,
                    ))
                    continue
                symbol = self.resolve_symbol(ref, scope=scope)
                if symbol is None:
                    found.append(_diagnostic(
                        CANNOT_FIND_NAME, f"Cannot find name '{ref.leading_identifier}'.", file_name, ref,
                    ))
                elif self._resolve_alias(symbol) is None:
                    # The broken import is reported where it is declared.
                    continue
                elif clause.kind is HeritageKind.EXTENDS and not self._is_constructable(symbol):
                    found.append(_diagnostic(
                        NOT_A_CONSTRUCTOR,
                        f"Type '{ref.expression}' is not a constructor function type.",
                        file_name, ref,
                    ))

    def _check_interface(
        self,
        stmt: InterfaceDeclaration,
        scope: str,
        file_name: str,
        found: List[Diagnostic],
    ) -> None:
        for clause in stmt.heritage:
            if clause.kind is HeritageKind.EXTENDS and clause.is_empty and stmt.span is not None:
                found.append(Diagnostic(
                    code=EMPTY_EXTENDS_LIST,
                    message="'extends' list cannot be empty.",
                    file=file_name,
                    start=stmt.span.start,
                    length=stmt.span.end - stmt.span.start,
                ))
            for ref in clause.types:
                if ref.span is not None and self.resolve_symbol(ref, scope=scope) is None:
                    found.append(_diagnostic(
                        CANNOT_FIND_NAME, f"Cannot find name '{ref.leading_identifier}'.", file_name, ref,
                    ))


def _diagnostic(code: int, message: str, file_name: str, ref: TypeReference) -> Diagnostic:
    assert ref.span is not None
    return Diagnostic(
        code=code,
        message=message,
        file=file_name,
        start=ref.span.start,
        length=ref.span.end - ref.span.start,
    )
