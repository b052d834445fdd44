"""Immutable declaration-tree model shared by the parser, engine and printer.

Nodes are frozen dataclasses: structural edits always build a new node
(``dataclasses.replace``) so spans computed by the oracle stay valid for the
whole pass.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union


@dataclass(frozen=True)
class Span:
    """Half-open ``[start, end)`` byte range in the originating file."""
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Span end {self.end} precedes start {self.start}")


@dataclass(frozen=True)
class TypeReference:
    expression: str
    span: Optional[Span] = None
    type_arguments: str = ""

    @property
    def leading_identifier(self) -> str:
        return self.expression.split(".", 1)[0]

    @property
    def path(self) -> Tuple[str, ...]:
        return tuple(self.expression.split("."))

    def __str__(self) -> str:
        return f"{self.expression}{self.type_arguments}"


class HeritageKind(str, Enum):
    EXTENDS = "extends"
    IMPLEMENTS = "implements"


@dataclass(frozen=True)
class HeritageClause:
    kind: HeritageKind
    types: Tuple[TypeReference, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.types


@dataclass(frozen=True)
class QualifiedName:
    """A ``Namespace.Identifier`` type reference tracked while parsing."""
    namespace: str
    name: str
    generic: bool = False

    @property
    def token(self) -> str:
        return f"{self.namespace}.{self.name}{'<' if self.generic else ''}"


@dataclass(frozen=True)
class Member:
    text: str
    comment: bool = False


@dataclass(frozen=True)
class VariableDeclarator:
    name: str
    type_annotation: str = ""
    initializer: str = ""


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModuleDeclaration:
    """``declare module "x" { ... }`` or ``namespace X { ... }``.

    ``body`` is ``None`` for shorthand ambient modules (``declare module "x";``).
    """
    name: str
    body: Optional[Tuple["Statement", ...]] = ()
    string_name: bool = True
    keyword: str = "module"
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class InterfaceDeclaration:
    name: str
    heritage: Tuple[HeritageClause, ...] = ()
    members: Tuple[Member, ...] = ()
    type_parameters: str = ""
    references: Tuple[QualifiedName, ...] = field(default=(), compare=False)
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class ClassDeclaration:
    name: str
    heritage: Tuple[HeritageClause, ...] = ()
    members: Tuple[Member, ...] = ()
    type_parameters: str = ""
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class VariableStatement:
    keyword: str
    declarations: Tuple[VariableDeclarator, ...]
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None

    @property
    def single_name(self) -> Optional[str]:
        if len(self.declarations) != 1:
            return None
        return self.declarations[0].name


@dataclass(frozen=True)
class ExportAssignment:
    expression: str
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class ImportEquals:
    """``import x = require("m")`` (``require=True``) or ``import x = A.B``."""
    name: str
    reference: str
    require: bool = True
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class TypeAlias:
    name: str
    type_text: str
    type_parameters: str = ""
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None


@dataclass(frozen=True)
class RawStatement:
    text: str
    modifiers: Tuple[str, ...] = ()
    span: Optional[Span] = None


Statement = Union[
    ModuleDeclaration,
    InterfaceDeclaration,
    ClassDeclaration,
    VariableStatement,
    ExportAssignment,
    ImportEquals,
    TypeAlias,
    RawStatement,
]


@dataclass(frozen=True)
class DeclarationTree:
    file_name: str
    statements: Tuple[Statement, ...]
    text: str = ""

    def walk(self) -> Iterator[Statement]:
        """Yield every statement depth-first, module bodies included."""
        yield from iter_statements(self.statements)

    def line_and_column(self, offset: int) -> Tuple[int, int]:
        """1-based line and column for a byte offset into :attr:`text`."""
        data = self.text.encode("utf-8")
        line_starts = [0] + [i + 1 for i, b in enumerate(data) if b == 0x0A]
        line_index = bisect.bisect_right(line_starts, offset) - 1
        column = len(data[line_starts[line_index]:offset].decode("utf-8", errors="ignore"))
        return line_index + 1, column + 1


def iter_statements(statements: Tuple[Statement, ...]) -> Iterator[Statement]:
    for stmt in statements:
        yield stmt
        if isinstance(stmt, ModuleDeclaration) and stmt.body:
            yield from iter_statements(stmt.body)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Diagnostic:
    code: int
    message: str
    file: Optional[str] = None
    start: int = 0
    length: int = 0

    @property
    def end(self) -> int:
        return self.start + self.length

    def overlaps(self, span: Span) -> bool:
        # A zero-length diagnostic still covers the offset it points at.
        end = self.start + max(self.length, 1)
        return self.start < span.end and span.start < end


@dataclass
class AliasMapping:
    """Qualified token (``Ace.Range<``) to the import path it aliases."""
    entries: Dict[str, str] = field(default_factory=dict)

    def add(self, token: str, import_path: str) -> bool:
        if token in self.entries:
            return False
        self.entries[token] = import_path
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
