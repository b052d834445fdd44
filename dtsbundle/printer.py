"""Deterministic declaration printer."""

from __future__ import annotations

from typing import List, Union

from .models import (
    ClassDeclaration,
    DeclarationTree,
    ExportAssignment,
    HeritageClause,
    ImportEquals,
    InterfaceDeclaration,
    Member,
    ModuleDeclaration,
    RawStatement,
    Statement,
    TypeAlias,
    TypeReference,
    VariableStatement,
)

INDENT = "    "


def render(node: Union[DeclarationTree, Statement]) -> str:
    """Render a whole tree (newline terminated) or a single statement."""
    if isinstance(node, DeclarationTree):
        if not node.statements:
            return ""
        return "\n".join(_statement(s, 0) for s in node.statements) + "\n"
    return _statement(node, 0)


def render_type_reference(ref: TypeReference) -> str:
    return f"{ref.expression}{ref.type_arguments}"


def render_heritage(clause: HeritageClause) -> str:
    types = ", ".join(render_type_reference(t) for t in clause.types)
    return f"{clause.kind.value} {types}".rstrip()


def _prefix(modifiers) -> str:
    return "".join(f"{m} " for m in modifiers)


def _indent(text: str, level: int) -> str:
    return f"{INDENT * level}{text}"


def _statement(stmt: Statement, level: int) -> str:
    pad = INDENT * level

    if isinstance(stmt, ModuleDeclaration):
        name = f'"{stmt.name}"' if stmt.string_name else stmt.name
        head = f"{pad}{_prefix(stmt.modifiers)}{stmt.keyword} {name}"
        if stmt.body is None:
            return f"{head};"
        if not stmt.body:
            return f"{head} {{ }}"
        lines = [f"{head} {{"]
        lines.extend(_statement(s, level + 1) for s in stmt.body)
        lines.append(f"{pad}}}")
        return "\n".join(lines)

    if isinstance(stmt, (InterfaceDeclaration, ClassDeclaration)):
        keyword = "interface" if isinstance(stmt, InterfaceDeclaration) else "class"
        heritage = "".join(f" {render_heritage(c)}" for c in stmt.heritage)
        head = f"{pad}{_prefix(stmt.modifiers)}{keyword} {stmt.name}{stmt.type_parameters}{heritage} {{"
        lines = [head]
        lines.extend(_member(m, level + 1) for m in stmt.members)
        lines.append(f"{pad}}}")
        return "\n".join(lines)

    if isinstance(stmt, VariableStatement):
        parts: List[str] = []
        for decl in stmt.declarations:
            text = decl.name
            if decl.type_annotation:
                text += f": {decl.type_annotation}"
            if decl.initializer:
                text += f" = {decl.initializer}"
            parts.append(text)
        return f"{pad}{_prefix(stmt.modifiers)}{stmt.keyword} {', '.join(parts)};"

    if isinstance(stmt, ExportAssignment):
        return f"{pad}export = {stmt.expression};"

    if isinstance(stmt, ImportEquals):
        target = f'require("{stmt.reference}")' if stmt.require else stmt.reference
        return f"{pad}{_prefix(stmt.modifiers)}import {stmt.name} = {target};"

    if isinstance(stmt, TypeAlias):
        return f"{pad}{_prefix(stmt.modifiers)}type {stmt.name}{stmt.type_parameters} = {stmt.type_text};"

    if isinstance(stmt, RawStatement):
        return _indent(stmt.text, level)

    raise TypeError(f"Cannot render {type(stmt).__name__}")


def _member(member: Member, level: int) -> str:
    if member.comment:
        return _indent(member.text, level)
    return _indent(f"{member.text};", level)
