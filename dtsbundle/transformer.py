"""Structural rewrite of a declaration tree.

The transformer walks the tree depth-first and rebuilds only the nodes it
changes; everything else is returned as-is. It never mutates its inputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Mapping, Optional, Sequence, Tuple

from .config import BundleSettings
from .models import (
    ClassDeclaration,
    DeclarationTree,
    Diagnostic,
    ExportAssignment,
    HeritageClause,
    HeritageKind,
    ImportEquals,
    InterfaceDeclaration,
    ModuleDeclaration,
    Statement,
    VariableStatement,
)
from .oracle import TypeOracle
from .pruner import keep

logger = logging.getLogger(__name__)


@dataclass
class TransformStats:
    merged_modules: List[str] = field(default_factory=list)
    filtered_modules: List[str] = field(default_factory=list)
    pruned_references: List[str] = field(default_factory=list)
    emptied_interfaces: List[str] = field(default_factory=list)


class DeclarationTransformer:
    """Node-type dispatched rewriter, in the manner of ``ast.NodeTransformer``."""

    def __init__(
        self,
        merge_map: Mapping[str, Tuple[Statement, ...]],
        diagnostics: Sequence[Diagnostic],
        oracle: TypeOracle,
        settings: Optional[BundleSettings] = None,
    ) -> None:
        self.merge_map = merge_map
        self.diagnostics = tuple(diagnostics)
        self.oracle = oracle
        self.settings = settings or BundleSettings()
        self.stats = TransformStats()
        self._source_file: Optional[str] = None

    def transform(self, tree: DeclarationTree) -> DeclarationTree:
        self._source_file = tree.file_name
        statements = tuple(self.visit(s) for s in tree.statements)
        return DeclarationTree(file_name=tree.file_name, statements=statements, text=tree.text)

    def visit(self, node: Statement) -> Statement:
        method = getattr(self, f"visit_{type(node).__name__}", self.generic_visit)
        return method(node)

    def generic_visit(self, node: Statement) -> Statement:
        if isinstance(node, ModuleDeclaration) and node.body:
            body = tuple(self.visit(s) for s in node.body)
            if any(new is not old for new, old in zip(body, node.body)):
                return replace(node, body=body)
        return node

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def visit_ModuleDeclaration(self, node: ModuleDeclaration) -> Statement:
        if node.string_name and node.body is not None:
            injected = self.merge_map.get(node.name)
            if injected is not None:
                # Append-only: originals first, no de-duplication. A keyed
                # module with nothing to inject is left as it is.
                if injected:
                    node = replace(node, body=node.body + tuple(injected))
                    self.stats.merged_modules.append(node.name)
                    logger.debug("Merged %d statement(s) into %s", len(injected), node.name)
            elif node.name.endswith(tuple(self.settings.filtered_module_suffixes)):
                body = tuple(s for s in node.body if self._is_export_surface(s))
                node = replace(node, body=body)
                self.stats.filtered_modules.append(node.name)
                logger.debug("Filtered %s down to %d statement(s)", node.name, len(body))
        return self.generic_visit(node)

    def _is_export_surface(self, stmt: Statement) -> bool:
        if isinstance(stmt, (ExportAssignment, ImportEquals)):
            return True
        return isinstance(stmt, VariableStatement) and stmt.single_name == self.settings.export_bag_name

    # ------------------------------------------------------------------
    # Heritage
    # ------------------------------------------------------------------

    def visit_InterfaceDeclaration(self, node: InterfaceDeclaration) -> Statement:
        if any(c.kind is HeritageKind.EXTENDS and c.is_empty for c in node.heritage):
            self.stats.emptied_interfaces.append(node.name)
            return replace(node, heritage=())
        return node

    def visit_ClassDeclaration(self, node: ClassDeclaration) -> Statement:
        if not node.heritage:
            return node
        clauses: List[HeritageClause] = []
        for clause in node.heritage:
            if clause.kind is HeritageKind.EXTENDS:
                kept = tuple(t for t in clause.types if self._keep(t))
                if not kept:
                    continue
                if len(kept) != len(clause.types):
                    clause = HeritageClause(HeritageKind.EXTENDS, kept)
            clauses.append(clause)
        heritage = tuple(clauses)
        if heritage == node.heritage:
            return node
        return replace(node, heritage=heritage)

    def _keep(self, ref) -> bool:
        kept = keep(
            ref,
            self.diagnostics,
            self.oracle,
            self._source_file,
            codes=self.settings.heritage_diagnostic_codes,
        )
        if not kept:
            self.stats.pruned_references.append(str(ref))
        return kept


def transform(
    tree: DeclarationTree,
    merge_map: Mapping[str, Tuple[Statement, ...]],
    diagnostics: Sequence[Diagnostic],
    oracle: TypeOracle,
    settings: Optional[BundleSettings] = None,
) -> DeclarationTree:
    """Return a rewritten copy of *tree*; see :class:`DeclarationTransformer`."""
    return DeclarationTransformer(merge_map, diagnostics, oracle, settings).transform(tree)
