"""Collects interfaces from the master declaration file for re-injection.

Each ambient module of the master file that declares interfaces yields a
fragment: an ``Ace`` namespace of import aliases for every qualified
``Ace.X`` reference those interfaces use, followed by the interfaces
themselves. The bundle's module of the same name gets the fragment appended.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from .config import BundleSettings
from .models import (
    AliasMapping,
    DeclarationTree,
    InterfaceDeclaration,
    ModuleDeclaration,
    Statement,
    TypeAlias,
)
from .parser import DeclarationParser
from .printer import render

logger = logging.getLogger(__name__)

MergeMap = Dict[str, Tuple[Statement, ...]]


class InterfaceCollector:
    def __init__(self, settings: BundleSettings, parser: DeclarationParser) -> None:
        self.settings = settings
        self.parser = parser

    def collect(self, tree: DeclarationTree) -> MergeMap:
        """Map bundle module names to the statements to append to them.

        Every string-named module is keyed, with an empty fragment when it
        declares no interfaces; a keyed module is never filtered. When two
        modules share a name the later one replaces the earlier one's fragment.
        """
        result: MergeMap = {}
        for stmt in tree.walk():
            if not (isinstance(stmt, ModuleDeclaration) and stmt.string_name):
                continue
            interfaces = [s for s in (stmt.body or ()) if isinstance(s, InterfaceDeclaration)]
            key = self.module_key(stmt.name)
            if key in result:
                logger.warning("Module '%s' declared more than once; keeping the last interface set", key)
            result[key] = self.build_fragment(interfaces, key) if interfaces else ()
            logger.debug("Collected %d interface(s) for %s", len(interfaces), key)
        return result

    def module_key(self, name: str) -> str:
        if name.startswith("./"):
            return f"{self.settings.package_name}/{name[2:]}"
        return name

    def alias_mapping(self, interfaces: Sequence[InterfaceDeclaration]) -> AliasMapping:
        """Qualified namespace references in first-occurrence order.

        ``Ace.Range`` and ``Ace.Range<`` are distinct entries.
        """
        mapping = AliasMapping()
        for interface in interfaces:
            for ref in interface.references:
                if ref.namespace == self.settings.namespace:
                    mapping.add(ref.token, self.settings.alias_import_path)
        return mapping

    def alias_statements(self, mapping: AliasMapping) -> Tuple[TypeAlias, ...]:
        namespace = self.settings.namespace
        aliases: List[TypeAlias] = []
        for token in mapping:
            name = token[len(namespace) + 1:]
            params = ""
            if name.endswith("<"):
                # Arity is not inferred: every generic alias gets one parameter.
                name = name[:-1]
                params = f"<{self.settings.type_parameter_placeholder}>"
            aliases.append(TypeAlias(
                name=name,
                type_parameters=params,
                type_text=f'import("{mapping.entries[token]}").{namespace}.{name}{params}',
            ))
        return tuple(aliases)

    def build_fragment(self, interfaces: Sequence[InterfaceDeclaration], key: str) -> Tuple[Statement, ...]:
        text = "\n\n".join(render(i) for i in interfaces)
        # Re-parse so the fragment carries no positions from the master file.
        statements = self.parser.parse_fragment(text, module=key)

        mapping = self.alias_mapping(interfaces)
        if not mapping:
            return statements
        block = ModuleDeclaration(
            name=self.settings.namespace,
            body=self.alias_statements(mapping),
            string_name=False,
            keyword="namespace",
        )
        return (block,) + tuple(statements)
