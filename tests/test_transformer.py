"""Tests for the structural declaration transformer."""

import pytest

from dtsbundle.config import BundleSettings
from dtsbundle.models import (
    ClassDeclaration,
    DeclarationTree,
    Diagnostic,
    ExportAssignment,
    HeritageClause,
    HeritageKind,
    ImportEquals,
    InterfaceDeclaration,
    ModuleDeclaration,
    RawStatement,
    Span,
    TypeReference,
    VariableDeclarator,
    VariableStatement,
)
from dtsbundle.oracle import ErrorType, ObjectType
from dtsbundle.transformer import DeclarationTransformer, transform

FILE = "index.d.ts"


def _tree(*statements):
    return DeclarationTree(FILE, tuple(statements))


def _class(name, *extends, implements=()):
    heritage = []
    if extends:
        heritage.append(HeritageClause(HeritageKind.EXTENDS, tuple(extends)))
    if implements:
        heritage.append(HeritageClause(HeritageKind.IMPLEMENTS, tuple(implements)))
    return ClassDeclaration(name, heritage=tuple(heritage))


def _ref(name, start):
    return TypeReference(name, Span(start, start + len(name)))


@pytest.fixture
def oracle(stub_oracle):
    return stub_oracle({
        "Known": ObjectType("Known", constructable=True),
        "Value": ErrorType("value"),
    })


class TestMerge:
    """Appending collected interfaces to matching modules."""

    def test_append_only(self, oracle):
        original = RawStatement("export function f(): void;")
        frag0 = InterfaceDeclaration("A")
        frag1 = InterfaceDeclaration("B")
        tree = _tree(ModuleDeclaration("pkg/editor", body=(original,)))

        transformer = DeclarationTransformer({"pkg/editor": (frag0, frag1)}, (), oracle)
        result = transformer.transform(tree)

        assert result.statements[0].body == (original, frag0, frag1)
        assert transformer.stats.merged_modules == ["pkg/editor"]

    def test_duplicates_not_removed(self, oracle):
        existing = InterfaceDeclaration("A")
        tree = _tree(ModuleDeclaration("pkg/editor", body=(existing,)))
        result = transform(tree, {"pkg/editor": (InterfaceDeclaration("A"),)}, (), oracle)
        assert [s.name for s in result.statements[0].body] == ["A", "A"]

    def test_unmatched_module_untouched(self, oracle):
        module = ModuleDeclaration("pkg/other", body=(RawStatement("x;"),))
        result = transform(_tree(module), {"pkg/editor": (InterfaceDeclaration("A"),)}, (), oracle)
        assert result.statements[0] is module

    def test_merge_wins_over_filter(self, oracle):
        module = ModuleDeclaration("pkg/config", body=(RawStatement("export function f(): void;"),))
        result = transform(_tree(module), {"pkg/config": (InterfaceDeclaration("A"),)}, (), oracle)
        assert len(result.statements[0].body) == 2

    def test_empty_entry_shields_from_filter(self, oracle):
        module = ModuleDeclaration("pkg/config", body=(
            ExportAssignment("_exports"),
            RawStatement("export function f(): void;"),
        ))
        transformer = DeclarationTransformer({"pkg/config": ()}, (), oracle)
        result = transformer.transform(_tree(module))

        assert result.statements[0] is module
        assert transformer.stats.merged_modules == []
        assert transformer.stats.filtered_modules == []


class TestFilter:
    """Reducing configured modules to their export surface."""

    @pytest.fixture
    def config_module(self):
        return ModuleDeclaration("pkg/config", body=(
            VariableStatement("const", (VariableDeclarator("_exports", "{}"),)),
            ExportAssignment("_exports"),
            ImportEquals("oop", "pkg/lib/oop"),
            RawStatement("export function setDefaultValue(key: string): void;"),
            VariableStatement("const", (VariableDeclarator("version", "string"),), modifiers=("export",)),
            VariableStatement("const", (
                VariableDeclarator("_exports", "{}"),
                VariableDeclarator("other", "{}"),
            )),
        ))

    def test_keeps_export_surface_only(self, oracle, config_module):
        transformer = DeclarationTransformer({}, (), oracle)
        result = transformer.transform(_tree(config_module))
        body = result.statements[0].body
        assert body == config_module.body[:3]
        assert transformer.stats.filtered_modules == ["pkg/config"]

    def test_textarea_suffix(self, oracle):
        module = ModuleDeclaration("pkg/keyboard/textarea", body=(RawStatement("export class X {}"),))
        result = transform(_tree(module), {}, (), oracle)
        assert result.statements[0].body == ()

    def test_suffixes_from_settings(self, oracle, config_module):
        settings = BundleSettings(filtered_module_suffixes=("/options",))
        result = transform(_tree(config_module), {}, (), oracle, settings)
        assert result.statements[0] is config_module

    def test_namespaces_not_filtered(self, oracle):
        namespace = ModuleDeclaration("config", body=(RawStatement("x;"),), string_name=False)
        result = transform(_tree(namespace), {}, (), oracle)
        assert result.statements[0] is namespace


class TestHeritage:
    """Interface clean-up and class heritage pruning."""

    def test_empty_interface_extends_removed(self, oracle):
        interface = InterfaceDeclaration(
            "Loose",
            heritage=(HeritageClause(HeritageKind.EXTENDS, ()),),
        )
        transformer = DeclarationTransformer({}, (), oracle)
        result = transformer.transform(_tree(interface))
        assert result.statements[0].heritage == ()
        assert transformer.stats.emptied_interfaces == ["Loose"]

    def test_nonempty_interface_extends_kept(self, oracle):
        interface = InterfaceDeclaration("Ok", heritage=(
            HeritageClause(HeritageKind.EXTENDS, (TypeReference("Unknown"),)),
        ))
        result = transform(_tree(interface), {}, (), oracle)
        assert result.statements[0] is interface

    def test_diagnosed_base_pruned(self, oracle):
        ref = _ref("Unresolvable", 20)
        diagnostics = [Diagnostic(2507, "not a constructor", FILE, 20, len("Unresolvable"))]
        transformer = DeclarationTransformer({}, diagnostics, oracle)
        result = transformer.transform(_tree(_class("C", ref)))
        assert result.statements[0].heritage == ()
        assert transformer.stats.pruned_references == ["Unresolvable"]

    def test_value_base_pruned(self, oracle):
        result = transform(_tree(_class("C", _ref("Value", 20))), {}, (), oracle)
        assert result.statements[0].heritage == ()

    def test_known_base_preserved(self, oracle):
        cls = _class("C", _ref("Known", 20))
        result = transform(_tree(cls), {}, (), oracle)
        assert result.statements[0] is cls

    def test_partial_prune_keeps_clause(self, oracle):
        known = _ref("Known", 20)
        broken = _ref("Unresolvable", 27)
        diagnostics = [Diagnostic(1174, "single class", FILE, 27, len("Unresolvable"))]
        result = transform(_tree(_class("C", known, broken)), {}, diagnostics, oracle)
        (clause,) = result.statements[0].heritage
        assert clause.types == (known,)

    def test_implements_clause_untouched(self, oracle):
        iface = _ref("Value", 40)
        cls = _class("C", _ref("Value", 20), implements=(iface,))
        result = transform(_tree(cls), {}, (), oracle)
        (clause,) = result.statements[0].heritage
        assert clause.kind is HeritageKind.IMPLEMENTS
        assert clause.types == (iface,)

    def test_classes_inside_modules(self, oracle):
        module = ModuleDeclaration("pkg/editor", body=(_class("C", _ref("Value", 20)),))
        result = transform(_tree(module), {}, (), oracle)
        assert result.statements[0].body[0].heritage == ()


class TestImmutability:
    """Inputs are never modified."""

    def test_inputs_unchanged(self, oracle):
        module = ModuleDeclaration("pkg/config", body=(
            _class("C", _ref("Value", 20)),
            RawStatement("export function f(): void;"),
        ))
        tree = _tree(module, InterfaceDeclaration("I", heritage=(HeritageClause(HeritageKind.EXTENDS),)))
        snapshot = repr(tree)
        merge_map = {"pkg/editor": (InterfaceDeclaration("A"),)}

        result = transform(tree, merge_map, (), oracle)

        assert repr(tree) == snapshot
        assert result is not tree
        assert merge_map == {"pkg/editor": (InterfaceDeclaration("A"),)}

    def test_untouched_tree_reuses_nodes(self, oracle):
        tree = _tree(RawStatement("declare const x: number;"), _class("C", _ref("Known", 20)))
        result = transform(tree, {}, (), oracle)
        assert all(new is old for new, old in zip(result.statements, tree.statements))
