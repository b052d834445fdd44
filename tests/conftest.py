"""Pytest configuration and fixtures for dtsbundle tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator

import pytest

from dtsbundle.config import BundleSettings
from dtsbundle.models import ClassDeclaration, TypeReference
from dtsbundle.oracle import Symbol, SymbolKind, Type, TypeOracle
from dtsbundle.parser import TreeSitterDeclarationParser


MASTER_SOURCE = '''declare module "./src/editor" {
    export interface EditorOptions {
        session: Ace.EditSession;
        range: Ace.Range<number>;
        point?: Ace.Point;
    }
    interface EditorEvents extends Ace.EventEmitter<Editor> {
        change: (e: Ace.Delta) => void;
        point: Ace.Point;
    }
}
declare module "./src/lib/oop" {
    export function inherits(a: any, b: any): void;
}
'''

RAW_BUNDLE_SOURCE = '''declare module "src/editor" {
    export class Editor extends EventEmitter {
        getValue(): string;
    }
    export class Base {
    }
    export class Child extends Base {
    }
    export class Broken extends Options {
    }
    export interface Options {
        readOnly: boolean;
    }
    import EventEmitter = require("src/lib/event_emitter");
}
declare module "src/config" {
    const _exports: {
        get: (key: string) => any;
    };
    export = _exports;
    import oop = require("src/lib/oop");
    export function setDefaultValue(key: string): void;
    export const version: string;
}
'''


class StubOracle(TypeOracle):
    """Oracle answering from a fixed ``name -> declared type`` table."""

    def __init__(self, types: Dict[str, Type]) -> None:
        self.types = types
        self.queries = []

    def resolve_symbol(self, reference):
        name = reference.expression if isinstance(reference, TypeReference) else reference
        self.queries.append(name)
        if name not in self.types:
            return None
        return Symbol(name, SymbolKind.CLASS, ClassDeclaration(name), "global")

    def declared_type(self, symbol):
        return self.types[symbol.name]

    def diagnostics(self):
        return ()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(autouse=True)
def _no_config_override(monkeypatch):
    monkeypatch.delenv("DTSBUNDLE_CONFIG", raising=False)


@pytest.fixture
def settings() -> BundleSettings:
    return BundleSettings()


@pytest.fixture(scope="session")
def parser() -> TreeSitterDeclarationParser:
    return TreeSitterDeclarationParser()


@pytest.fixture
def master_source() -> str:
    return MASTER_SOURCE


@pytest.fixture
def raw_bundle_source() -> str:
    return RAW_BUNDLE_SOURCE


@pytest.fixture
def stub_oracle():
    """Factory for :class:`StubOracle` instances."""
    return StubOracle


@pytest.fixture
def sample_project(temp_dir: Path) -> Path:
    """A project directory with an emitted bundle and a master declaration."""
    (temp_dir / "types").mkdir()
    (temp_dir / "types" / "index.d.ts").write_text(RAW_BUNDLE_SOURCE, encoding="utf-8")
    (temp_dir / "ace.d.ts").write_text(MASTER_SOURCE, encoding="utf-8")
    (temp_dir / "tsconfig.json").write_text('{"compilerOptions": {"declaration": true}}', encoding="utf-8")
    return temp_dir
