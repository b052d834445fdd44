"""End-to-end bundling run: emit, rewrite imports, fix declarations, write."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .collector import InterfaceCollector
from .config import BundleSettings
from .errors import ConfigResolutionError, DeclarationIOError
from .models import DeclarationTree, Diagnostic
from .oracle import SymbolTableOracle
from .parser import DeclarationParser, TreeSitterDeclarationParser
from .printer import render
from .project import emit_declarations, locate_tsconfig
from .rewriter import ImportPathRewriter
from .transformer import DeclarationTransformer, TransformStats

logger = logging.getLogger(__name__)


@dataclass
class BundleResult:
    output: str
    diagnostics: Tuple[Diagnostic, ...] = ()
    stats: TransformStats = field(default_factory=TransformStats)
    output_path: Optional[Path] = None
    # Parsed bundle the diagnostic offsets point into.
    source: Optional[DeclarationTree] = None

    @property
    def merged_modules(self) -> List[str]:
        return self.stats.merged_modules

    @property
    def pruned_references(self) -> List[str]:
        return self.stats.pruned_references


def format_diagnostic(diagnostic: Diagnostic, tree: Optional[DeclarationTree] = None) -> str:
    """``file (line,col): message``, or just the message without a file."""
    if diagnostic.file is None:
        return diagnostic.message
    if tree is not None and tree.file_name == diagnostic.file:
        line, column = tree.line_and_column(diagnostic.start)
        return f"{diagnostic.file} ({line},{column}): {diagnostic.message}"
    return f"{diagnostic.file}: {diagnostic.message}"


def read_declaration(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DeclarationIOError(f"Could not read {path}: {exc}") from exc


def write_atomic(path: Path, text: str) -> None:
    """Replace *path* only once the full text is on disk."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise DeclarationIOError(f"Could not write {path}: {exc}") from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException as exc:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        if isinstance(exc, OSError):
            raise DeclarationIOError(f"Could not write {path}: {exc}") from exc
        raise


class BundlePipeline:
    """Single-pass, synchronous bundling pipeline.

    Any stage raising a :class:`~dtsbundle.errors.DtsBundleError` aborts the
    run before the output file is touched.
    """

    def __init__(
        self,
        settings: Optional[BundleSettings] = None,
        parser: Optional[DeclarationParser] = None,
    ) -> None:
        self.settings = settings or BundleSettings()
        self.parser = parser or TreeSitterDeclarationParser()
        self.rewriter = ImportPathRewriter(self.settings)
        self.collector = InterfaceCollector(self.settings, self.parser)

    def fix_imports(self, text: str) -> str:
        return self.rewriter.rewrite(text)

    def fix_declaration(
        self,
        bundle_text: str,
        bundle_name: str,
        master_text: str,
        master_name: str,
    ) -> BundleResult:
        tree = self.parser.parse(bundle_text, bundle_name)
        oracle = SymbolTableOracle([tree])
        diagnostics = oracle.diagnostics()
        for diagnostic in diagnostics:
            logger.info("%s", format_diagnostic(diagnostic, tree))

        master = self.parser.parse(master_text, master_name)
        merge_map = self.collector.collect(master)
        logger.info("Collected interfaces for %d module(s) from %s", len(merge_map), master_name)

        transformer = DeclarationTransformer(merge_map, diagnostics, oracle, self.settings)
        transformed = transformer.transform(tree)
        stats = transformer.stats
        logger.info(
            "Merged %d module(s), filtered %d, pruned %d heritage reference(s)",
            len(stats.merged_modules), len(stats.filtered_modules), len(stats.pruned_references),
        )
        return BundleResult(output=render(transformed), diagnostics=diagnostics, stats=stats, source=tree)

    def run(
        self,
        project_dir: Path,
        generate: bool = False,
        output: Optional[Path] = None,
    ) -> BundleResult:
        project_dir = project_dir.resolve()
        if generate:
            tsconfig = locate_tsconfig(project_dir, self.settings.tsconfig)
            emit_declarations(tsconfig, self.settings.tsc)

        bundle_path = project_dir / self.settings.bundle_declaration
        master_path = project_dir / self.settings.master_declaration
        output_path = output or bundle_path

        for path in (bundle_path, master_path):
            if not path.is_file():
                raise ConfigResolutionError(f"Declaration file not found: {path}")
        bundle_text = self.fix_imports(read_declaration(bundle_path))
        master_text = read_declaration(master_path)

        result = self.fix_declaration(bundle_text, str(bundle_path), master_text, str(master_path))
        write_atomic(output_path, result.output)
        result.output_path = output_path
        logger.info("Bundle written to %s", output_path)
        return result
